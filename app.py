#!/usr/bin/env python3
"""
House scoreboard server.
Keeps house scores and ranks consistent as event results are recorded and
pushes live standings to every connected viewer.
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from house_scoreboard.config import ScoreboardConfig
from house_scoreboard.scoreboard import ScoreboardSystem


async def main():
    """Main function with command line interface."""

    parser = argparse.ArgumentParser(
        description="House scoreboard server with live web interface",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=None,
        help="Web interface port (env: WEB_PORT, default from config)"
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind the web server to (env: WEB_HOST, default from config)"
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database file path (env: DB_PATH, default from config)"
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "scoreboard_config.json"),
        help="Configuration file path (env: CONFIG_PATH)"
    )
    parser.add_argument(
        "--seed-demo",
        action="store_true",
        help="Fill an empty store with demo houses, events, templates and winners"
    )

    args = parser.parse_args()

    config_path = Path(args.config)

    if config_path.exists() and not config_path.is_file():
        print(f"Error: {args.config} exists but is not a file")
        return

    config = ScoreboardConfig(args.config)
    logging.basicConfig(
        level=config.get("logging", "level"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system = ScoreboardSystem(config, database=args.db)

    if await system.init_db():
        if args.seed_demo:
            await system.seed_demo_data()
        await system.print_full_scoreboard()

    await system.run(host=args.host, port=args.web_port)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nServer interrupted")
