"""
House Scoreboard - live standings for inter-house competitions.

This package provides:
- A fixed scoring table for individual and group event results
- Rank reconciliation that keeps house scores and ranks consistent
- A document store with push subscriptions over SQLite
- A live view composing every collection into one snapshot
- Web interface, JSON API and WebSocket feed for viewers
"""

from .config import ScoreboardConfig
from .database import DocumentStore
from .live_view import LiveView, ScoreboardSnapshot
from .reconciliation import RankReconciler
from .scoreboard import ScoreboardSystem
from .scoring import calculate_points
from .web_handlers import WebHandlers

__version__ = "1.0.0"
__author__ = "House Scoreboard Contributors"

__all__ = [
    "ScoreboardConfig",
    "DocumentStore",
    "LiveView",
    "ScoreboardSnapshot",
    "RankReconciler",
    "ScoreboardSystem",
    "calculate_points",
    "WebHandlers",
]
