"""
Tests for winner photo storage.
"""

import pytest

from house_scoreboard.blob_store import BlobStore, winner_photo_key
from house_scoreboard.errors import BlobStoreError


def test_photo_key_drops_directories():
    assert winner_photo_key("w1", "../../etc/passwd") == "winners/w1/passwd"
    assert winner_photo_key("w1", "C:\\photos\\me.png") == "winners/w1/me.png"


def test_photo_key_rejects_empty_name():
    with pytest.raises(BlobStoreError):
        winner_photo_key("w1", "")


@pytest.mark.asyncio
async def test_upload_writes_file_and_returns_url(tmp_path):
    blob_store = BlobStore(str(tmp_path / "media"), "/media/")

    url = await blob_store.upload("winners/w1/me.png", b"data")

    assert url == "/media/winners/w1/me.png"
    assert (tmp_path / "media" / "winners" / "w1" / "me.png").read_bytes() == b"data"


@pytest.mark.asyncio
async def test_upload_refuses_keys_outside_root(tmp_path):
    blob_store = BlobStore(str(tmp_path / "media"))

    with pytest.raises(BlobStoreError):
        await blob_store.upload("../outside.png", b"data")
