import pytest

from teasr_stage.services.errors import BlobIOError, BlobNotFoundError


async def test_put_then_get(blob_store):
    await blob_store.put("thumbnails/thumb_1.jpg", b"jpeg")

    assert await blob_store.get("thumbnails/thumb_1.jpg") == b"jpeg"
    assert not list(blob_store.root.rglob("*.tmp"))


async def test_put_replaces_existing(blob_store):
    await blob_store.put("a.png.enc", b"one")
    await blob_store.put("a.png.enc", b"two")

    assert await blob_store.get("a.png.enc") == b"two"


async def test_missing_key(blob_store):
    with pytest.raises(BlobNotFoundError):
        await blob_store.get("nothing-here")


@pytest.mark.parametrize("key", ["", "../escape", "/etc/passwd", "a/../../b"])
async def test_keys_cannot_leave_the_root(blob_store, key):
    with pytest.raises(BlobIOError):
        await blob_store.put(key, b"x")
