from __future__ import annotations

import pytest
from fastapi import HTTPException

from receipt_scanner.models.schemas import ImageUpload
from receipt_scanner.services.storage_service import StorageService, validate_image_upload

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _upload(filename="receipt.PNG", content_type="image/png", data=PNG):
    return ImageUpload(filename=filename, content_type=content_type, data=data)


@pytest.fixture
def storage(tmp_path):
    return StorageService(base_dir=str(tmp_path / "uploads"), backend="filesystem")


@pytest.mark.asyncio
async def test_save_creates_directory_and_returns_url(storage):
    url = await storage.save_image(_upload())

    assert url.startswith("/uploads/")
    assert url.endswith(".png")
    stored = storage.base_dir / url.rsplit("/", 1)[-1]
    assert stored.read_bytes() == PNG


@pytest.mark.asyncio
async def test_saved_names_are_unique(storage):
    first = await storage.save_image(_upload())
    second = await storage.save_image(_upload())
    assert first != second


@pytest.mark.asyncio
async def test_load_info_and_delete(storage):
    url = await storage.save_image(_upload())

    assert await storage.load_image(url) == PNG
    info = await storage.get_image_info(url)
    assert info["exists"] is True
    assert info["size"] == len(PNG)

    assert await storage.delete_image(url) is True
    assert (await storage.get_image_info(url)) == {"exists": False}
    with pytest.raises(FileNotFoundError):
        await storage.load_image(url)


@pytest.mark.asyncio
async def test_delete_missing_or_invalid_never_raises(storage):
    assert await storage.delete_image("/uploads/missing.png") is False
    assert await storage.delete_image("/uploads/..") is False
    assert await storage.delete_image("") is False


@pytest.mark.asyncio
async def test_save_rejects_invalid_upload_without_writing(storage):
    with pytest.raises(HTTPException) as exc:
        await storage.save_image(_upload(filename="notes.txt", content_type="text/plain"))
    assert exc.value.status_code == 400
    assert not storage.base_dir.exists()


def test_validate_rejects_oversized_files():
    with pytest.raises(HTTPException) as exc:
        validate_image_upload(_upload(data=b"x" * 11), 10, [".png"], ["image/png"])
    assert exc.value.status_code == 400
    assert "exceeds maximum allowed size of 10 bytes" in exc.value.detail


def test_validate_rejects_extension_mime_and_empty_payload():
    with pytest.raises(HTTPException) as exc:
        validate_image_upload(_upload(filename="scan.gif"), 100, [".png"], ["image/png"])
    assert "File extension .gif is not allowed" in exc.value.detail

    with pytest.raises(HTTPException) as exc:
        validate_image_upload(_upload(content_type="image/gif"), 100, [".png"], ["image/png"])
    assert "MIME type image/gif is not allowed" in exc.value.detail

    with pytest.raises(HTTPException) as exc:
        validate_image_upload(_upload(data=b""), 100, [".png"], ["image/png"])
    assert exc.value.detail == "File buffer is empty or invalid"


def test_validate_accepts_uppercase_extension():
    validate_image_upload(_upload(filename="IMG_001.JPG", content_type="image/jpeg"), 100, [".jpg"], ["image/jpeg"])
