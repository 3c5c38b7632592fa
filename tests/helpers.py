"""Test data builders shared across test modules."""

from common.types import AssetUpload


def make_bytes(size: int, seed: int = 0) -> bytes:
    """Deterministic test content of the given size."""
    return bytes((i * 31 + seed) % 251 for i in range(size))


def photo_upload(name: str = "photo.jpg", size: int = 1024, seed: int = 0) -> AssetUpload:
    return AssetUpload(filename=name, content_type="image/jpeg", source=make_bytes(size, seed))


def report_upload(name: str = "report.pdf", size: int = 2048, seed: int = 7) -> AssetUpload:
    return AssetUpload(filename=name, content_type="application/pdf", source=make_bytes(size, seed))
