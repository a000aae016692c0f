import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from settings import settings
from uploads import UploadRejected, delete_image, save_image


def _upload(data=b"\x89PNGfake", filename="photo.PNG", content_type="image/png"):
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


def test_save_image_layout(upload_root):
    path = save_image(_upload(), "admin-7", "banners")
    assert path.startswith("/banners/admin-7/banners-")
    assert path.endswith(".png")
    assert (upload_root / path.lstrip("/")).read_bytes() == b"\x89PNGfake"


def test_save_image_rejects_large_files(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 4)
    with pytest.raises(UploadRejected):
        save_image(_upload(data=b"12345"), "admin")


def test_save_image_rejects_empty_and_foreign_types():
    with pytest.raises(UploadRejected):
        save_image(_upload(data=b""), "admin")
    with pytest.raises(UploadRejected):
        save_image(_upload(content_type="application/pdf"), "admin")


def test_delete_image_stays_inside_root(upload_root, tmp_path):
    outside = tmp_path / "secret.txt"
    outside.write_text("keep")
    assert delete_image("/../secret.txt") is False
    assert outside.exists()

    path = save_image(_upload(), "admin")
    assert delete_image(path) is True
    assert delete_image(path) is False
