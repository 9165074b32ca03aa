"""Tests for utils module."""

import os
from pathlib import Path

import pytest

from utils import (
    atomic_write,
    get_image_format,
    is_jpeg_bytes,
    is_png_bytes,
    is_supported_format,
    temp_path_for,
)


class TestIsSupportedFormat:
    """Tests for is_supported_format function."""

    def test_png_lowercase(self) -> None:
        assert is_supported_format(Path("image.png")) is True

    def test_png_uppercase(self) -> None:
        assert is_supported_format(Path("image.PNG")) is True

    def test_jpg_lowercase(self) -> None:
        assert is_supported_format(Path("image.jpg")) is True

    def test_jpeg_uppercase(self) -> None:
        assert is_supported_format(Path("image.JPEG")) is True

    def test_unsupported_gif(self) -> None:
        assert is_supported_format(Path("image.gif")) is False

    def test_webp_has_no_writer(self) -> None:
        assert is_supported_format(Path("image.webp")) is False

    def test_no_extension(self) -> None:
        assert is_supported_format(Path("image")) is False

    def test_with_path_object(self) -> None:
        assert is_supported_format(Path("/some/path/image.png")) is True


class TestGetImageFormat:
    """Tests for get_image_format function."""

    def test_png_returns_png(self) -> None:
        assert get_image_format(Path("image.png")) == "PNG"

    def test_png_uppercase(self) -> None:
        assert get_image_format(Path("image.PNG")) == "PNG"

    def test_jpg_returns_jpeg(self) -> None:
        assert get_image_format(Path("image.jpg")) == "JPEG"

    def test_jpeg_uppercase(self) -> None:
        assert get_image_format(Path("image.JPEG")) == "JPEG"

    def test_webp_shares_exif_route(self) -> None:
        assert get_image_format(Path("image.webp")) == "WEBP"

    def test_unknown_format_is_sidecar(self) -> None:
        assert get_image_format(Path("image.gif")) == "SIDECAR"

    def test_no_extension_is_sidecar(self) -> None:
        assert get_image_format(Path("image")) == "SIDECAR"


class TestSniffing:
    """Tests for signature sniffing helpers."""

    def test_png_signature(self) -> None:
        assert is_png_bytes(b"\x89PNG\r\n\x1a\nrest") is True
        assert is_png_bytes(b"\xff\xd8\xff") is False

    def test_jpeg_soi(self) -> None:
        assert is_jpeg_bytes(b"\xff\xd8\xff\xe0") is True
        assert is_jpeg_bytes(b"GIF89a") is False


class TestAtomicWrite:
    """Tests for atomic_write function."""

    def test_temp_name_is_hidden_sibling(self, temp_dir: Path) -> None:
        temp = temp_path_for(temp_dir / "image.png")

        assert temp.parent == temp_dir
        assert temp.name.startswith(".image.png.")
        assert temp.name.endswith(".tmp")

    def test_creates_file(self, temp_dir: Path) -> None:
        target = temp_dir / "new.bin"

        atomic_write(target, b"payload")

        assert target.read_bytes() == b"payload"
        assert not temp_path_for(target).exists()

    def test_replaces_file_and_keeps_mode(self, temp_dir: Path) -> None:
        target = temp_dir / "old.bin"
        target.write_bytes(b"old")
        os.chmod(target, 0o600)

        atomic_write(target, b"new")

        assert target.read_bytes() == b"new"
        assert target.stat().st_mode & 0o777 == 0o600

    def test_failed_rename_cleans_up(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = temp_dir / "image.png"
        target.write_bytes(b"original")

        def fail_replace(src: object, dst: object) -> None:
            raise OSError("rename failed")

        monkeypatch.setattr(os, "replace", fail_replace)

        with pytest.raises(OSError, match="rename failed"):
            atomic_write(target, b"new contents")

        assert target.read_bytes() == b"original"
        assert not temp_path_for(target).exists()

    def test_missing_directory_raises(self, temp_dir: Path) -> None:
        with pytest.raises(OSError):
            atomic_write(temp_dir / "missing" / "file.bin", b"x")
