"""Low-level utility helpers used across the metadata pipeline.

Format routing, the container error type and the temp-file writer live
here so that higher-level modules can import them without circular
dependencies.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from constants import EXIF_ROUTE_FORMATS, JPEG_SOI, PNG_SIGNATURE, SUPPORTED_FORMATS

logger = logging.getLogger(__name__)


class FormatError(ValueError):
    """Raised when bytes do not match the container format they claim to be."""


def is_supported_format(file_path: Path) -> bool:
    """
    Check if the file format can carry embedded metadata.

    Args:
        file_path: Path to the image file.

    Returns:
        True if the format is supported, False otherwise.
    """
    return file_path.suffix.lower() in SUPPORTED_FORMATS


def get_image_format(file_path: Path) -> str:
    """
    Get the container route for a file path.

    Args:
        file_path: Path to the image file.

    Returns:
        ``"PNG"``, ``"JPEG"``, ``"WEBP"`` or ``"SIDECAR"`` for everything
        that can only be described by a sidecar file.
    """
    suffix = file_path.suffix.lower()
    if suffix == ".png":
        return "PNG"
    if suffix in {".jpg", ".jpeg"}:
        return "JPEG"
    if suffix in EXIF_ROUTE_FORMATS:
        return suffix.lstrip(".").upper()
    return "SIDECAR"


def is_png_bytes(data: bytes) -> bool:
    return data.startswith(PNG_SIGNATURE)


def is_jpeg_bytes(data: bytes) -> bool:
    return data.startswith(JPEG_SOI)


def temp_path_for(target: Path) -> Path:
    """Hidden same-directory temp name, unique per target and process."""
    return target.with_name(f".{target.name}.{os.getpid()}.tmp")


def atomic_write(target: Path, payload: bytes) -> None:
    """
    Replace *target* with *payload* via a temp file and a rename.

    The temp file sits next to the target so the rename never crosses a
    filesystem, and it inherits an existing target's permission bits. It
    is removed whether or not the rename happened.

    Args:
        target: File to create or replace.
        payload: Complete new file contents.

    Raises:
        OSError: If the directory is not writable or the rename fails.
    """
    target = Path(target)
    temp = temp_path_for(target)
    try:
        with open(temp, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        if target.exists():
            os.chmod(temp, target.stat().st_mode & 0o7777)
        os.replace(temp, target)
    finally:
        try:
            temp.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove temp file %s: %s", temp, e)
