"""High-level metadata cloning between images.

Orchestrates the read → write pipeline by combining the ``extractor``
and ``injector`` modules into one call.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from extractor import read_metadata
from injector import write_metadata
from models import ImageMetadata

logger = logging.getLogger(__name__)


def clone_metadata(
    source_path: Path,
    target_path: Path,
    output_path: Path | None = None,
) -> ImageMetadata:
    """
    Clone generation metadata from source image to target image.

    The source record is merged over whatever the target already carries,
    so fields the source lacks keep the target's values.

    Args:
        source_path: Path to the source image file (metadata donor).
        target_path: Path to the target image file (image donor).
        output_path: Optional output path. If not provided, modifies target in place.

    Returns:
        The metadata read back from the written file.
    """
    metadata = read_metadata(Path(source_path))
    if metadata.is_empty():
        logger.warning("No generation metadata found in %s", source_path)

    if output_path is None:
        output_path = target_path
    elif Path(output_path) != Path(target_path):
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(target_path, output_path)

    return write_metadata(Path(output_path), metadata)


__all__ = ["clone_metadata"]
