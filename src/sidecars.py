"""Same-basename sidecar files (``<image>.json`` / ``<image>.txt``)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from constants import GENERATOR_SIDECAR_TEXT
from heuristics import decode_candidate
from lifters import lift_a1111, lift_json, safe_lift
from models import ImageMetadata

logger = logging.getLogger(__name__)


def sidecar_paths(image_path: Path) -> tuple[Path, Path]:
    """Return the ``(.json, .txt)`` sidecar paths for *image_path*."""
    image_path = Path(image_path)
    return image_path.with_suffix(".json"), image_path.with_suffix(".txt")


def read_json_sidecar(path: Path) -> ImageMetadata | None:
    """Lift a JSON sidecar through the JSON lifters; bad JSON yields ``None``."""
    try:
        payload = json.loads(decode_candidate(path.read_bytes()))
    except (OSError, ValueError, RecursionError) as e:
        logger.warning("Could not read sidecar %s: %s", path, e)
        return None
    return safe_lift(lift_json, payload)


def read_text_sidecar(path: Path) -> ImageMetadata | None:
    """Lift a plain-text sidecar through the A1111 lifter."""
    try:
        text = decode_candidate(path.read_bytes())
    except OSError as e:
        logger.warning("Could not read sidecar %s: %s", path, e)
        return None
    return safe_lift(lift_a1111, text, fallback_generator=GENERATOR_SIDECAR_TEXT)


def read_sidecar(image_path: Path) -> ImageMetadata | None:
    """
    Read generation metadata from the sidecars next to an image.

    The ``.json`` sidecar is tried first, then the ``.txt`` one. The
    returned record's ``raw`` names the sidecar it came from.

    Args:
        image_path: Path to the image (the image itself need not exist).

    Returns:
        The lifted record, or ``None`` when no sidecar yields one.
    """
    for path, reader in zip(sidecar_paths(image_path), (read_json_sidecar, read_text_sidecar)):
        if not path.is_file():
            continue
        meta = reader(path)
        if meta is not None:
            meta.raw = {"source": "sidecar", "path": str(path)}
            return meta
        logger.debug("Sidecar %s carried no generation metadata", path)
    return None


def sidecar_document(meta: ImageMetadata) -> dict[str, Any]:
    """Map a record onto the sidecar JSON layout."""
    return {
        "prompt": meta.prompt,
        "negative": meta.negative,
        "steps": meta.steps,
        "cfg_scale": meta.cfg,
        "seed": meta.seed,
        "size": meta.size,
        "model": {"name": meta.model} if meta.model is not None else None,
        "sampler": meta.sampler,
        "scheduler": meta.scheduler,
        "generator": meta.generator,
    }


def build_sidecar_json(meta: ImageMetadata) -> bytes:
    """Serialise *meta* as sidecar JSON bytes (UTF-8, trailing newline)."""
    return (json.dumps(sidecar_document(meta), ensure_ascii=False, indent=2) + "\n").encode("utf-8")
