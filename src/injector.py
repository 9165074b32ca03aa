"""Write generation metadata into PNG and JPEG images.

Handles format-specific differences:
- PNG: two ``iTXt`` chunks, ``parameters`` (A1111 text for other tools)
  and ``sd-metadata`` (this engine's JSON, read back first).
- JPEG: one XMP packet with the prompt in ``dc:description`` and every
  other field as an ``sdx:*`` leaf.
- Anything else: a same-basename ``.json`` sidecar.

Every write is read-modify-write: the current record is resolved, the
patch is merged over it, the file is rewritten through a temp file and a
rename, and the result is read back from disk.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from constants import (
    NS_DC,
    NS_RDF,
    NS_SDX,
    NS_X,
    OWN_METADATA_KEYWORD,
    PARAMETERS_KEYWORD,
    SDX_FIELDS,
    XMP_PACKET_ID,
    XSD_INTEGER,
)
from extractor import read_metadata
from heuristics import compose_generation_block, xml_escape
from jpeg_codec import replace_or_insert_xmp
from models import ImageMetadata, format_number
from png_codec import decode_chunks, encode_chunks, replace_text_chunks
from sidecars import build_sidecar_json, read_json_sidecar, sidecar_paths
from utils import FormatError, atomic_write, get_image_format, is_jpeg_bytes, is_png_bytes

logger = logging.getLogger(__name__)


def compose_parameters(meta: ImageMetadata) -> str:
    """Render *meta* in the A1111 ``parameters`` grammar."""
    settings: list[tuple[str, str]] = []
    if meta.steps is not None:
        settings.append(("Steps", str(meta.steps)))
    if meta.sampler:
        settings.append(("Sampler", meta.sampler))
    if meta.scheduler:
        settings.append(("Schedule type", meta.scheduler))
    if meta.cfg is not None:
        settings.append(("CFG scale", format_number(meta.cfg)))
    if meta.seed is not None:
        settings.append(("Seed", str(meta.seed)))
    if meta.size:
        settings.append(("Size", meta.size))
    if meta.model:
        settings.append(("Model", meta.model))
    return compose_generation_block(meta.prompt, meta.negative, settings)


def _sdx_value(meta: ImageMetadata, name: str) -> str | None:
    value = getattr(meta, name)
    if value is None:
        return None
    if name == "cfg":
        return format_number(value)
    return str(value)


def build_xmp_packet(meta: ImageMetadata) -> bytes:
    """
    Serialise *meta* as a complete XMP packet (``xpacket`` wrapper included).

    Integer seeds carry an ``xsd:integer`` datatype so they read back as
    ``int`` while text seeds stay text.
    """
    lines = [
        f'<?xpacket begin="\ufeff" id="{XMP_PACKET_ID}"?>',
        f'<x:xmpmeta xmlns:x="{NS_X}">',
        f' <rdf:RDF xmlns:rdf="{NS_RDF}">',
        f'  <rdf:Description rdf:about="" xmlns:dc="{NS_DC}" xmlns:sdx="{NS_SDX}">',
    ]
    if meta.prompt is not None:
        lines.extend([
            "   <dc:description>",
            "    <rdf:Alt>",
            f'     <rdf:li xml:lang="x-default">{xml_escape(meta.prompt)}</rdf:li>',
            "    </rdf:Alt>",
            "   </dc:description>",
        ])
    for name in SDX_FIELDS:
        value = _sdx_value(meta, name)
        if value is None:
            continue
        if name == "seed" and isinstance(meta.seed, int):
            lines.append(f'   <sdx:seed rdf:datatype="{XSD_INTEGER}">{value}</sdx:seed>')
        else:
            lines.append(f"   <sdx:{name}>{xml_escape(value)}</sdx:{name}>")
    lines.extend([
        "  </rdf:Description>",
        " </rdf:RDF>",
        "</x:xmpmeta>",
        '<?xpacket end="w"?>',
    ])
    return "\n".join(lines).encode("utf-8")


def embed_png(data: bytes, meta: ImageMetadata) -> bytes:
    """
    Return *data* with fresh ``parameters`` and ``sd-metadata`` chunks.

    Raises:
        FormatError: If the PNG is truncated or lacks ``IHDR``/``IEND``.
    """
    entries = {
        PARAMETERS_KEYWORD: compose_parameters(meta),
        OWN_METADATA_KEYWORD: json.dumps(meta.to_dict(), ensure_ascii=False),
    }
    return encode_chunks(replace_text_chunks(decode_chunks(data), entries))


def embed_jpeg(data: bytes, meta: ImageMetadata) -> bytes:
    """
    Return *data* with its XMP packet regenerated from *meta*.

    Raises:
        FormatError: If the JPEG header segments are malformed.
        ValueError: If the packet does not fit into one APP1 segment.
    """
    return replace_or_insert_xmp(data, build_xmp_packet(meta))


def write_metadata(
    image_path: Path,
    patch: ImageMetadata | Mapping[str, Any] | None,
) -> ImageMetadata:
    """
    Merge *patch* into an image's metadata and write it back.

    Fields that are ``None`` (or missing) in the patch keep their current
    value. PNG and JPEG files are rewritten in place through a temp file
    and an atomic rename; other formats get a ``.json`` sidecar.

    Args:
        image_path: Path to the image file.
        patch: Fields to set.

    Returns:
        The record read back from disk after the write.

    Raises:
        FormatError: If the file's bytes contradict its PNG/JPEG extension
            or the container cannot be rewritten.
        OSError: If the file cannot be read or the directory is not writable.
    """
    image_path = Path(image_path)
    data = image_path.read_bytes()
    merged = read_metadata(image_path).merge(patch)
    image_format = get_image_format(image_path)

    if is_png_bytes(data):
        atomic_write(image_path, embed_png(data, merged))
    elif is_jpeg_bytes(data):
        atomic_write(image_path, embed_jpeg(data, merged))
    elif image_format in ("PNG", "JPEG"):
        raise FormatError(f"{image_path.name} is not a valid {image_format} file")
    else:
        sidecar = sidecar_paths(image_path)[0]
        atomic_write(sidecar, build_sidecar_json(merged))
        logger.info("Wrote metadata sidecar %s", sidecar)
        meta = read_json_sidecar(sidecar) or ImageMetadata()
        meta.raw = {"source": "sidecar", "path": str(sidecar)}
        return meta

    logger.info("Wrote metadata to %s", image_path)
    return read_metadata(image_path)
