"""Read-only generation-metadata resolution for PNG, JPEG and WEBP images.

``read_metadata`` runs the ordered resolution chain for the file's
container, falls back to sidecar files, and always returns an
``ImageMetadata``; "nothing found" is a record with generator
``Unknown``. Only container violations (``FormatError``) and I/O errors
propagate.

The module also provides a human-readable summary and the
``<image>.metadata.txt`` text export.
"""

from __future__ import annotations

import io
import json
import logging
import struct
from pathlib import Path
from typing import Any, Callable

import piexif
from PIL import Image, IptcImagePlugin

from constants import (
    COMFYUI_PROMPT_KEYWORDS,
    COMFYUI_WORKFLOW_KEYWORDS,
    EXIF_IFDS,
    EXIF_SOFTWARE_TAGS,
    EXIF_TEXT_TAGS,
    EXPORT_SUFFIX,
    GENERATOR_UNKNOWN,
    INVOKEAI_GRAPH_KEYWORDS,
    INVOKEAI_METADATA_KEYWORDS,
    IPTC_TEXT_DATASETS,
    MAX_JSON_CANDIDATE,
    MAX_SCAN_BYTES,
    MIN_TEXT_RUN,
    OWN_METADATA_KEYWORD,
    PARAMETERS_KEYWORD,
    SOFTWARE_KEYWORDS,
    TEXT_BLOCK_KEYWORDS,
)
from heuristics import (
    decode_candidate,
    detect_generator,
    extract_text_runs,
    find_json_objects,
    load_json_candidate,
    looks_like_generation_block,
    scrape_xmp_strings,
    try_parse_json,
)
from jpeg_codec import extract_comments, find_xmp
from lifters import (
    CandidateShape,
    classify,
    dispatch_json,
    lift_a1111,
    lift_comfy_graph,
    lift_comfy_prompt_map,
    lift_invoke_core,
    lift_invoke_graph,
    lift_json,
    lift_xmp_sdx,
    safe_lift,
)
from models import ImageMetadata, normalize_generator
from png_codec import decode_chunks, read_text_chunks
from sidecars import read_sidecar
from utils import FormatError, atomic_write, get_image_format, is_jpeg_bytes, is_png_bytes

logger = logging.getLogger(__name__)

# (stage name, lifted record, winning payload)
Resolution = tuple[str, ImageMetadata, Any]


def _raw_text(value: Any) -> Any:
    if isinstance(value, bytes):
        return decode_candidate(value)
    return value


# ── PNG ─────────────────────────────────────────────────────────────

def _json_stage(*lifters: Callable[[Any], ImageMetadata | None]) -> Callable[[str], ImageMetadata | None]:
    """Parse a chunk as JSON, then try *lifters* followed by the full dispatch."""
    def lift(value: str) -> ImageMetadata | None:
        payload = load_json_candidate(value)
        if payload is None:
            return None
        for lifter in lifters:
            meta = safe_lift(lifter, payload)
            if meta is not None:
                return meta
        return safe_lift(lift_json, payload)
    return lift


def _lift_own_chunk(value: str) -> ImageMetadata | None:
    payload = try_parse_json(value)
    if not isinstance(payload, dict):
        return None
    if "generator" in payload and "image" not in payload:
        meta = safe_lift(ImageMetadata.from_dict, payload)
        return None if meta is None or meta.is_blank() else meta
    # InvokeAI 2.x wrote its own, different, "sd-metadata" JSON
    return safe_lift(lift_invoke_core, payload) or safe_lift(lift_json, payload)


def _text_block_stage(context: str) -> Callable[[str, str], ImageMetadata | None]:
    def lift(value: str, keyword: str) -> ImageMetadata | None:
        payload = try_parse_json(value)
        if payload is not None:
            meta = safe_lift(lift_json, payload)
            if meta is not None and meta.generator == GENERATOR_UNKNOWN:
                meta.generator = normalize_generator(detect_generator(context))
            return meta
        if keyword != PARAMETERS_KEYWORD and not looks_like_generation_block(value):
            return None
        return safe_lift(lift_a1111, value, context)
    return lift


def resolve_png(data: bytes, debug: dict[str, Any]) -> Resolution | None:
    """
    Run the PNG resolution chain over a PNG byte stream.

    Stages, first non-empty record wins: own ``sd-metadata`` JSON,
    InvokeAI metadata, InvokeAI graph, ComfyUI prompt, ComfyUI workflow,
    ``parameters``/``Comment``/``Description`` text, then a JSON scan of
    every remaining text chunk.

    Args:
        data: PNG file contents.
        debug: Receives the chunk map and full text chunk values.

    Raises:
        FormatError: If *data* is not a PNG stream.
    """
    chunks = decode_chunks(data)
    debug["chunks"] = [{"type": chunk.chunk_type, "length": len(chunk.data)} for chunk in chunks]

    texts: dict[str, list[str]] = {}
    for keyword, values in read_text_chunks(chunks).items():
        texts.setdefault(keyword.lower(), []).extend(values)
    debug["text_chunks"] = {keyword: list(values) for keyword, values in texts.items()}

    context = " ".join(value for keyword in SOFTWARE_KEYWORDS for value in texts.get(keyword, []))
    text_block = _text_block_stage(context)

    stages: list[tuple[str, tuple[str, ...], Callable[[str, str], ImageMetadata | None]]] = [
        ("sd-metadata", (OWN_METADATA_KEYWORD,), lambda value, _kw: _lift_own_chunk(value)),
        ("invokeai-metadata", INVOKEAI_METADATA_KEYWORDS,
         lambda value, _kw: _json_stage(lift_invoke_core)(value)),
        ("invokeai-graph", INVOKEAI_GRAPH_KEYWORDS,
         lambda value, _kw: _json_stage(lift_invoke_graph)(value)),
        ("comfyui-prompt", COMFYUI_PROMPT_KEYWORDS,
         lambda value, _kw: _json_stage(lift_comfy_prompt_map)(value)),
        ("comfyui-workflow", COMFYUI_WORKFLOW_KEYWORDS,
         lambda value, _kw: _json_stage(lift_comfy_graph)(value)),
        ("text-block", TEXT_BLOCK_KEYWORDS, text_block),
    ]

    visited: set[str] = set()
    for stage, keywords, lift in stages:
        for keyword in keywords:
            visited.add(keyword)
            for value in texts.get(keyword, []):
                meta = lift(value, keyword)
                if meta is not None:
                    return stage, meta, value

    for keyword, values in texts.items():
        if keyword in visited:
            continue
        for value in values:
            for payload in find_json_objects(value, MAX_JSON_CANDIDATE):
                found = safe_lift(dispatch_json, payload)
                if found is not None:
                    return f"png-scan:{keyword}", found[1], payload
    return None


# ── JPEG / WEBP ─────────────────────────────────────────────────────

def _exif_value_text(name: str, value: Any) -> str | None:
    if isinstance(value, tuple) and name.startswith("XP"):
        try:
            return bytes(value).decode("utf-16-le", errors="replace").strip("\x00").strip() or None
        except ValueError:
            return None
    if isinstance(value, bytes):
        return decode_candidate(value).strip() or None
    if isinstance(value, str):
        return value.strip() or None
    return None


def load_exif_strings(exif_bytes: bytes, debug: dict[str, Any]) -> tuple[list[str], str]:
    """
    Decode an EXIF block with ``piexif``.

    Returns:
        The candidate strings from the text tags, and the software tag text
        used as tool-fingerprint context.
    """
    try:
        exif_dict = piexif.load(exif_bytes)
    except (ValueError, TypeError, KeyError, IndexError, OSError, struct.error) as e:
        logger.debug("Could not decode EXIF block: %s", e)
        debug["exif_raw"] = f"<{len(exif_bytes)} bytes>"
        return [], ""

    dump: dict[str, Any] = {}
    candidates: list[str] = []
    software: list[str] = []
    for ifd in EXIF_IFDS:
        for tag, value in (exif_dict.get(ifd) or {}).items():
            name = piexif.TAGS.get(ifd, {}).get(tag, {}).get("name", str(tag))
            text = _exif_value_text(name, value)
            dump[name] = text if text is not None else repr(value)
            if text is None:
                continue
            if name in EXIF_TEXT_TAGS:
                candidates.append(text)
            elif name in EXIF_SOFTWARE_TAGS:
                software.append(text)
    debug["exif"] = dump
    return candidates, " ".join(software)


def _iptc_strings(img: Image.Image) -> list[str]:
    info = IptcImagePlugin.getiptcinfo(img)
    if not info:
        return []
    strings = []
    for dataset in IPTC_TEXT_DATASETS:
        values = info.get(dataset)
        if values is None:
            continue
        for value in values if isinstance(values, list) else [values]:
            text = decode_candidate(value).strip()
            if text:
                strings.append(text)
    return strings


def _pillow_tags(data: bytes, debug: dict[str, Any]) -> dict[str, Any]:
    """Let Pillow pick out the EXIF, XMP, comment and IPTC blocks."""
    tags: dict[str, Any] = {}
    try:
        with Image.open(io.BytesIO(data)) as img:
            debug["format"] = img.format
            for key in ("exif", "xmp", "comment"):
                if img.info.get(key):
                    tags[key] = img.info[key]
            tags["iptc"] = _iptc_strings(img)
    except (OSError, SyntaxError, ValueError) as e:
        logger.debug("Pillow could not open image: %s", e)
    return tags


def scan_file_candidates(data: bytes) -> list[Any]:
    """
    Brute-force scan raw bytes for JSON objects and A1111-style text.

    The first ``MAX_SCAN_BYTES`` bytes are decoded as UTF-8 and as
    UTF-16LE at both byte alignments.
    """
    data = data[:MAX_SCAN_BYTES]
    texts = [data.decode("utf-8", errors="replace")]
    for start in (0, 1):
        window = data[start:]
        texts.append(window[: len(window) - len(window) % 2].decode("utf-16-le", errors="replace"))

    candidates: list[Any] = []
    for text in texts:
        candidates.extend(find_json_objects(text, MAX_JSON_CANDIDATE))
        candidates.extend(
            run for run in extract_text_runs(text, MIN_TEXT_RUN) if looks_like_generation_block(run)
        )
    return candidates


def _dedupe(candidates: list[tuple[str, Any]]) -> list[tuple[str, Any]]:
    seen: set[str] = set()
    unique = []
    for source, value in candidates:
        key = json.dumps(value, sort_keys=True, default=str) if not isinstance(value, str) else value.strip()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append((source, value))
    return unique


def lift_candidate(value: Any, context: str = "") -> ImageMetadata | None:
    """Classify a harvested candidate and hand it to the matching lifter."""
    shape = classify(value)
    if shape is None:
        return None
    if shape is CandidateShape.TEXT_BLOCK:
        return safe_lift(lift_a1111, value, context)
    payload = load_json_candidate(value) if isinstance(value, str) else value
    found = safe_lift(dispatch_json, payload)
    if found is None:
        return None
    meta = found[1]
    if meta.generator == GENERATOR_UNKNOWN and context:
        meta.generator = normalize_generator(detect_generator(context))
    return meta


def resolve_exif_route(data: bytes, debug: dict[str, Any]) -> Resolution | None:
    """
    Run the JPEG/WEBP resolution chain.

    The own-format XMP packet is tried first. Otherwise candidates are
    gathered from EXIF, COM segments, XMP strings, IPTC and whole-file
    scans, deduplicated, and lifted in that order.
    """
    tags = _pillow_tags(data, debug)

    xmp: str | None = None
    comments: list[str] = []
    if is_jpeg_bytes(data):
        packet = find_xmp(data)
        if packet is not None:
            xmp = decode_candidate(packet)
        comments = extract_comments(data)
    if xmp is None and tags.get("xmp"):
        xmp = decode_candidate(tags["xmp"])
    if not comments and tags.get("comment"):
        comments = [decode_candidate(tags["comment"])]

    if xmp:
        debug["xmp"] = xmp
        meta = safe_lift(lift_xmp_sdx, xmp)
        if meta is not None:
            return "xmp-sdx", meta, xmp

    context = ""
    candidates: list[tuple[str, Any]] = []
    if tags.get("exif"):
        exif_strings, context = load_exif_strings(tags["exif"], debug)
        candidates.extend(("exif", text) for text in exif_strings)
    candidates.extend(("jpeg-comment", text) for text in comments)
    if xmp:
        candidates.extend(("xmp", text) for text in scrape_xmp_strings(xmp))
    candidates.extend(("iptc", text) for text in tags.get("iptc", []))
    candidates.extend(("file-scan", value) for value in scan_file_candidates(data))

    for source, value in _dedupe(candidates):
        meta = lift_candidate(value, context)
        if meta is not None:
            return source, meta, value
    return None


# ── Public API ──────────────────────────────────────────────────────

def resolve_embedded(data: bytes, image_format: str, debug: dict[str, Any]) -> Resolution | None:
    """
    Resolve metadata embedded in *data*.

    The container is sniffed from the leading bytes; the extension-derived
    *image_format* only decides which error a mismatch raises.

    Raises:
        FormatError: If the bytes match neither PNG nor JPEG and the
            extension claims one of them.
    """
    if is_png_bytes(data):
        return resolve_png(data, debug)
    if is_jpeg_bytes(data) or image_format == "WEBP":
        return resolve_exif_route(data, debug)
    if image_format == "PNG":
        raise FormatError("Not a PNG file: signature mismatch")
    raise FormatError("Not a JPEG file: missing Start-Of-Image marker")


def read_metadata(image_path: Path) -> ImageMetadata:
    """
    Resolve the generation metadata of an image.

    Embedded metadata wins when it carries a prompt or negative prompt;
    otherwise the ``.json`` then ``.txt`` sidecar is consulted. Files the
    engine cannot parse (by extension) only consult sidecars.

    Args:
        image_path: Path to the image file.

    Returns:
        The resolved record. ``raw`` holds ``source`` (``embedded``,
        ``sidecar`` or ``none``), the winning ``stage`` and ``payload`` and
        the container debug data.

    Raises:
        FormatError: If the file's bytes contradict its PNG/JPEG extension.
        OSError: If the file cannot be read.
    """
    image_path = Path(image_path)
    image_format = get_image_format(image_path)
    debug: dict[str, Any] = {}

    found: Resolution | None = None
    if image_format != "SIDECAR":
        found = resolve_embedded(image_path.read_bytes(), image_format, debug)

    if found is not None:
        stage, meta, payload = found
        meta.raw = {"source": "embedded", "stage": stage, "payload": _raw_text(payload), **debug}
        if meta.has_prompt():
            logger.info("Resolved %s from %s", image_path.name, stage)
            return meta

    sidecar = read_sidecar(image_path)
    if sidecar is not None:
        logger.info("Resolved %s from sidecar %s", image_path.name, sidecar.raw.get("path"))
        return sidecar

    if found is not None:
        return found[1]

    logger.debug("No generation metadata in %s", image_path)
    return ImageMetadata(raw={"source": "none", **debug})


def has_generation_metadata(image_path: Path) -> bool:
    """
    Check if an image (or its sidecar) carries generation metadata.

    Args:
        image_path: Path to the image file.

    Returns:
        True if any generation field resolves, False otherwise.
    """
    return not read_metadata(image_path).is_empty()


def _report_lines(meta: ImageMetadata) -> list[str]:
    lines = []
    for label, value in (
        ("Prompt", meta.prompt),
        ("Negative", meta.negative),
        ("Model", meta.model),
        ("Sampler", meta.sampler),
        ("Scheduler", meta.scheduler),
        ("Steps", meta.steps),
        ("CFG", meta.cfg),
        ("Seed", meta.seed),
        ("Size", meta.size),
    ):
        if value is not None and value != "":
            lines.append(f"{label}: {value}")
    return lines


def get_metadata_summary(image_path: Path, max_length: int | None = None) -> str:
    """
    Get a human-readable summary of generation metadata.

    Args:
        image_path: Path to the image file.
        max_length: Truncate values longer than this many characters.

    Returns:
        Formatted string with the metadata summary.
    """
    meta = read_metadata(image_path)
    if meta.is_empty():
        return "No generation metadata found."

    lines = ["Generation Metadata:", "-" * 40, f"Generator: {meta.generator}"]
    for line in _report_lines(meta):
        if max_length is not None and len(line) > max_length:
            line = line[:max_length] + "..."
        lines.append(line)
    lines.append(f"Source: {meta.raw.get('source', 'none')}")
    return "\n".join(lines)


def export_metadata_text(image_path: Path) -> Path:
    """
    Write ``<image>.metadata.txt`` next to the image.

    The file lists the resolved fields followed by a ``--- RAW ---``
    section with the debug data as JSON.

    Returns:
        Path of the written export.
    """
    image_path = Path(image_path)
    meta = read_metadata(image_path)
    lines = _report_lines(meta)
    lines.append("")
    lines.append("--- RAW ---")
    lines.append(json.dumps(meta.raw, indent=2, ensure_ascii=False, default=str))

    output = image_path.with_name(image_path.name + EXPORT_SUFFIX)
    atomic_write(output, "\n".join(lines).encode("utf-8"))
    return output
