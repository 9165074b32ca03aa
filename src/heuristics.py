"""Stateless text, JSON and XMP heuristics shared by the lifters.

Every function here is pure: it takes text or bytes and returns a value,
or ``None``/an empty container when nothing could be extracted. Only
programmer errors (wrong argument types) raise.

Covers:

- the A1111 "parameters" grammar (parse and compose)
- balanced-brace JSON extraction from free text
- UTF-16/UTF-8 sniffing for tools that mis-tag their encoding
- regex-based XMP scraping (no XML parser required)
- text sanitisation and tool fingerprinting
"""

from __future__ import annotations

import codecs
import html
import json
import re
from typing import Any, NamedTuple

from constants import (
    EXIF_COMMENT_PREFIXES,
    GENERATOR_UNKNOWN,
    NEGATIVE_PROMPT_MARKER,
    SETTINGS_BOUNDARY_KEYS,
    TOOL_FINGERPRINTS,
)

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HSPACE_RE = re.compile(r"[ \t]+")
_LINE_EDGE_RE = re.compile(r" *\n *")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

_BOUNDARY_KEYS = "|".join(
    re.escape(key) for key in sorted(SETTINGS_BOUNDARY_KEYS, key=len, reverse=True)
)
_SETTINGS_BOUNDARY_RE = re.compile(
    r"(?:^|(?<=[\n,]))[ \t]*(?:%s)\b(?:[ \t]+[A-Za-z]+)?[ \t]*:" % _BOUNDARY_KEYS
)
_STEPS_EVIDENCE_RE = re.compile(r"\bSteps:\s*\d+")

_JSON_START_RE = re.compile(r'\{\s*"')
_TEXT_RUN_RE = r"[^\x00-\x08\x0b\x0c\x0e-\x1f\x7f\ufffd]{%d,}"

_XMP_DESCRIPTION_RE = re.compile(r"<dc:description\b[^>]*>(.*?)</dc:description>", re.S)
_XMP_DESCRIPTION_ATTR_RE = re.compile(r'\bdc:description="([^"]*)"')
_XMP_LI_RE = re.compile(r"<rdf:li\b([^>]*)>(.*?)</rdf:li>", re.S)
_SDX_ELEMENT_RE = re.compile(r"<sdx:(\w+)\b([^>]*)>(.*?)</sdx:\1>", re.S)
_SDX_ATTR_RE = re.compile(r'\bsdx:(\w+)="([^"]*)"')
_DATATYPE_RE = re.compile(r'rdf:datatype="([^"]*)"')
_DESCRIPTIVE_ELEMENT_RE = re.compile(
    r"<((?:[\w-]+:)?(?:description|usercomment|imagedescription|parameters|prompt|comment|caption))\b[^>]*>"
    r"([^<]+)</\1>",
    re.I,
)
_DESCRIPTIVE_ATTR_RE = re.compile(
    r'\b(?:[\w-]+:)?(?:description|usercomment|imagedescription|parameters|prompt|comment)="([^"]+)"',
    re.I,
)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.S)


class GenerationBlock(NamedTuple):
    """An A1111-style text block split into its three parts."""

    positive: str
    negative: str | None
    settings: dict[str, str]


# ── Text normalisation ──────────────────────────────────────────────

def sanitize_text(value: str) -> str:
    """
    Strip control characters, collapse repeated whitespace and trim.

    Newlines survive (prompts are often multi-line) but runs of blank
    lines are reduced to one.

    Raises:
        TypeError: If *value* is not a string.
    """
    if not isinstance(value, str):
        raise TypeError(f"sanitize_text expects str, got {type(value).__name__}")
    text = value.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_RE.sub("", text)
    text = _HSPACE_RE.sub(" ", text)
    text = _LINE_EDGE_RE.sub("\n", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def normalize_model_name(name: str) -> str:
    """Strip directory parts from a checkpoint path, keeping the extension."""
    return re.split(r"[\\/]", name.strip())[-1]


def detect_generator(*texts: str | None) -> str:
    """Return the generator whose fingerprint appears in any of *texts*."""
    haystack = " ".join(t for t in texts if t).lower()
    for fingerprint, generator in TOOL_FINGERPRINTS:
        if fingerprint in haystack:
            return generator
    return GENERATOR_UNKNOWN


# ── Byte decoding ───────────────────────────────────────────────────

def detect_encoding(data: bytes) -> str:
    """
    Guess whether *data* is UTF-16 (either byte order) or UTF-8.

    BOMs win; otherwise the share of NUL bytes at odd and even offsets of
    a leading sample decides. Mostly-ASCII UTF-16LE text has NULs at odd
    offsets, UTF-16BE at even ones.
    """
    if data.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    if data.startswith(codecs.BOM_UTF16_LE):
        return "utf-16-le"
    if data.startswith(codecs.BOM_UTF16_BE):
        return "utf-16-be"

    sample = data[:4096]
    half = len(sample) // 2
    if half == 0:
        return "utf-8"
    odd_nulls = sample[1::2].count(0)
    even_nulls = sample[0::2].count(0)
    if odd_nulls / half > 0.3 and even_nulls / half < 0.1:
        return "utf-16-le"
    if even_nulls / half > 0.3 and odd_nulls / half < 0.1:
        return "utf-16-be"
    return "utf-8"


def decode_candidate(data: bytes | str) -> str:
    """
    Decode bytes harvested from a container into text.

    Understands the 8-byte EXIF UserComment character-code prefixes and
    recovers UTF-16 text stored without (or with a wrong) encoding tag.
    Undecodable UTF-8 falls back to Latin-1; trailing NULs are dropped.
    """
    if isinstance(data, str):
        return data.strip("\x00")
    if isinstance(data, (bytearray, memoryview)):
        data = bytes(data)

    kind = EXIF_COMMENT_PREFIXES.get(data[:8])
    if kind is not None:
        data = data[8:]

    encoding = detect_encoding(data)
    if kind == "unicode" and not encoding.startswith("utf-16"):
        # EXIF UNICODE without NUL bytes in the sample (e.g. all CJK)
        encoding = "utf-16-be"

    if encoding.startswith("utf-16"):
        text = data.decode(encoding, errors="replace")
    else:
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError:
            text = data.decode("latin-1")
    return text.lstrip("\ufeff").strip("\x00")


# ── A1111 grammar ───────────────────────────────────────────────────

def split_settings(line: str) -> dict[str, str]:
    """
    Tokenize an A1111 settings line into ``{key: value}``.

    Commas (and newlines) separate tokens except inside brackets or
    double quotes, so ``(masterpiece:1.2)`` and quoted values such as
    ``Lora hashes: "a: 1, b: 2"`` stay whole. Each token splits on its
    first colon; the first occurrence of a key wins.
    """
    tokens: list[str] = []
    current: list[str] = []
    depth = 0
    in_quote = False
    escaped = False
    for ch in line:
        if in_quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_quote = False
            continue
        if ch == '"':
            in_quote = True
        elif ch in "([{":
            depth += 1
        elif ch in ")]}" and depth > 0:
            depth -= 1
        elif ch in ",\n" and depth == 0:
            tokens.append("".join(current))
            current = []
            continue
        current.append(ch)
    tokens.append("".join(current))

    settings: dict[str, str] = {}
    for token in tokens:
        key, sep, value = token.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        settings.setdefault(key, _unquote(value.strip()))
    return settings


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        try:
            decoded = json.loads(value)
        except ValueError:
            return value[1:-1]
        if isinstance(decoded, str):
            return decoded
    return value


def _quote(value: str) -> str:
    if any(ch in value for ch in ',:\n"'):
        return json.dumps(value, ensure_ascii=False)
    return value


def parse_generation_block(text: str) -> GenerationBlock | None:
    """
    Split an A1111-style block into prompt, negative prompt and settings.

    The literal ``"Negative prompt:"`` separates the prompt from the
    negative prompt; the settings start at the first line- or
    comma-anchored occurrence of a known settings key. A prompt that
    itself contains ``"Negative prompt:"`` is mis-split, matching the
    behaviour of every other reader of this format.

    Returns:
        The parsed block, or ``None`` for blank input.
    """
    if not isinstance(text, str):
        raise TypeError(f"parse_generation_block expects str, got {type(text).__name__}")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if not text.strip():
        return None

    negative: str | None = None
    marker = text.find(NEGATIVE_PROMPT_MARKER)
    if marker >= 0:
        positive = text[:marker]
        tail = text[marker + len(NEGATIVE_PROMPT_MARKER):]
        boundary = _SETTINGS_BOUNDARY_RE.search(tail)
        if boundary:
            negative, settings_text = tail[: boundary.start()], tail[boundary.start():]
        else:
            negative, settings_text = tail, ""
        negative = negative.strip().rstrip(",").strip()
    else:
        boundary = _SETTINGS_BOUNDARY_RE.search(text)
        if boundary:
            positive, settings_text = text[: boundary.start()], text[boundary.start():]
        else:
            positive, settings_text = text, ""

    positive = positive.strip().rstrip(",").strip()
    return GenerationBlock(positive, negative, split_settings(settings_text))


def looks_like_generation_block(text: str) -> bool:
    """True when *text* carries evidence of the A1111 grammar."""
    return NEGATIVE_PROMPT_MARKER in text or bool(_STEPS_EVIDENCE_RE.search(text))


def compose_generation_block(
    prompt: str | None,
    negative: str | None,
    settings: list[tuple[str, str]],
) -> str:
    """
    Render the A1111 grammar: prompt line, ``Negative prompt:`` line and a
    comma-separated ``Key: Value`` line. Values containing separators are
    JSON-quoted so :func:`split_settings` reads them back intact.
    """
    lines = [prompt or ""]
    if negative:
        lines.append(f"{NEGATIVE_PROMPT_MARKER} {negative}")
    if settings:
        lines.append(", ".join(f"{key}: {_quote(value)}" for key, value in settings))
    return "\n".join(lines)


# ── JSON ────────────────────────────────────────────────────────────

def extract_balanced_json(text: str, start: int = 0, max_length: int | None = None) -> str | None:
    """
    Return the brace-balanced substring beginning at the first ``{`` at or
    after *start*.

    Quoted strings (with backslash escapes) are skipped so braces inside
    values do not count. Returns ``None`` when no ``{`` exists or the
    braces never balance within *max_length* characters.
    """
    begin = text.find("{", start)
    if begin < 0:
        return None
    limit = len(text) if max_length is None else min(len(text), begin + max_length)

    depth = 0
    in_string = False
    escaped = False
    for index in range(begin, limit):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[begin: index + 1]
    return None


def try_parse_json(text: Any) -> Any | None:
    """Parse *text* as a JSON object or array, or return ``None``."""
    if not isinstance(text, str):
        return None
    stripped = text.strip().strip("\x00")
    if not stripped or stripped[0] not in "{[":
        return None
    try:
        return json.loads(stripped)
    except (ValueError, RecursionError):
        return None


def find_json_objects(text: str, max_length: int | None = None) -> list[dict[str, Any]]:
    """
    Collect every non-empty JSON object embedded in free text.

    Only ``{`` followed by a quoted key starts a candidate, which keeps the
    scan over binary noise short.
    """
    found: list[dict[str, Any]] = []
    position = 0
    while True:
        match = _JSON_START_RE.search(text, position)
        if match is None:
            break
        candidate = extract_balanced_json(text, match.start(), max_length)
        if candidate is None:
            position = match.start() + 1
            continue
        parsed = try_parse_json(candidate)
        if isinstance(parsed, dict) and parsed:
            found.append(parsed)
            position = match.start() + len(candidate)
        else:
            position = match.start() + 1
    return found


def load_json_candidate(text: str) -> Any | None:
    """Parse *text* whole, or failing that the first balanced object inside it."""
    parsed = try_parse_json(text)
    if parsed is not None:
        return parsed
    candidate = extract_balanced_json(text)
    return try_parse_json(candidate) if candidate else None


def extract_text_runs(text: str, min_length: int) -> list[str]:
    """Return printable runs of at least *min_length* characters."""
    return re.findall(_TEXT_RUN_RE % min_length, text)


# ── XMP scraping ────────────────────────────────────────────────────

def _xml_text(value: str) -> str:
    cdata = _CDATA_RE.findall(value)
    if cdata:
        return "".join(cdata)
    return html.unescape(value)


def xml_escape(value: str) -> str:
    """Escape text for an XML element body or attribute."""
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def extract_xmp_description(xml: str) -> str | None:
    """
    Return the ``dc:description`` text of an XMP packet.

    The ``x-default`` language alternative is preferred; the first
    ``rdf:li`` is used otherwise.
    """
    match = _XMP_DESCRIPTION_RE.search(xml)
    if match is None:
        attr = _XMP_DESCRIPTION_ATTR_RE.search(xml)
        return _xml_text(attr.group(1)) if attr else None

    body = match.group(1)
    items = _XMP_LI_RE.findall(body)
    if not items:
        return _xml_text(body).strip() or None
    for attrs, value in items:
        if "x-default" in attrs:
            return _xml_text(value)
    return _xml_text(items[0][1])


def extract_sdx_tags(xml: str) -> dict[str, str]:
    """Return the private ``sdx:*`` leaf values (element or attribute form)."""
    tags: dict[str, str] = {}
    for name, _attrs, value in _SDX_ELEMENT_RE.findall(xml):
        tags.setdefault(name, _xml_text(value))
    for name, value in _SDX_ATTR_RE.findall(xml):
        tags.setdefault(name, _xml_text(value))
    return tags


def extract_sdx_datatypes(xml: str) -> dict[str, str]:
    """Return ``{tag: rdf:datatype}`` for typed ``sdx:*`` elements."""
    datatypes: dict[str, str] = {}
    for name, attrs, _value in _SDX_ELEMENT_RE.findall(xml):
        match = _DATATYPE_RE.search(attrs)
        if match:
            datatypes.setdefault(name, match.group(1))
    return datatypes


def scrape_xmp_strings(xml: str) -> list[str]:
    """
    Collect description-like strings from an XMP packet by text search.

    Gathers every ``rdf:li`` value plus the bodies and attributes of
    description/comment/prompt-like properties, deduplicated in order.
    """
    values: list[str] = []
    for _attrs, value in _XMP_LI_RE.findall(xml):
        values.append(value)
    for _tag, value in _DESCRIPTIVE_ELEMENT_RE.findall(xml):
        values.append(value)
    values.extend(_DESCRIPTIVE_ATTR_RE.findall(xml))

    seen: set[str] = set()
    strings: list[str] = []
    for value in values:
        text = _xml_text(value).strip()
        if text and text not in seen:
            seen.add(text)
            strings.append(text)
    return strings
