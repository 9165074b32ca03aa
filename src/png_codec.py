"""PNG chunk stream reader/writer.

A PNG file is the fixed 8-byte signature followed by chunks of
``length (4) | type (4) | data (length) | CRC32 (4)``. This module
decodes a byte string into an ordered list of :class:`PngChunk`,
re-encodes a list (recomputing every length and CRC), and decodes the
three text-bearing chunk types.

The writer never edits chunks in place: :func:`replace_text_chunks`
returns a new list with reserved keywords removed and fresh ``iTXt``
chunks inserted immediately before ``IEND``.
"""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Iterable, Mapping

from constants import PNG_SIGNATURE, PNG_TEXT_CHUNK_TYPES
from heuristics import decode_candidate
from utils import FormatError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PngChunk:
    """One PNG chunk: a 4-character ASCII type tag and its payload."""

    chunk_type: str
    data: bytes

    @property
    def is_text(self) -> bool:
        return self.chunk_type in PNG_TEXT_CHUNK_TYPES


def crc32(chunk_type: bytes, data: bytes) -> int:
    """PNG CRC-32 (reflected polynomial 0xEDB88320) over type + data."""
    return zlib.crc32(data, zlib.crc32(chunk_type)) & 0xFFFFFFFF


def decode_chunks(data: bytes) -> list[PngChunk]:
    """
    Split a PNG byte stream into its chunks.

    Decoding stops after ``IEND``; trailing bytes are ignored. CRCs are
    not verified here because the encoder recomputes them.

    Args:
        data: Complete PNG file contents.

    Returns:
        Chunks in file order.

    Raises:
        FormatError: If the signature is missing or a chunk overruns the
            buffer.
    """
    if not data.startswith(PNG_SIGNATURE):
        raise FormatError("Not a PNG file: signature mismatch")

    chunks: list[PngChunk] = []
    offset = len(PNG_SIGNATURE)
    total = len(data)

    while offset < total:
        if offset + 8 > total:
            raise FormatError(f"Truncated PNG chunk header at offset {offset}")
        length, raw_type = struct.unpack(">I4s", data[offset: offset + 8])
        end = offset + 8 + length + 4
        if end > total:
            raise FormatError(
                f"PNG chunk {raw_type!r} at offset {offset} overruns the buffer "
                f"({length} bytes declared)"
            )
        chunk_type = raw_type.decode("latin-1")
        chunks.append(PngChunk(chunk_type, data[offset + 8: offset + 8 + length]))
        offset = end
        if chunk_type == "IEND":
            break

    return chunks


def encode_chunks(chunks: Iterable[PngChunk]) -> bytes:
    """Serialise chunks behind the PNG signature with fresh lengths and CRCs."""
    parts = [PNG_SIGNATURE]
    for chunk in chunks:
        raw_type = chunk.chunk_type.encode("latin-1")
        if len(raw_type) != 4:
            raise ValueError(f"PNG chunk type must be 4 bytes: {chunk.chunk_type!r}")
        parts.append(struct.pack(">I", len(chunk.data)))
        parts.append(raw_type)
        parts.append(chunk.data)
        parts.append(struct.pack(">I", crc32(raw_type, chunk.data)))
    return b"".join(parts)


def _inflate(payload: bytes, keyword: str) -> bytes:
    try:
        return zlib.decompress(payload)
    except zlib.error:
        logger.debug("Could not inflate text chunk %r; treating value as empty", keyword)
        return b""


def text_keyword(chunk: PngChunk) -> str | None:
    """Return the keyword of a text chunk without decoding its value."""
    if not chunk.is_text:
        return None
    keyword, sep, _rest = chunk.data.partition(b"\x00")
    if not sep:
        return None
    return keyword.decode("latin-1")


def decode_text_chunk(chunk: PngChunk) -> tuple[str, str] | None:
    """
    Decode a ``tEXt``, ``zTXt`` or ``iTXt`` chunk into ``(keyword, value)``.

    A value that fails to inflate decodes as ``""``. Structurally broken
    chunks (no keyword separator, truncated iTXt header) return ``None``.
    """
    keyword = text_keyword(chunk)
    if keyword is None:
        return None
    payload = chunk.data[len(keyword) + 1:]

    if chunk.chunk_type == "tEXt":
        return keyword, decode_candidate(payload)

    if chunk.chunk_type == "zTXt":
        if not payload:
            return keyword, ""
        # payload[0] is the compression method; only 0 (deflate) exists
        return keyword, decode_candidate(_inflate(payload[1:], keyword))

    if len(payload) < 2:
        return None
    compressed = payload[0] == 1
    rest = payload[2:]
    for _ in range(2):  # language tag, translated keyword
        _field, sep, rest = rest.partition(b"\x00")
        if not sep:
            return None
    if compressed:
        rest = _inflate(rest, keyword)
    return keyword, decode_candidate(rest)


def read_text_chunks(chunks: Iterable[PngChunk]) -> dict[str, list[str]]:
    """
    Collect every text chunk value under its keyword.

    Values accumulate in file order, so a keyword written twice yields a
    two-element list.
    """
    texts: dict[str, list[str]] = {}
    for chunk in chunks:
        if not chunk.is_text:
            continue
        decoded = decode_text_chunk(chunk)
        if decoded is None:
            logger.debug("Skipping malformed %s chunk", chunk.chunk_type)
            continue
        keyword, value = decoded
        texts.setdefault(keyword, []).append(value)
    return texts


def build_itxt_chunk(keyword: str, text: str) -> PngChunk:
    """Build an uncompressed ``iTXt`` chunk with empty language tags."""
    raw_keyword = keyword.encode("latin-1")
    if not 1 <= len(raw_keyword) <= 79:
        raise ValueError(f"PNG keyword must be 1-79 bytes: {keyword!r}")
    data = raw_keyword + b"\x00" + b"\x00\x00" + b"\x00" + b"\x00" + text.encode("utf-8")
    return PngChunk("iTXt", data)


def replace_text_chunks(chunks: list[PngChunk], entries: Mapping[str, str]) -> list[PngChunk]:
    """
    Return a new chunk list carrying *entries* as ``iTXt`` chunks.

    Every existing text chunk whose keyword is in *entries* is dropped;
    the new chunks go immediately before ``IEND`` in *entries* order. All
    other chunks keep their relative order.

    Raises:
        FormatError: If ``IHDR`` is not first or ``IEND`` is missing.
    """
    if not chunks or chunks[0].chunk_type != "IHDR":
        raise FormatError("PNG does not start with an IHDR chunk")
    if chunks[-1].chunk_type != "IEND":
        raise FormatError("PNG is missing its IEND chunk")

    kept = [chunk for chunk in chunks[:-1] if text_keyword(chunk) not in entries]
    fresh = [build_itxt_chunk(keyword, text) for keyword, text in entries.items()]
    return [*kept, *fresh, chunks[-1]]
