"""JPEG marker segment reader/writer.

Only the header segments between Start-Of-Image and the first
Start-Of-Scan (or End-Of-Image) are parsed. Everything from that marker
to the end of the file (entropy-coded scan data included) is carried
as an opaque tail and written back byte-for-byte.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from constants import (
    JPEG_MARKER_APP1,
    JPEG_MARKER_COM,
    JPEG_MARKER_EOI,
    JPEG_MARKER_SOS,
    JPEG_MAX_SEGMENT_PAYLOAD,
    JPEG_SOI,
    JPEG_STANDALONE_MARKERS,
    XMP_APP1_HEADER,
)
from heuristics import decode_candidate
from utils import FormatError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JpegSegment:
    """A marker segment: the marker byte (after ``0xFF``) and its payload."""

    marker: int
    data: bytes

    @property
    def is_xmp(self) -> bool:
        return self.marker == JPEG_MARKER_APP1 and self.data.startswith(XMP_APP1_HEADER)

    def encode(self) -> bytes:
        if self.marker in JPEG_STANDALONE_MARKERS:
            return bytes((0xFF, self.marker))
        return bytes((0xFF, self.marker)) + struct.pack(">H", len(self.data) + 2) + self.data


def split_segments(data: bytes, strict: bool = True) -> tuple[list[JpegSegment], bytes]:
    """
    Walk the marker segments that precede the image data.

    Args:
        data: Complete JPEG file contents.
        strict: Raise on a truncated or malformed segment instead of
            treating the remainder as the tail.

    Returns:
        ``(segments, tail)`` where *tail* starts at the SOS/EOI marker
        (fill bytes included) and runs to the end of the file.

    Raises:
        FormatError: If *data* does not start with SOI, or (strict only)
            a segment is malformed.
    """
    if not data.startswith(JPEG_SOI):
        raise FormatError("Not a JPEG file: missing Start-Of-Image marker")

    segments: list[JpegSegment] = []
    offset = len(JPEG_SOI)
    total = len(data)

    while offset < total:
        marker_pos = offset
        if data[offset] != 0xFF:
            if strict:
                raise FormatError(f"Expected a JPEG marker at offset {offset}")
            logger.debug("Stray byte at offset %d; stopping segment walk", offset)
            return segments, data[marker_pos:]

        while offset < total and data[offset] == 0xFF:
            offset += 1
        if offset >= total:
            return segments, data[marker_pos:]

        marker = data[offset]
        offset += 1
        if marker in (JPEG_MARKER_SOS, JPEG_MARKER_EOI):
            return segments, data[marker_pos:]
        if marker in JPEG_STANDALONE_MARKERS:
            segments.append(JpegSegment(marker, b""))
            continue

        length = struct.unpack(">H", data[offset: offset + 2])[0] if offset + 2 <= total else 0
        if length < 2 or offset + length > total:
            if strict:
                raise FormatError(f"JPEG segment 0x{marker:02X} at offset {marker_pos} is truncated")
            logger.debug("Truncated JPEG segment 0x%02X at offset %d", marker, marker_pos)
            return segments, data[marker_pos:]
        segments.append(JpegSegment(marker, data[offset + 2: offset + length]))
        offset += length

    return segments, b""


def join_segments(segments: list[JpegSegment], tail: bytes) -> bytes:
    """Inverse of :func:`split_segments`."""
    return JPEG_SOI + b"".join(segment.encode() for segment in segments) + tail


def find_xmp(data: bytes) -> bytes | None:
    """
    Return the XMP packet of the first XMP-carrying APP1 segment.

    The Adobe namespace header is stripped from the returned bytes.

    Raises:
        FormatError: If *data* does not start with SOI.
    """
    segments, _tail = split_segments(data, strict=False)
    for segment in segments:
        if segment.is_xmp:
            return segment.data[len(XMP_APP1_HEADER):]
    return None


def replace_or_insert_xmp(data: bytes, packet: bytes) -> bytes:
    """
    Embed *packet* as the file's only XMP APP1 segment.

    An existing XMP segment is replaced at its position; later duplicates
    are dropped. Without one, the new segment goes immediately before the
    SOS/EOI marker. All other segments pass through unchanged.

    Raises:
        FormatError: If the file is not a well-formed JPEG.
        ValueError: If the packet does not fit into one APP1 segment.
    """
    payload = XMP_APP1_HEADER + packet
    if len(payload) > JPEG_MAX_SEGMENT_PAYLOAD:
        raise ValueError(
            f"XMP packet of {len(packet)} bytes does not fit into a single APP1 segment"
        )

    segments, tail = split_segments(data)
    fresh = JpegSegment(JPEG_MARKER_APP1, payload)
    output: list[JpegSegment] = []
    replaced = False
    for segment in segments:
        if segment.is_xmp:
            if not replaced:
                output.append(fresh)
                replaced = True
            continue
        output.append(segment)
    if not replaced:
        output.append(fresh)
    return join_segments(output, tail)


def extract_comments(data: bytes) -> list[str]:
    """Return the decoded text of every COM segment, in file order."""
    segments, _tail = split_segments(data, strict=False)
    comments = []
    for segment in segments:
        if segment.marker == JPEG_MARKER_COM:
            text = decode_candidate(segment.data).strip()
            if text:
                comments.append(text)
    return comments
