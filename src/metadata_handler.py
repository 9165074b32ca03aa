"""Public façade for the metadata engine; re-exports every public symbol.

Consumers should ``import metadata_handler`` rather than reaching into
the internal modules directly. This file gathers all public names so
that the API surface stays stable even as the implementation is
reorganised.

Internal modules:

- ``constants``: configuration tables and detection lists
- ``utils``: format routing, ``FormatError``, atomic file replacement
- ``models``: the ``ImageMetadata`` record
- ``png_codec`` / ``jpeg_codec``: container chunk and segment codecs
- ``heuristics``: text, JSON and XMP heuristics
- ``lifters``: per-tool mapping onto ``ImageMetadata``
- ``sidecars``: ``.json``/``.txt`` sidecar files
- ``extractor``: read metadata from images
- ``injector``: write metadata into images
- ``cloner``: high-level read → write pipeline
"""

from cloner import clone_metadata
from constants import (
    EXPORT_SUFFIX,
    NS_SDX,
    OWN_METADATA_KEYWORD,
    PARAMETERS_KEYWORD,
    PNG_SIGNATURE,
    SUPPORTED_FORMATS,
)
from extractor import (
    export_metadata_text,
    get_metadata_summary,
    has_generation_metadata,
    read_metadata,
)
from heuristics import (
    compose_generation_block,
    detect_encoding,
    decode_candidate,
    extract_balanced_json,
    parse_generation_block,
    sanitize_text,
)
from injector import build_xmp_packet, compose_parameters, write_metadata
from jpeg_codec import JpegSegment, find_xmp, join_segments, replace_or_insert_xmp, split_segments
from lifters import CandidateShape, classify, dispatch_json, lift_a1111, lift_json
from models import DATA_FIELDS, Generator, ImageMetadata, normalize_generator
from png_codec import PngChunk, crc32, decode_chunks, encode_chunks, read_text_chunks, replace_text_chunks
from sidecars import read_sidecar
from utils import FormatError, get_image_format, is_supported_format

__all__ = [
    # Constants
    "SUPPORTED_FORMATS",
    "PNG_SIGNATURE",
    "PARAMETERS_KEYWORD",
    "OWN_METADATA_KEYWORD",
    "NS_SDX",
    "EXPORT_SUFFIX",
    # Utils
    "FormatError",
    "is_supported_format",
    "get_image_format",
    # Models
    "ImageMetadata",
    "Generator",
    "DATA_FIELDS",
    "normalize_generator",
    # Codecs
    "PngChunk",
    "crc32",
    "decode_chunks",
    "encode_chunks",
    "read_text_chunks",
    "replace_text_chunks",
    "JpegSegment",
    "split_segments",
    "join_segments",
    "find_xmp",
    "replace_or_insert_xmp",
    # Heuristics
    "sanitize_text",
    "detect_encoding",
    "decode_candidate",
    "extract_balanced_json",
    "parse_generation_block",
    "compose_generation_block",
    # Lifters
    "CandidateShape",
    "classify",
    "dispatch_json",
    "lift_a1111",
    "lift_json",
    "read_sidecar",
    # Extractor
    "read_metadata",
    "has_generation_metadata",
    "get_metadata_summary",
    "export_metadata_text",
    # Injector
    "write_metadata",
    "compose_parameters",
    "build_xmp_packet",
    # Cloner
    "clone_metadata",
]
