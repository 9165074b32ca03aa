"""sdmeta: AI image generation metadata engine.

Reads the generation parameters that Stable Diffusion front-ends
(A1111, ComfyUI, InvokeAI, NovelAI, SD.Next, Fooocus) leave in PNG text
chunks, JPEG EXIF/XMP/COM segments and sidecar files, normalises them
into one ``ImageMetadata`` record, and writes edits back atomically.
"""

__version__ = "0.2.0"

from metadata_handler import (
    FormatError,
    ImageMetadata,
    clone_metadata,
    export_metadata_text,
    get_metadata_summary,
    has_generation_metadata,
    is_supported_format,
    read_metadata,
    write_metadata,
)

__all__ = [
    "FormatError",
    "ImageMetadata",
    "read_metadata",
    "write_metadata",
    "clone_metadata",
    "has_generation_metadata",
    "get_metadata_summary",
    "export_metadata_text",
    "is_supported_format",
]
