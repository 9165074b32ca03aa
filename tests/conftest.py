"""Test configuration and fixtures."""

from __future__ import annotations

import json
import tempfile
import zlib
from pathlib import Path
from typing import Generator

import piexif
import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo

A1111_PARAMETERS = (
    "a cat\n"
    "Negative prompt: blurry\n"
    "Steps: 20, Sampler: Euler a, CFG scale: 7, Seed: 42, Size: 512x512, Model: foo.safetensors"
)

COMFY_PROMPT = {
    "3": {
        "class_type": "KSampler",
        "inputs": {
            "seed": 1234,
            "steps": 25,
            "cfg": 6.5,
            "sampler_name": "dpmpp_2m",
            "scheduler": "karras",
            "denoise": 1.0,
            "model": ["4", 0],
            "positive": ["6", 0],
            "negative": ["7", 0],
            "latent_image": ["5", 0],
        },
    },
    "4": {
        "class_type": "CheckpointLoaderSimple",
        "inputs": {"ckpt_name": "models/sdxl/juggernaut.safetensors"},
    },
    "5": {
        "class_type": "EmptyLatentImage",
        "inputs": {"width": 1024, "height": 768, "batch_size": 1},
    },
    "6": {"class_type": "CLIPTextEncode", "inputs": {"text": "a lighthouse at dusk", "clip": ["4", 1]}},
    "7": {"class_type": "CLIPTextEncode", "inputs": {"text": "lowres, watermark", "clip": ["4", 1]}},
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_png(temp_dir: Path) -> Path:
    """Create a sample PNG image without metadata."""
    img_path = temp_dir / "sample.png"
    img = Image.new("RGB", (64, 64), color="red")
    img.save(img_path, "PNG")
    return img_path


@pytest.fixture
def sample_jpg(temp_dir: Path) -> Path:
    """Create a sample JPG image without metadata."""
    img_path = temp_dir / "sample.jpg"
    img = Image.new("RGB", (64, 64), color="blue")
    img.save(img_path, "JPEG")
    return img_path


@pytest.fixture
def a1111_png(temp_dir: Path) -> Path:
    """Create a PNG with an A1111 ``parameters`` chunk."""
    img_path = temp_dir / "a1111.png"
    metadata = PngInfo()
    metadata.add_text("parameters", A1111_PARAMETERS)
    Image.new("RGB", (64, 64), color="green").save(img_path, "PNG", pnginfo=metadata)
    return img_path


@pytest.fixture
def comfy_png(temp_dir: Path) -> Path:
    """Create a PNG with a ComfyUI ``prompt`` chunk."""
    img_path = temp_dir / "comfy.png"
    metadata = PngInfo()
    metadata.add_text("prompt", json.dumps(COMFY_PROMPT))
    Image.new("RGB", (64, 64), color="purple").save(img_path, "PNG", pnginfo=metadata)
    return img_path


@pytest.fixture
def a1111_jpg(temp_dir: Path) -> Path:
    """Create a JPG whose EXIF UserComment holds A1111 parameters."""
    img_path = temp_dir / "a1111.jpg"
    user_comment = b"UNICODE\x00" + A1111_PARAMETERS.encode("utf-16-be")
    exif = piexif.dump({"0th": {}, "Exif": {piexif.ExifIFD.UserComment: user_comment}, "1st": {}, "GPS": {}})
    Image.new("RGB", (64, 64), color="orange").save(img_path, "JPEG", exif=exif)
    return img_path


def png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    """Encode one raw PNG chunk, for fixtures the codec must not build itself."""
    crc = zlib.crc32(chunk_type + data) & 0xFFFFFFFF
    return len(data).to_bytes(4, "big") + chunk_type + data + crc.to_bytes(4, "big")
