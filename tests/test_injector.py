"""Tests for injector module."""

import os
from pathlib import Path

import pytest
from PIL import Image

from extractor import read_metadata
from heuristics import extract_sdx_tags
from injector import build_xmp_packet, compose_parameters, embed_png, write_metadata
from jpeg_codec import find_xmp, split_segments
from models import ImageMetadata
from png_codec import crc32, decode_chunks, read_text_chunks
from utils import FormatError

PATCH = {
    "prompt": "a red fox, (masterpiece:1.2)",
    "negative": "blurry, lowres",
    "steps": 30,
    "cfg": 6.5,
    "seed": 123456789,
    "size": "512x768",
    "model": "models/dreamshaper_8.safetensors",
    "sampler": "DPM++ 2M",
    "scheduler": "Karras",
    "generator": "A1111",
}


def _png_crcs_valid(data: bytes) -> bool:
    offset = 8
    while offset < len(data):
        length = int.from_bytes(data[offset:offset + 4], "big")
        chunk_type = data[offset + 4:offset + 8]
        body = data[offset + 8:offset + 8 + length]
        stored = int.from_bytes(data[offset + 8 + length:offset + 12 + length], "big")
        if crc32(chunk_type, body) != stored:
            return False
        offset += 12 + length
    return True


class TestComposeParameters:
    """Tests for compose_parameters function."""

    def test_full_record(self) -> None:
        text = compose_parameters(ImageMetadata(**PATCH))

        assert text == (
            "a red fox, (masterpiece:1.2)\n"
            "Negative prompt: blurry, lowres\n"
            "Steps: 30, Sampler: DPM++ 2M, Schedule type: Karras, CFG scale: 6.5, "
            "Seed: 123456789, Size: 512x768, Model: dreamshaper_8.safetensors"
        )

    def test_prompt_only(self) -> None:
        assert compose_parameters(ImageMetadata(prompt="a cat")) == "a cat"


class TestBuildXmpPacket:
    """Tests for build_xmp_packet function."""

    def test_escapes_and_tags(self) -> None:
        packet = build_xmp_packet(ImageMetadata(prompt='a <b> & "c"', negative="x", seed=5)).decode("utf-8")

        assert "a &lt;b&gt; &amp; &quot;c&quot;" in packet
        assert '<sdx:seed rdf:datatype="http://www.w3.org/2001/XMLSchema#integer">5</sdx:seed>' in packet
        assert packet.startswith("<?xpacket begin=")
        assert packet.endswith('<?xpacket end="w"?>')

    def test_text_seed_untyped(self) -> None:
        packet = build_xmp_packet(ImageMetadata(prompt="a", seed="abc")).decode("utf-8")

        assert "<sdx:seed>abc</sdx:seed>" in packet

    def test_absent_fields_omitted(self) -> None:
        tags = extract_sdx_tags(build_xmp_packet(ImageMetadata(prompt="a")).decode("utf-8"))

        assert tags == {"generator": "Unknown"}


class TestWritePng:
    """Tests for writing PNG files."""

    def test_round_trip(self, sample_png: Path) -> None:
        expected = read_metadata(sample_png).merge(PATCH)

        result = write_metadata(sample_png, PATCH)

        assert result.fields_equal(expected)
        assert read_metadata(sample_png).fields_equal(expected)
        assert result.raw["stage"] == "sd-metadata"

    def test_merge_keeps_existing_fields(self, a1111_png: Path) -> None:
        result = write_metadata(a1111_png, {"steps": 50, "prompt": None})

        assert result.prompt == "a cat"
        assert result.negative == "blurry"
        assert result.steps == 50
        assert result.model == "foo.safetensors"

    def test_container_stays_valid(self, a1111_png: Path) -> None:
        write_metadata(a1111_png, PATCH)
        data = a1111_png.read_bytes()

        assert data.startswith(b"\x89PNG\r\n\x1a\n")
        assert data.count(b"IEND") == 1
        assert data.endswith(b"IEND\xaeB`\x82")
        assert _png_crcs_valid(data)
        with Image.open(a1111_png) as img:
            img.load()
            assert img.size == (64, 64)

    def test_reserved_chunks_replaced(self, a1111_png: Path) -> None:
        write_metadata(a1111_png, {"prompt": "new"})

        texts = read_text_chunks(decode_chunks(a1111_png.read_bytes()))

        assert len(texts["parameters"]) == 1
        assert len(texts["sd-metadata"]) == 1
        assert texts["parameters"][0].startswith("new\nNegative prompt: blurry")

    def test_idempotent(self, sample_png: Path) -> None:
        write_metadata(sample_png, PATCH)
        first = sample_png.read_bytes()

        write_metadata(sample_png, PATCH)

        assert sample_png.read_bytes() == first

    def test_seed_type_survives(self, sample_png: Path) -> None:
        assert write_metadata(sample_png, {"prompt": "a", "seed": 42}).seed == 42
        assert write_metadata(sample_png, {"seed": "0042"}).seed == "0042"

    def test_special_characters(self, sample_png: Path) -> None:
        prompt = 'line one\nNegative prompt: inside "quotes", 日本語 & <tags>'

        assert write_metadata(sample_png, {"prompt": prompt}).prompt == prompt

    def test_empty_negative_is_written(self, a1111_png: Path) -> None:
        assert write_metadata(a1111_png, {"negative": ""}).negative == ""

    def test_none_patch_keeps_record(self, a1111_png: Path) -> None:
        before = read_metadata(a1111_png)

        assert write_metadata(a1111_png, None).fields_equal(before)

    def test_generator_only_round_trip(self, sample_png: Path) -> None:
        result = write_metadata(sample_png, {"generator": "ComfyUI"})

        assert result.generator == "ComfyUI"
        assert result.is_empty()
        assert read_metadata(sample_png).generator == "ComfyUI"

    def test_missing_iend_raises_and_leaves_file(self, sample_png: Path) -> None:
        data = sample_png.read_bytes()[:-12]
        sample_png.write_bytes(data)

        with pytest.raises(FormatError):
            write_metadata(sample_png, {"prompt": "x"})

        assert sample_png.read_bytes() == data
        assert not list(sample_png.parent.glob(".*.tmp"))

    def test_embed_png_rejects_non_png(self) -> None:
        with pytest.raises(FormatError):
            embed_png(b"not a png", ImageMetadata(prompt="x"))

    def test_preserves_file_mode(self, sample_png: Path) -> None:
        os.chmod(sample_png, 0o640)

        write_metadata(sample_png, {"prompt": "x"})

        assert sample_png.stat().st_mode & 0o777 == 0o640


class TestWriteJpeg:
    """Tests for writing JPEG files."""

    def test_round_trip(self, sample_jpg: Path) -> None:
        expected = read_metadata(sample_jpg).merge(PATCH)

        result = write_metadata(sample_jpg, PATCH)

        assert result.fields_equal(expected)
        assert result.raw["stage"] == "xmp-sdx"

    def test_generator_only_round_trip(self, sample_jpg: Path) -> None:
        result = write_metadata(sample_jpg, {"generator": "ComfyUI"})

        assert result.generator == "ComfyUI"
        assert result.raw["stage"] == "xmp-sdx"
        assert read_metadata(sample_jpg).generator == "ComfyUI"

    def test_scan_data_untouched(self, sample_jpg: Path) -> None:
        before = split_segments(sample_jpg.read_bytes())[1]

        write_metadata(sample_jpg, PATCH)

        assert split_segments(sample_jpg.read_bytes())[1] == before
        with Image.open(sample_jpg) as img:
            img.load()

    def test_exif_source_kept_alongside_xmp(self, a1111_jpg: Path) -> None:
        result = write_metadata(a1111_jpg, {"steps": 44})

        assert result.prompt == "a cat"
        assert result.steps == 44
        assert find_xmp(a1111_jpg.read_bytes()) is not None

    def test_seed_type_survives(self, sample_jpg: Path) -> None:
        assert write_metadata(sample_jpg, {"prompt": "a", "seed": 7}).seed == 7
        assert write_metadata(sample_jpg, {"seed": "007"}).seed == "007"

    def test_special_characters(self, sample_jpg: Path) -> None:
        prompt = 'a <b> & "c", 日本語'

        assert write_metadata(sample_jpg, {"prompt": prompt, "steps": 3}).prompt == prompt

    def test_idempotent(self, sample_jpg: Path) -> None:
        write_metadata(sample_jpg, PATCH)
        first = sample_jpg.read_bytes()

        write_metadata(sample_jpg, PATCH)

        assert sample_jpg.read_bytes() == first


class TestWriteOtherFormats:
    """Tests for the sidecar write route."""

    def test_gif_gets_json_sidecar(self, temp_dir: Path) -> None:
        image = temp_dir / "anim.gif"
        Image.new("RGB", (8, 8)).save(image, "GIF")
        original = image.read_bytes()

        result = write_metadata(image, PATCH)

        assert image.read_bytes() == original
        assert (temp_dir / "anim.json").is_file()
        assert result.prompt == PATCH["prompt"]
        assert result.seed == 123456789
        assert result.raw["source"] == "sidecar"

    def test_jpeg_extension_with_garbage_raises(self, temp_dir: Path) -> None:
        image = temp_dir / "broken.jpg"
        image.write_bytes(b"GIF89a nope")

        with pytest.raises(FormatError):
            write_metadata(image, {"prompt": "x"})

    def test_sidecar_write_ignores_stale_text_sidecar(self, temp_dir: Path) -> None:
        image = temp_dir / "anim.gif"
        Image.new("RGB", (8, 8)).save(image, "GIF")
        (temp_dir / "anim.txt").write_text("from text", encoding="utf-8")

        result = write_metadata(image, {"prompt": ""})

        assert result.prompt != "from text"
        assert result.raw == {"source": "sidecar", "path": str(temp_dir / "anim.json")}
