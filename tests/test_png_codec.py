"""Tests for png_codec module."""

import struct
import zlib
from pathlib import Path

import pytest

from conftest import png_chunk
from constants import PNG_SIGNATURE
from png_codec import (
    PngChunk,
    build_itxt_chunk,
    crc32,
    decode_chunks,
    decode_text_chunk,
    encode_chunks,
    read_text_chunks,
    replace_text_chunks,
)
from utils import FormatError


def _with_chunks_before_iend(data: bytes, *extra: bytes) -> bytes:
    iend = data.rfind(b"IEND") - 4
    return data[:iend] + b"".join(extra) + data[iend:]


class TestCrc32:
    """Tests for the chunk CRC."""

    def test_iend_vector(self) -> None:
        assert crc32(b"IEND", b"") == 0xAE426082

    def test_ihdr_vector(self) -> None:
        data = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
        assert crc32(b"IHDR", data) == 0x907753DE

    def test_check_value(self) -> None:
        assert crc32(b"1234", b"56789") == 0xCBF43926


class TestDecodeChunks:
    """Tests for decode_chunks function."""

    def test_decodes_pillow_png(self, sample_png: Path) -> None:
        chunks = decode_chunks(sample_png.read_bytes())

        assert chunks[0].chunk_type == "IHDR"
        assert chunks[-1].chunk_type == "IEND"
        assert any(chunk.chunk_type == "IDAT" for chunk in chunks)

    def test_encode_reproduces_input(self, sample_png: Path) -> None:
        data = sample_png.read_bytes()

        assert encode_chunks(decode_chunks(data)) == data

    def test_rejects_bad_signature(self) -> None:
        with pytest.raises(FormatError):
            decode_chunks(b"GIF89a" + b"\x00" * 20)

    def test_rejects_overrunning_chunk(self, sample_png: Path) -> None:
        data = sample_png.read_bytes()

        with pytest.raises(FormatError):
            decode_chunks(data[: len(data) - 6])

    def test_stops_after_iend(self, sample_png: Path) -> None:
        data = sample_png.read_bytes() + b"trailing garbage"

        chunks = decode_chunks(data)

        assert chunks[-1].chunk_type == "IEND"

    def test_ignores_bad_crc(self, sample_png: Path) -> None:
        data = _with_chunks_before_iend(
            sample_png.read_bytes(),
            struct.pack(">I", 3) + b"tEXt" + b"k\x00v" + b"\x00\x00\x00\x00",
        )

        texts = read_text_chunks(decode_chunks(data))

        assert texts["k"] == ["v"]

    def test_encode_recomputes_crc(self) -> None:
        data = encode_chunks([PngChunk("IEND", b"")])

        assert data == PNG_SIGNATURE + b"\x00\x00\x00\x00IEND\xaeB`\x82"

    def test_encode_rejects_bad_type(self) -> None:
        with pytest.raises(ValueError):
            encode_chunks([PngChunk("TOOLONG", b"")])


class TestTextChunks:
    """Tests for text chunk decoding."""

    def test_text_chunk(self) -> None:
        assert decode_text_chunk(PngChunk("tEXt", b"parameters\x00a cat")) == ("parameters", "a cat")

    def test_text_chunk_latin1_fallback(self) -> None:
        assert decode_text_chunk(PngChunk("tEXt", b"k\x00caf\xe9")) == ("k", "café")

    def test_ztxt_chunk(self) -> None:
        chunk = PngChunk("zTXt", b"k\x00\x00" + zlib.compress(b"compressed text"))

        assert decode_text_chunk(chunk) == ("k", "compressed text")

    def test_corrupted_ztxt_is_empty(self) -> None:
        chunk = PngChunk("zTXt", b"k\x00\x00not deflate data")

        assert decode_text_chunk(chunk) == ("k", "")

    def test_itxt_uncompressed(self) -> None:
        chunk = PngChunk("iTXt", b"k\x00\x00\x00en\x00key\x00" + "日本語".encode("utf-8"))

        assert decode_text_chunk(chunk) == ("k", "日本語")

    def test_itxt_compressed(self) -> None:
        chunk = PngChunk("iTXt", b"k\x00\x01\x00\x00\x00" + zlib.compress("ünïcode".encode("utf-8")))

        assert decode_text_chunk(chunk) == ("k", "ünïcode")

    def test_truncated_itxt_is_skipped(self) -> None:
        assert decode_text_chunk(PngChunk("iTXt", b"k\x00\x00")) is None

    def test_missing_separator_is_skipped(self) -> None:
        assert decode_text_chunk(PngChunk("tEXt", b"no separator")) is None

    def test_corrupted_ztxt_does_not_stop_later_chunks(self, sample_png: Path) -> None:
        data = _with_chunks_before_iend(
            sample_png.read_bytes(),
            png_chunk(b"zTXt", b"broken\x00\x00garbage"),
            png_chunk(b"tEXt", b"parameters\x00a cat"),
        )

        texts = read_text_chunks(decode_chunks(data))

        assert texts["broken"] == [""]
        assert texts["parameters"] == ["a cat"]

    def test_repeated_keyword_accumulates(self) -> None:
        chunks = [PngChunk("tEXt", b"k\x00one"), PngChunk("iTXt", b"k\x00\x00\x00\x00\x00two")]

        assert read_text_chunks(chunks) == {"k": ["one", "two"]}


class TestReplaceTextChunks:
    """Tests for replace_text_chunks function."""

    def _chunks(self) -> list[PngChunk]:
        return [
            PngChunk("IHDR", b"\x00" * 13),
            PngChunk("tEXt", b"parameters\x00old"),
            PngChunk("tEXt", b"Software\x00tool"),
            PngChunk("IDAT", b"pixels"),
            PngChunk("IEND", b""),
        ]

    def test_inserts_before_iend(self) -> None:
        result = replace_text_chunks(self._chunks(), {"parameters": "new", "sd-metadata": "{}"})

        assert [c.chunk_type for c in result] == ["IHDR", "tEXt", "IDAT", "iTXt", "iTXt", "IEND"]
        assert read_text_chunks(result) == {"Software": ["tool"], "parameters": ["new"], "sd-metadata": ["{}"]}

    def test_does_not_mutate_input(self) -> None:
        chunks = self._chunks()
        before = list(chunks)

        replace_text_chunks(chunks, {"parameters": "new"})

        assert chunks == before

    def test_requires_iend(self) -> None:
        with pytest.raises(FormatError):
            replace_text_chunks(self._chunks()[:-1], {"parameters": "x"})

    def test_requires_ihdr_first(self) -> None:
        with pytest.raises(FormatError):
            replace_text_chunks(self._chunks()[1:], {"parameters": "x"})


class TestBuildItxtChunk:
    """Tests for build_itxt_chunk function."""

    def test_round_trips_unicode(self) -> None:
        chunk = build_itxt_chunk("parameters", "a café ☕")

        assert decode_text_chunk(chunk) == ("parameters", "a café ☕")

    def test_rejects_empty_keyword(self) -> None:
        with pytest.raises(ValueError):
            build_itxt_chunk("", "x")

    def test_rejects_long_keyword(self) -> None:
        with pytest.raises(ValueError):
            build_itxt_chunk("k" * 80, "x")
