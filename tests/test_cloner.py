"""Tests for cloner module."""

from pathlib import Path

from PIL import Image

from cloner import clone_metadata
from extractor import read_metadata


class TestCloneMetadata:
    """Tests for clone_metadata function."""

    def test_clones_to_output(self, a1111_png: Path, sample_png: Path, temp_dir: Path) -> None:
        output_path = temp_dir / "output.png"

        result = clone_metadata(a1111_png, sample_png, output_path)

        assert output_path.exists()
        assert result.prompt == "a cat"
        assert result.model == "foo.safetensors"
        assert read_metadata(output_path).fields_equal(result)

    def test_output_keeps_target_pixels(self, a1111_png: Path, sample_png: Path, temp_dir: Path) -> None:
        output_path = temp_dir / "output.png"

        clone_metadata(a1111_png, sample_png, output_path)

        with Image.open(output_path) as img:
            assert img.getpixel((0, 0)) == (255, 0, 0)

    def test_target_untouched_with_output(self, a1111_png: Path, sample_png: Path, temp_dir: Path) -> None:
        original = sample_png.read_bytes()

        clone_metadata(a1111_png, sample_png, temp_dir / "output.png")

        assert sample_png.read_bytes() == original

    def test_clones_in_place(self, comfy_png: Path, sample_png: Path) -> None:
        result = clone_metadata(comfy_png, sample_png)

        assert result.generator == "ComfyUI"
        assert read_metadata(sample_png).prompt == "a lighthouse at dusk"

    def test_png_to_jpeg(self, comfy_png: Path, sample_jpg: Path) -> None:
        result = clone_metadata(comfy_png, sample_jpg)

        assert result.raw["stage"] == "xmp-sdx"
        assert result.seed == 1234
        assert result.size == "1024x768"

    def test_jpeg_to_png(self, a1111_jpg: Path, sample_png: Path) -> None:
        result = clone_metadata(a1111_jpg, sample_png)

        assert result.prompt == "a cat"
        assert result.negative == "blurry"

    def test_source_fields_override_target(self, a1111_png: Path, comfy_png: Path) -> None:
        result = clone_metadata(a1111_png, comfy_png)

        assert result.prompt == "a cat"
        assert result.steps == 20

    def test_empty_source_keeps_target(self, sample_png: Path, a1111_png: Path) -> None:
        result = clone_metadata(sample_png, a1111_png)

        assert result.prompt == "a cat"

    def test_creates_output_directory(self, a1111_png: Path, sample_png: Path, temp_dir: Path) -> None:
        output_path = temp_dir / "nested" / "dir" / "output.png"

        clone_metadata(a1111_png, sample_png, output_path)

        assert output_path.exists()
