"""Command-line interface for sdmeta.

Provides the ``sdmeta`` entry point that dispatches to one of four
workflows:

- *(default)*: print the resolved generation metadata
- ``--set``: patch fields and write them back into the image
- ``--export``: write ``<image>.metadata.txt``
- ``SOURCE TARGET``: clone metadata from one image into another
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from metadata_handler import (
    DATA_FIELDS,
    SUPPORTED_FORMATS,
    clone_metadata,
    export_metadata_text,
    get_metadata_summary,
    has_generation_metadata,
    is_supported_format,
    read_metadata,
    write_metadata,
)


# ── Branding ────────────────────────────────────────────────────────

_BANNER = "─── sdmeta ───"


def _print_banner() -> None:
    """Print the startup banner, colored unless ``NO_COLOR`` is set."""
    if os.environ.get("NO_COLOR"):
        print(_BANNER, file=sys.stdout)
        return
    yellow = "\033[93m"
    bold = "\033[1m"
    reset = "\033[0m"
    print(f"{bold}{yellow}{_BANNER}{reset}", file=sys.stdout)


# ── Argument parsing ────────────────────────────────────────────────

_SETTABLE = (*DATA_FIELDS, "generator")


def _parse_assignment(text: str) -> tuple[str, Any]:
    """Turn ``KEY=VALUE`` into a patch entry."""
    key, sep, value = text.partition("=")
    key = key.strip().lower()
    if key == "cfg_scale":
        key = "cfg"
    if not sep or key not in _SETTABLE:
        raise argparse.ArgumentTypeError(
            f"expected KEY=VALUE with KEY one of {', '.join(_SETTABLE)}: {text!r}"
        )
    if key == "seed" and value.strip().lstrip("-").isdigit():
        return key, int(value)
    return key, value


def _build_parser() -> argparse.ArgumentParser:
    """Construct and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="sdmeta",
        description="Read, edit and copy AI image generation metadata in PNG and JPG files.",
        epilog="Example: sdmeta image.png --set steps=30 --set 'prompt=a cat'",
    )

    parser.add_argument(
        "source", type=Path,
        help=f"Image file (formats: {', '.join(sorted(SUPPORTED_FORMATS))}; others use a .json sidecar)",
    )
    parser.add_argument(
        "target", type=Path, nargs="?",
        help="Target image to copy the source's metadata into",
    )
    parser.add_argument(
        "-o", "--output", type=Path,
        help="Output file path when cloning (default: overwrite target)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print the resolved metadata as JSON",
    )
    parser.add_argument(
        "--set", dest="assignments", metavar="KEY=VALUE", action="append",
        type=_parse_assignment, default=[],
        help="Set a field and write it into the image (repeatable)",
    )
    parser.add_argument(
        "--export", action="store_true",
        help="Write the metadata to <image>.metadata.txt",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging of the resolution pipeline",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ── Command handlers ────────────────────────────────────────────────

def _handle_show(args: argparse.Namespace) -> int:
    """Print the summary (or JSON) for the source image."""
    try:
        if args.json:
            meta = read_metadata(args.source)
            document = {**meta.to_dict(), "source": meta.raw.get("source", "none")}
            print(json.dumps(document, indent=2, ensure_ascii=False))
            return 0

        if not has_generation_metadata(args.source):
            print(f"'{args.source}' does not contain generation metadata.")
            return 1
        print(get_metadata_summary(args.source))
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _handle_set(args: argparse.Namespace) -> int:
    """Apply ``--set`` assignments through the atomic writer."""
    patch = dict(args.assignments)
    try:
        meta = write_metadata(args.source, patch)
        print(f"Successfully wrote {', '.join(sorted(patch))} to: {args.source}")
        if args.verbose:
            print(json.dumps(meta.to_dict(), indent=2, ensure_ascii=False))
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _handle_export(args: argparse.Namespace) -> int:
    """Write the text export next to the source image."""
    try:
        output_path = export_metadata_text(args.source)
        print(f"Exported metadata to: {output_path}")
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _handle_clone(args: argparse.Namespace) -> int:
    """Clone metadata from source to target image."""
    try:
        meta = clone_metadata(
            source_path=args.source,
            target_path=args.target,
            output_path=args.output,
        )
        output_path = args.output or args.target
        if meta.is_empty():
            print(f"Warning: no generation metadata was copied to: {output_path}", file=sys.stderr)
            return 1
        print(f"Successfully cloned metadata to: {output_path}")
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# ── Entry point ─────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the appropriate command handler."""
    parser = _build_parser()

    if argv is None and len(sys.argv) == 1:
        _print_banner()
        parser.print_help()
        return 0

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if not args.json:
        _print_banner()

    if not args.source.exists():
        print(f"Error: Source file '{args.source}' does not exist.", file=sys.stderr)
        return 1
    if not is_supported_format(args.source):
        print(
            f"Warning: '{args.source}' cannot embed metadata; a .json sidecar is used instead.",
            file=sys.stderr,
        )

    if args.target is not None:
        if not args.target.exists():
            print(f"Error: Target file '{args.target}' does not exist.", file=sys.stderr)
            return 1
        return _handle_clone(args)

    if args.assignments:
        return _handle_set(args)

    if args.export:
        return _handle_export(args)

    return _handle_show(args)


if __name__ == "__main__":
    sys.exit(main())
