"""Normalized generation metadata record.

``ImageMetadata`` is rebuilt on every read and normalises its fields on
construction, so every lifter, the sidecar reader and the writer can hand
it loosely typed values (numeric strings, nested paths, odd spacing).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Mapping

from constants import (
    GENERATOR_A1111,
    GENERATOR_ALIASES,
    GENERATOR_COMFYUI,
    GENERATOR_FOOOCUS,
    GENERATOR_INVOKEAI,
    GENERATOR_NOVELAI,
    GENERATOR_SDNEXT,
    GENERATOR_SIDECAR_TEXT,
    GENERATOR_UNKNOWN,
)
from heuristics import normalize_model_name, sanitize_text

_SIZE_RE = re.compile(r"^\s*\(?\s*(\d+)\s*[xX×,]\s*(\d+)\s*\)?\s*$")

# Fields that carry generation data (everything except generator and raw)
DATA_FIELDS = ("prompt", "negative", "model", "sampler", "scheduler", "steps", "cfg", "seed", "size")


class Generator(str, Enum):
    """Known originating tools."""

    A1111 = GENERATOR_A1111
    COMFYUI = GENERATOR_COMFYUI
    INVOKEAI = GENERATOR_INVOKEAI
    NOVELAI = GENERATOR_NOVELAI
    SDNEXT = GENERATOR_SDNEXT
    FOOOCUS = GENERATOR_FOOOCUS
    SIDECAR_TEXT = GENERATOR_SIDECAR_TEXT
    UNKNOWN = GENERATOR_UNKNOWN


def normalize_generator(value: Any) -> str:
    """Map a tool name onto its canonical tag; unrecognised names pass through."""
    if isinstance(value, Generator):
        return value.value
    if value is None:
        return GENERATOR_UNKNOWN
    text = sanitize_text(str(value))
    if not text:
        return GENERATOR_UNKNOWN
    for member in Generator:
        if text == member.value:
            return member.value
    return GENERATOR_ALIASES.get(text.lower(), text)


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def _coerce_steps(value: Any) -> int | None:
    steps = _coerce_int(value)
    if steps is None or steps < 0:
        return None
    return steps


def _coerce_cfg(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _coerce_seed(value: Any) -> int | str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else str(value)
    text = sanitize_text(str(value))
    return text or None


def _coerce_size(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)) and len(value) >= 2:
        width, height = _coerce_int(value[0]), _coerce_int(value[1])
        if width is None or height is None:
            return None
        return f"{width}x{height}"
    match = _SIZE_RE.match(str(value))
    if not match:
        return None
    return f"{int(match.group(1))}x{int(match.group(2))}"


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    return sanitize_text(value)


def _coerce_short(value: Any) -> str | None:
    text = _coerce_text(value)
    return text or None


def format_number(value: float) -> str:
    """Render a CFG value the way A1111 does: ``7`` rather than ``7.0``."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass
class ImageMetadata:
    """A normalized view of the generation parameters stored with an image.

    Attributes:
        generator: Canonical tool tag (see :class:`Generator`) or free text.
        prompt: Positive prompt.
        negative: Negative prompt.
        model: Checkpoint basename (extension retained).
        sampler: Sampler name.
        scheduler: Scheduler / schedule type.
        steps: Sampling steps.
        cfg: CFG scale.
        seed: Seed, kept as ``int`` or as text when a tool stores it as text.
        size: ``"<width>x<height>"``.
        raw: Origin-specific debug data, never interpreted or written back.
    """

    generator: str = GENERATOR_UNKNOWN
    prompt: str | None = None
    negative: str | None = None
    model: str | None = None
    sampler: str | None = None
    scheduler: str | None = None
    steps: int | None = None
    cfg: float | None = None
    seed: int | str | None = None
    size: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.generator = normalize_generator(self.generator)
        self.prompt = _coerce_text(self.prompt)
        self.negative = _coerce_text(self.negative)
        model = _coerce_short(self.model)
        self.model = normalize_model_name(model) if model else None
        self.sampler = _coerce_short(self.sampler)
        self.scheduler = _coerce_short(self.scheduler)
        self.steps = _coerce_steps(self.steps)
        self.cfg = _coerce_cfg(self.cfg)
        self.seed = _coerce_seed(self.seed)
        self.size = _coerce_size(self.size)
        if self.raw is None:
            self.raw = {}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ImageMetadata:
        """
        Build a record from a field mapping (own schema or a caller patch).

        ``cfg_scale`` is accepted as an alias of ``cfg``; unknown keys are
        ignored.
        """
        values: dict[str, Any] = {}
        for name in DATA_FIELDS:
            if data.get(name) is not None:
                values[name] = data[name]
        if "cfg" not in values and data.get("cfg_scale") is not None:
            values["cfg"] = data["cfg_scale"]
        if data.get("generator") is not None:
            values["generator"] = data["generator"]
        return cls(**values)

    def is_empty(self) -> bool:
        """True when no generation field carries a value."""
        return all(getattr(self, name) in (None, "") for name in DATA_FIELDS)

    def is_blank(self) -> bool:
        """True when neither a generation field nor a known generator is set."""
        return self.is_empty() and self.generator == GENERATOR_UNKNOWN

    def has_prompt(self) -> bool:
        return bool(self.prompt) or bool(self.negative)

    def merge(self, patch: ImageMetadata | Mapping[str, Any] | None) -> ImageMetadata:
        """
        Sparse-merge *patch* over this record.

        ``None`` entries in the patch are no-ops, so a present field is never
        cleared by an absent one. An ``ImageMetadata`` patch whose generator
        is ``Unknown`` leaves the generator alone.

        Returns:
            A new record; ``raw`` is carried over from ``self``.
        """
        if patch is None:
            return replace(self, raw=dict(self.raw))
        if isinstance(patch, ImageMetadata):
            updates = patch.to_patch()
        else:
            updates = {key: value for key, value in patch.items() if value is not None}
            if "cfg" not in updates and "cfg_scale" in updates:
                updates["cfg"] = updates["cfg_scale"]
        values = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "raw"}
        for name in (*DATA_FIELDS, "generator"):
            if name in updates and updates[name] is not None:
                values[name] = updates[name]
        return ImageMetadata(**values, raw=dict(self.raw))

    def to_patch(self) -> dict[str, Any]:
        """Return the present fields as a patch mapping."""
        patch = {name: getattr(self, name) for name in DATA_FIELDS if getattr(self, name) is not None}
        if self.generator != GENERATOR_UNKNOWN:
            patch["generator"] = self.generator
        return patch

    def to_dict(self) -> dict[str, Any]:
        """Return this engine's own JSON schema (all fields nullable)."""
        return {
            "prompt": self.prompt,
            "negative": self.negative,
            "steps": self.steps,
            "cfg": self.cfg,
            "seed": self.seed,
            "size": self.size,
            "model": self.model,
            "sampler": self.sampler,
            "scheduler": self.scheduler,
            "generator": self.generator,
        }

    def fields_equal(self, other: ImageMetadata) -> bool:
        """Compare every field except ``raw``."""
        return self.to_dict() == other.to_dict()
