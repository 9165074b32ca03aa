"""Per-tool lifters: map one candidate payload onto an ``ImageMetadata``.

Each lifter takes a payload (text, parsed JSON or an XMP packet) and
returns a non-empty :class:`ImageMetadata`, or ``None`` when the payload
is not the shape it understands. Lifters do not raise for unexpected
shapes; they check structure with ``isinstance`` and bail out.

JSON payloads are dispatched through a closed set of candidate shapes,
each with a recognizer predicate, tried in the order of
``JSON_DISPATCH``. The first shape whose lifter yields a non-empty record
wins.

Ambiguous prompt candidates resolve with "longer string wins".
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Callable

from constants import (
    CFG_ALIASES,
    COMFY_LATENT_MARKERS,
    COMFY_LOADER_MARKERS,
    COMFY_MODEL_INPUTS,
    COMFY_NEGATIVE_LABELS,
    COMFY_POSITIVE_LABELS,
    COMFY_SAMPLER_MARKERS,
    COMFY_TEXT_MARKERS,
    COMFY_WIDGET_LAYOUT_VERSION,
    COMFY_WIDGET_LAYOUTS,
    GENERATOR_COMFYUI,
    GENERATOR_INVOKEAI,
    GENERATOR_UNKNOWN,
    INVOKEAI_CORE_NODE_TYPES,
    INVOKEAI_GRAPH_NODE_TYPES,
    MODEL_ALIASES,
    MODEL_OBJECT_KEYS,
    NEGATIVE_ALIASES,
    PROMPT_ALIASES,
    SAMPLER_ALIASES,
    SCHEDULER_ALIASES,
    SDX_FIELDS,
    SEED_ALIASES,
    SETTINGS_FIELD_MAP,
    STEPS_ALIASES,
    XSD_INTEGER,
)
from heuristics import (
    detect_generator,
    extract_sdx_datatypes,
    extract_sdx_tags,
    extract_xmp_description,
    load_json_candidate,
    looks_like_generation_block,
    parse_generation_block,
    try_parse_json,
)
from models import ImageMetadata, normalize_generator

logger = logging.getLogger(__name__)

_LINK_DEPTH = 8
_TEXT_INPUT_KEYS = (
    "text", "text_g", "text_l", "string", "value", "prompt",
    "conditioning", "conditioning_1", "conditioning_to", "positive",
)
_SCALAR_INPUT_KEYS = ("value", "seed", "noise_seed", "int", "float", "number")
_INVOKE_LEGACY_NEGATIVE_RE = re.compile(r"\[([^\[\]]*)\]")


class CandidateShape(str, Enum):
    """The payload shapes a candidate can take."""

    TEXT_BLOCK = "text-block"
    PROMPT_MAP = "comfyui-prompt-map"
    INVOKE_GRAPH = "invokeai-graph"
    NODE_GRAPH = "comfyui-node-graph"
    CORE_METADATA = "invokeai-core-metadata"
    GENERIC_JSON = "generic-json"


# ── Helpers ─────────────────────────────────────────────────────────

def _finish(meta: ImageMetadata) -> ImageMetadata | None:
    return None if meta.is_empty() else meta


def _longest(strings: list[str]) -> str | None:
    candidates = [s for s in strings if s and s.strip()]
    return max(candidates, key=len) if candidates else None


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (int, float, str)) and not isinstance(value, bool)


def _is_link(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) == 2
        and isinstance(value[0], (str, int))
        and not isinstance(value[0], bool)
        and isinstance(value[1], int)
    )


def _first_value(mapping: dict[str, Any], keys: tuple[str, ...], want: type | tuple = (int, float, str)) -> Any:
    for key in keys:
        value = mapping.get(key)
        if isinstance(value, want) and not isinstance(value, bool):
            if isinstance(value, str) and not value.strip():
                continue
            return value
    return None


def _keep_first(values: dict[str, Any], key: str, value: Any) -> None:
    if value is not None and key not in values:
        values[key] = value


def _model_from(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, dict):
        found = _first_value(value, MODEL_OBJECT_KEYS, str)
        return found
    return None


# ── Recognizers ─────────────────────────────────────────────────────

def is_prompt_map(payload: Any) -> bool:
    """ComfyUI API prompt: ``{node_id: {"inputs": {...}, "class_type": ...}}``."""
    if not isinstance(payload, dict) or not payload:
        return False
    first = next(iter(payload.values()))
    return isinstance(first, dict) and "inputs" in first


def _graph_nodes(payload: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    nodes = payload.get("nodes")
    if isinstance(nodes, dict):
        return [(str(key), node) for key, node in nodes.items() if isinstance(node, dict)]
    if isinstance(nodes, list):
        return [(str(node.get("id", index)), node) for index, node in enumerate(nodes) if isinstance(node, dict)]
    return []


def is_invoke_graph(payload: Any) -> bool:
    """InvokeAI graph: a ``nodes`` mapping containing InvokeAI node types."""
    if not isinstance(payload, dict):
        return False
    if isinstance(payload.get("core_metadata"), dict):
        return True
    if not isinstance(payload.get("nodes"), dict):
        return False
    return any(
        key in INVOKEAI_CORE_NODE_TYPES or node.get("type") in INVOKEAI_GRAPH_NODE_TYPES
        for key, node in _graph_nodes(payload)
    )


def is_node_graph(payload: Any) -> bool:
    """ComfyUI workflow export: a ``nodes`` array (or object) of UI nodes."""
    return isinstance(payload, dict) and isinstance(payload.get("nodes"), (list, dict))


def is_core_metadata(payload: Any) -> bool:
    """InvokeAI flat core metadata, including the 2.x ``image`` form."""
    if not isinstance(payload, dict):
        return False
    if "positive_prompt" in payload or "positive_style_prompt" in payload:
        return True
    if "generation_mode" in payload and "cfg_scale" in payload:
        return True
    image = payload.get("image")
    return isinstance(image, dict) and "prompt" in image


def is_generic_json(payload: Any) -> bool:
    return isinstance(payload, dict) and bool(payload)


# ── A1111 text ──────────────────────────────────────────────────────

def lift_a1111(
    text: Any,
    context: str | None = None,
    fallback_generator: str = GENERATOR_UNKNOWN,
) -> ImageMetadata | None:
    """
    Lift an A1111-style ``parameters`` block.

    Args:
        text: The text block.
        context: Adjacent metadata (e.g. a ``Software`` chunk) searched for
            tool fingerprints along with the block itself.
        fallback_generator: Generator used when no fingerprint matches.
    """
    if not isinstance(text, str):
        return None
    block = parse_generation_block(text)
    if block is None:
        return None

    settings = {key.lower(): value for key, value in block.settings.items()}
    values: dict[str, Any] = {}
    for key, field_name in SETTINGS_FIELD_MAP.items():
        if key in settings and field_name not in values:
            values[field_name] = settings[key]

    generator = detect_generator(text, context)
    if generator == GENERATOR_UNKNOWN:
        generator = fallback_generator

    return _finish(ImageMetadata(
        generator=generator,
        prompt=block.positive or None,
        negative=block.negative,
        raw={"settings": block.settings},
        **values,
    ))


# ── ComfyUI prompt map ──────────────────────────────────────────────

def _resolve_text(value: Any, nodes: dict[str, dict[str, Any]], depth: int = 0) -> str | None:
    """Follow ``[node_id, slot]`` links until a string is reached."""
    if isinstance(value, str):
        return value if value.strip() else None
    if not _is_link(value) or depth >= _LINK_DEPTH:
        return None
    node = nodes.get(str(value[0]))
    if not isinstance(node, dict):
        return None
    inputs = node.get("inputs")
    if not isinstance(inputs, dict):
        return None
    for key in _TEXT_INPUT_KEYS:
        if key in inputs:
            text = _resolve_text(inputs[key], nodes, depth + 1)
            if text:
                return text
    return None


def _resolve_scalar(value: Any, nodes: dict[str, dict[str, Any]], depth: int = 0) -> Any:
    if _is_scalar(value):
        return value
    if not _is_link(value) or depth >= _LINK_DEPTH:
        return None
    node = nodes.get(str(value[0]))
    inputs = node.get("inputs") if isinstance(node, dict) else None
    if not isinstance(inputs, dict):
        return None
    for key in _SCALAR_INPUT_KEYS:
        if key in inputs:
            resolved = _resolve_scalar(inputs[key], nodes, depth + 1)
            if resolved is not None:
                return resolved
    return None


def _title(node: dict[str, Any]) -> str:
    meta = node.get("_meta")
    title = meta.get("title") if isinstance(meta, dict) else node.get("title")
    return str(title or "").lower()


def _label(title: str) -> str | None:
    if any(label in title for label in COMFY_NEGATIVE_LABELS):
        return "negative"
    if any(label in title for label in COMFY_POSITIVE_LABELS):
        return "positive"
    return None


def lift_comfy_prompt_map(payload: Any) -> ImageMetadata | None:
    """
    Lift a ComfyUI API prompt (node id → ``{"class_type", "inputs"}``).

    The longest text reachable from any ``inputs.positive`` is the
    prompt; every distinct ``inputs.negative`` text is concatenated.
    Sampler nodes supply steps/cfg/seed/sampler/scheduler, latent nodes
    the size and loader inputs the model. When no sampler links to text,
    text-encoder nodes are classified by their title.
    """
    if not is_prompt_map(payload):
        return None
    nodes = {str(key): node for key, node in payload.items() if isinstance(node, dict)}

    positives: list[str] = []
    negatives: list[str] = []
    values: dict[str, Any] = {}

    for node in nodes.values():
        class_type = str(node.get("class_type", "")).lower()
        inputs = node.get("inputs")
        if not isinstance(inputs, dict):
            continue

        positive = _resolve_text(inputs.get("positive"), nodes)
        if positive:
            positives.append(positive)
        negative = _resolve_text(inputs.get("negative"), nodes)
        if negative and negative not in negatives:
            negatives.append(negative)

        if any(marker in class_type for marker in COMFY_SAMPLER_MARKERS):
            for field_name, keys in (
                ("steps", ("steps",)),
                ("cfg", ("cfg",)),
                ("seed", ("seed", "noise_seed")),
                ("sampler", ("sampler_name",)),
                ("scheduler", ("scheduler",)),
            ):
                for key in keys:
                    resolved = _resolve_scalar(inputs.get(key), nodes)
                    if resolved is not None:
                        values.setdefault(field_name, resolved)
                        break

        if any(marker in class_type for marker in COMFY_LATENT_MARKERS) or (
            "width" in inputs and "height" in inputs
        ):
            width = _resolve_scalar(inputs.get("width"), nodes)
            height = _resolve_scalar(inputs.get("height"), nodes)
            if width is not None and height is not None:
                values.setdefault("size", f"{width}x{height}")

        for key in COMFY_MODEL_INPUTS:
            model = _resolve_scalar(inputs.get(key), nodes)
            if isinstance(model, str) and model.strip():
                values.setdefault("model", model)
                break

    if not positives and not negatives:
        for node in nodes.values():
            class_type = str(node.get("class_type", "")).lower()
            inputs = node.get("inputs")
            if "cliptextencode" not in class_type or not isinstance(inputs, dict):
                continue
            text = _resolve_text(inputs.get("text"), nodes)
            if not text:
                continue
            if _label(_title(node)) == "negative":
                negatives.append(text)
            else:
                positives.append(text)

    return _finish(ImageMetadata(
        generator=GENERATOR_COMFYUI,
        prompt=_longest(positives),
        negative=", ".join(negatives) if negatives else None,
        **values,
    ))


# ── ComfyUI node graph ──────────────────────────────────────────────

def widget_layout(node_type: str, version: int = COMFY_WIDGET_LAYOUT_VERSION) -> tuple[str, ...] | None:
    """
    Return the positional ``widgets_values`` names for a node type.

    Best-effort only: ComfyUI does not version these arrays, so the table
    reflects the layouts known for *version*.
    """
    lowered = node_type.lower()
    for marker, names in COMFY_WIDGET_LAYOUTS.get(version, []):
        if marker in lowered:
            return names
    return None


def _named_widgets(node: dict[str, Any], node_type: str) -> dict[str, Any]:
    widgets = node.get("widgets_values")
    if isinstance(widgets, dict):
        return widgets
    if not isinstance(widgets, list):
        return {}
    layout = widget_layout(node_type)
    if layout is None:
        return {}
    return dict(zip(layout, widgets))


def lift_comfy_graph(payload: Any) -> ImageMetadata | None:
    """
    Lift a ComfyUI workflow export (``{"nodes": [...]}``).

    Text nodes are split into positive/negative by their title ("neg",
    "negative", "positive"); unlabeled texts fall back to "longer string
    is the positive". Sampler, loader and latent nodes are decoded from
    their positional ``widgets_values`` via :func:`widget_layout`.
    """
    if not is_node_graph(payload):
        return None

    labeled_positive: list[str] = []
    labeled_negative: list[str] = []
    unlabeled: list[str] = []
    values: dict[str, Any] = {}

    for _node_id, node in _graph_nodes(payload):
        node_type = str(node.get("type") or node.get("class_type") or "").lower()
        named = _named_widgets(node, node_type)
        title = _title(node)

        if any(marker in node_type for marker in COMFY_SAMPLER_MARKERS):
            for field_name in ("seed", "steps", "cfg", "sampler", "scheduler"):
                value = named.get(field_name)
                if _is_scalar(value):
                    values.setdefault(field_name, value)
            continue

        if "efficient loader" in node_type:
            for key, bucket in (("positive", labeled_positive), ("negative", labeled_negative)):
                if isinstance(named.get(key), str) and named[key].strip():
                    bucket.append(named[key])

        if "width" in named and "height" in named and _is_scalar(named["width"]) and _is_scalar(named["height"]):
            values.setdefault("size", f"{named['width']}x{named['height']}")
        if isinstance(named.get("model"), str) and (
            "efficient loader" in node_type or any(m in node_type for m in COMFY_LOADER_MARKERS)
        ):
            values.setdefault("model", named["model"])

        if not any(marker in node_type for marker in COMFY_TEXT_MARKERS):
            continue
        inputs = node.get("inputs")
        text = inputs.get("text") if isinstance(inputs, dict) else None
        if not isinstance(text, str):
            text = named.get("text")
        if not isinstance(text, str):
            widgets = node.get("widgets_values")
            text = widgets[0] if isinstance(widgets, list) and widgets and isinstance(widgets[0], str) else None
        if not text or not text.strip():
            continue

        label = _label(title)
        if label == "negative":
            labeled_negative.append(text)
        elif label == "positive":
            labeled_positive.append(text)
        else:
            unlabeled.append(text)

    prompt = _longest(labeled_positive)
    remaining = list(unlabeled)
    if prompt is None and remaining:
        prompt = _longest(remaining)
        remaining.remove(prompt)
    negative = _longest(labeled_negative) or _longest(remaining)

    return _finish(ImageMetadata(
        generator=GENERATOR_COMFYUI,
        prompt=prompt,
        negative=negative,
        **values,
    ))


# ── InvokeAI ────────────────────────────────────────────────────────

def _flatten_legacy_invoke(payload: dict[str, Any]) -> dict[str, Any]:
    """Map InvokeAI 2.x ``{"model_weights", "image": {...}}`` onto core fields."""
    image = payload["image"]
    prompt = image.get("prompt")
    if isinstance(prompt, list):
        prompt = " ".join(
            item.get("prompt", "") for item in prompt if isinstance(item, dict) and isinstance(item.get("prompt"), str)
        )
    negative = None
    if isinstance(prompt, str):
        bracketed = _INVOKE_LEGACY_NEGATIVE_RE.findall(prompt)
        if bracketed:
            negative = ", ".join(part.strip() for part in bracketed if part.strip()) or None
            prompt = _INVOKE_LEGACY_NEGATIVE_RE.sub("", prompt).strip()
    return {
        "positive_prompt": prompt,
        "negative_prompt": negative,
        "steps": image.get("steps"),
        "cfg_scale": image.get("cfg_scale"),
        "seed": image.get("seed"),
        "width": image.get("width"),
        "height": image.get("height"),
        "scheduler": image.get("sampler"),
        "model": payload.get("model_weights"),
    }


def lift_invoke_core(payload: Any) -> ImageMetadata | None:
    """
    Lift InvokeAI core metadata.

    ``positive_prompt`` wins over the legacy ``positive_style_prompt``;
    ``scheduler`` becomes the sampler, ``cfg_scale`` the CFG and
    ``width``/``height`` the size.
    """
    if not is_core_metadata(payload):
        return None
    if isinstance(payload.get("image"), dict):
        payload = _flatten_legacy_invoke(payload)

    width, height = payload.get("width"), payload.get("height")
    size = f"{width}x{height}" if _is_scalar(width) and _is_scalar(height) else None

    return _finish(ImageMetadata(
        generator=GENERATOR_INVOKEAI,
        prompt=_first_value(payload, ("positive_prompt", "positive_style_prompt"), str),
        negative=_first_value(payload, ("negative_prompt", "negative_style_prompt"), str),
        model=_model_from(payload.get("model")),
        sampler=_first_value(payload, ("scheduler",), str),
        steps=_first_value(payload, ("steps",)),
        cfg=_first_value(payload, ("cfg_scale",)),
        seed=_first_value(payload, ("seed",)),
        size=size,
    ))


def lift_invoke_graph(payload: Any) -> ImageMetadata | None:
    """
    Lift an InvokeAI graph: use the ``core_metadata`` node when present,
    otherwise read the prompt, noise, denoise and model-loader nodes.
    """
    if not is_invoke_graph(payload):
        return None

    core = payload.get("core_metadata")
    for key, node in _graph_nodes(payload):
        if core is not None:
            break
        if key in INVOKEAI_CORE_NODE_TYPES or node.get("type") in INVOKEAI_CORE_NODE_TYPES:
            core = node
    if isinstance(core, dict):
        meta = lift_invoke_core(core)
        if meta is not None:
            return meta

    positives: list[str] = []
    negatives: list[str] = []
    values: dict[str, Any] = {}
    for key, node in _graph_nodes(payload):
        node_type = str(node.get("type", ""))
        if node_type in ("compel", "sdxl_compel_prompt") and isinstance(node.get("prompt"), str):
            (negatives if "negative" in key else positives).append(node["prompt"])
        elif node_type == "noise":
            _keep_first(values, "seed", node.get("seed"))
            if _is_scalar(node.get("width")) and _is_scalar(node.get("height")):
                values.setdefault("size", f"{node['width']}x{node['height']}")
        elif node_type in ("denoise_latents", "t2l"):
            _keep_first(values, "steps", node.get("steps"))
            _keep_first(values, "cfg", node.get("cfg_scale"))
            _keep_first(values, "sampler", node.get("scheduler"))
        elif node_type in ("main_model_loader", "sdxl_model_loader"):
            _keep_first(values, "model", _model_from(node.get("model")))

    return _finish(ImageMetadata(
        generator=GENERATOR_INVOKEAI,
        prompt=_longest(positives),
        negative=_longest(negatives),
        **values,
    ))


# ── XMP sdx (own format) ────────────────────────────────────────────

def lift_xmp_sdx(xml: Any) -> ImageMetadata | None:
    """
    Lift an XMP packet written by this engine.

    ``dc:description`` is the prompt and ``sdx:*`` leaves carry the other
    fields. Packets without dedicated negative/settings leaves are read
    the legacy way: the description is parsed with the A1111 grammar when
    it shows grammar evidence.

    A packet whose only leaf is ``sdx:generator`` still yields a record.
    """
    if not isinstance(xml, str):
        return None
    tags = extract_sdx_tags(xml)
    description = extract_xmp_description(xml)
    if not tags and description is None:
        return None

    dedicated = [name for name in SDX_FIELDS if name != "generator" and name in tags]
    if not dedicated and description and looks_like_generation_block(description):
        context = tags.get("generator")
        meta = lift_a1111(description, context=context)
        if meta is not None and tags.get("generator"):
            meta.generator = normalize_generator(tags["generator"])
        return meta
    if not tags:
        return None

    seed: Any = tags.get("seed")
    if seed is not None and extract_sdx_datatypes(xml).get("seed") == XSD_INTEGER:
        try:
            seed = int(seed)
        except ValueError:
            logger.debug("sdx:seed typed as integer but not numeric: %r", seed)

    meta = ImageMetadata(
        generator=tags.get("generator") or GENERATOR_UNKNOWN,
        prompt=description,
        negative=tags.get("negative"),
        model=tags.get("model"),
        sampler=tags.get("sampler"),
        scheduler=tags.get("scheduler"),
        steps=tags.get("steps"),
        cfg=tags.get("cfg"),
        seed=seed,
        size=tags.get("size"),
    )
    return None if meta.is_blank() else meta


# ── Generic JSON ────────────────────────────────────────────────────

def _size_from(lower: dict[str, Any]) -> Any:
    if lower.get("size") is not None:
        return lower["size"]
    width, height = lower.get("width"), lower.get("height")
    if _is_scalar(width) and _is_scalar(height):
        return f"{width}x{height}"
    resolution = lower.get("resolution")
    if isinstance(resolution, (list, tuple, str)):
        return resolution
    return None


def lift_generic_json(payload: Any) -> ImageMetadata | None:
    """
    Last-resort JSON mapping through the alias tables in ``constants``.

    Keys are matched case-insensitively. A JSON object that only wraps an
    A1111 ``parameters`` string, or a nested ComfyUI ``prompt``/``workflow``
    object, is handed to the matching lifter.
    """
    if not is_generic_json(payload):
        return None
    lower = {str(key).lower(): value for key, value in payload.items()}

    for key in ("prompt", "workflow"):
        nested = lower.get(key)
        if isinstance(nested, str):
            nested = try_parse_json(nested)
        if isinstance(nested, dict):
            found = dispatch_json(nested)
            if found is not None:
                return found[1]

    prompt = _first_value(lower, PROMPT_ALIASES, str)
    if prompt is None and isinstance(lower.get("parameters"), str):
        return lift_a1111(lower["parameters"], context=_generator_hint(lower))

    model = None
    for key in MODEL_ALIASES:
        model = _model_from(lower.get(key))
        if model:
            break

    generator = lower.get("generator")
    if not isinstance(generator, str) or not generator.strip():
        generator = detect_generator(_generator_hint(lower), json.dumps(payload, default=str))

    return _finish(ImageMetadata(
        generator=generator,
        prompt=prompt,
        negative=_first_value(lower, NEGATIVE_ALIASES, str),
        model=model,
        sampler=_first_value(lower, SAMPLER_ALIASES, str),
        scheduler=_first_value(lower, SCHEDULER_ALIASES, str),
        steps=_first_value(lower, STEPS_ALIASES),
        cfg=_first_value(lower, CFG_ALIASES),
        seed=_first_value(lower, SEED_ALIASES),
        size=_size_from(lower),
    ))


def _generator_hint(lower: dict[str, Any]) -> str:
    hints = [lower.get(key) for key in ("software", "version", "source", "app")]
    return " ".join(h for h in hints if isinstance(h, str))


# ── Dispatch ────────────────────────────────────────────────────────

Lifter = Callable[[Any], "ImageMetadata | None"]

JSON_DISPATCH: list[tuple[CandidateShape, Callable[[Any], bool], Lifter]] = [
    (CandidateShape.PROMPT_MAP, is_prompt_map, lift_comfy_prompt_map),
    (CandidateShape.INVOKE_GRAPH, is_invoke_graph, lift_invoke_graph),
    (CandidateShape.NODE_GRAPH, is_node_graph, lift_comfy_graph),
    (CandidateShape.CORE_METADATA, is_core_metadata, lift_invoke_core),
    (CandidateShape.GENERIC_JSON, is_generic_json, lift_generic_json),
]


def classify(payload: Any) -> CandidateShape | None:
    """Return the first candidate shape *payload* matches."""
    if isinstance(payload, str):
        parsed = load_json_candidate(payload)
        if parsed is not None:
            return classify(parsed)
        return CandidateShape.TEXT_BLOCK if looks_like_generation_block(payload) else None
    for shape, recognizer, _lifter in JSON_DISPATCH:
        if recognizer(payload):
            return shape
    return None


def dispatch_json(payload: Any) -> tuple[CandidateShape, ImageMetadata] | None:
    """
    Try every JSON shape in declared order.

    Returns:
        The matching shape and its record, or ``None``.
    """
    for shape, recognizer, lifter in JSON_DISPATCH:
        if not recognizer(payload):
            continue
        meta = lifter(payload)
        if meta is not None:
            return shape, meta
    return None


def lift_json(payload: Any) -> ImageMetadata | None:
    found = dispatch_json(payload)
    return found[1] if found else None


# Malformed payloads surface as one of these inside a lifter
LIFT_ERRORS = (ValueError, TypeError, KeyError, IndexError, AttributeError, OverflowError, RecursionError)


def safe_lift(lifter: Callable[..., Any], payload: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *lifter*, logging a malformed payload at debug level and returning ``None``."""
    try:
        return lifter(payload, *args, **kwargs)
    except LIFT_ERRORS:
        logger.debug("%s rejected candidate", getattr(lifter, "__name__", lifter), exc_info=True)
        return None
