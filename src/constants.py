"""Shared constants for container parsing, metadata resolution and embedding.

All modules reference these constants rather than hard-coding values,
so supporting a new tool, chunk keyword or field alias requires updating
only this file.
"""

# Supported image formats
SUPPORTED_FORMATS = {".png", ".jpg", ".jpeg"}

# Formats that share the EXIF/XMP read route without having a writer of their own
EXIF_ROUTE_FORMATS = {".jpg", ".jpeg", ".webp"}

# PNG signature
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# PNG text-bearing chunk types
PNG_TEXT_CHUNK_TYPES = {"tEXt", "zTXt", "iTXt"}

# Reserved PNG keywords owned by the writer
PARAMETERS_KEYWORD = "parameters"
OWN_METADATA_KEYWORD = "sd-metadata"
RESERVED_PNG_KEYWORDS = (PARAMETERS_KEYWORD, OWN_METADATA_KEYWORD)

# PNG keywords per resolution stage (compared lowercased)
INVOKEAI_METADATA_KEYWORDS = ("invokeai_metadata",)
INVOKEAI_GRAPH_KEYWORDS = ("invokeai_graph",)
COMFYUI_PROMPT_KEYWORDS = ("prompt",)
COMFYUI_WORKFLOW_KEYWORDS = ("workflow",)
TEXT_BLOCK_KEYWORDS = ("parameters", "comment", "description")
SOFTWARE_KEYWORDS = ("software", "generator", "source")

# JPEG markers
JPEG_SOI = b"\xff\xd8"
JPEG_MARKER_SOS = 0xDA
JPEG_MARKER_EOI = 0xD9
JPEG_MARKER_APP1 = 0xE1
JPEG_MARKER_COM = 0xFE
JPEG_STANDALONE_MARKERS = frozenset({0x01, *range(0xD0, 0xD8)})
JPEG_MAX_SEGMENT_PAYLOAD = 0xFFFF - 2

# XMP
XMP_APP1_HEADER = b"http://ns.adobe.com/xap/1.0/\x00"
XMP_PACKET_ID = "W5M0MpCehiHzreSzNTczkc9d"
NS_X = "adobe:ns:meta/"
NS_RDF = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
NS_DC = "http://purl.org/dc/elements/1.1/"
NS_SDX = "http://ns.sdmeta.dev/sdx/1.0/"
XSD_INTEGER = "http://www.w3.org/2001/XMLSchema#integer"

# sdx leaf tags written into the XMP packet, in output order
SDX_FIELDS = ("negative", "model", "steps", "cfg", "seed", "sampler", "scheduler", "size", "generator")

# EXIF UserComment character-code prefixes (8 bytes)
EXIF_COMMENT_PREFIXES = {
    b"ASCII\x00\x00\x00": "ascii",
    b"UNICODE\x00": "unicode",
    b"JIS\x00\x00\x00\x00\x00": "jis",
    b"\x00\x00\x00\x00\x00\x00\x00\x00": "undefined",
}

# Canonical generator tags
GENERATOR_A1111 = "A1111"
GENERATOR_COMFYUI = "ComfyUI"
GENERATOR_INVOKEAI = "InvokeAI"
GENERATOR_NOVELAI = "NovelAI"
GENERATOR_SDNEXT = "SDNext"
GENERATOR_FOOOCUS = "Fooocus"
GENERATOR_SIDECAR_TEXT = "SidecarText"
GENERATOR_UNKNOWN = "Unknown"

# Tool fingerprints (case-insensitive substring -> generator), checked in order
TOOL_FINGERPRINTS = [
    ("comfyui", GENERATOR_COMFYUI),
    ("invokeai", GENERATOR_INVOKEAI),
    ("sd.next", GENERATOR_SDNEXT),
    ("sdnext", GENERATOR_SDNEXT),
    ("fooocus", GENERATOR_FOOOCUS),
    ("novelai", GENERATOR_NOVELAI),
    ("automatic1111", GENERATOR_A1111),
    ("a1111", GENERATOR_A1111),
]

# Aliases accepted when a caller or a file names the generator explicitly
GENERATOR_ALIASES = {
    "a1111": GENERATOR_A1111,
    "automatic1111": GENERATOR_A1111,
    "stable diffusion webui": GENERATOR_A1111,
    "comfyui": GENERATOR_COMFYUI,
    "comfy": GENERATOR_COMFYUI,
    "invokeai": GENERATOR_INVOKEAI,
    "invoke": GENERATOR_INVOKEAI,
    "novelai": GENERATOR_NOVELAI,
    "sdnext": GENERATOR_SDNEXT,
    "sd.next": GENERATOR_SDNEXT,
    "fooocus": GENERATOR_FOOOCUS,
    "sidecartext": GENERATOR_SIDECAR_TEXT,
    "unknown": GENERATOR_UNKNOWN,
}

# A1111 grammar
NEGATIVE_PROMPT_MARKER = "Negative prompt:"
SETTINGS_BOUNDARY_KEYS = ("Steps", "Sampler", "Schedule", "CFG", "Seed", "Size", "Model", "Model hash", "Checkpoint")

# A1111 settings key (lowercased) -> ImageMetadata field
SETTINGS_FIELD_MAP = {
    "steps": "steps",
    "sampler": "sampler",
    "schedule type": "scheduler",
    "scheduler": "scheduler",
    "cfg scale": "cfg",
    "cfg": "cfg",
    "seed": "seed",
    "size": "size",
    "model": "model",
    "checkpoint": "model",
}

# Generic JSON alias tables (keys compared lowercased)
PROMPT_ALIASES = ("prompt", "positive", "positive_prompt", "text")
NEGATIVE_ALIASES = ("negative", "negative_prompt", "negativeprompt", "uc")
STEPS_ALIASES = ("steps", "num_inference_steps")
CFG_ALIASES = ("cfg_scale", "cfg", "scale", "guidance_scale")
SEED_ALIASES = ("seed", "noise_seed")
SAMPLER_ALIASES = ("sampler", "sampler_name")
SCHEDULER_ALIASES = ("scheduler", "schedule_type")
MODEL_ALIASES = (
    "model",
    "model_name",
    "sd_model",
    "sd_model_name",
    "sd_model_checkpoint",
    "checkpoint",
    "ckpt",
    "ckpt_name",
    "base_model",
)
MODEL_OBJECT_KEYS = ("name", "model_name", "title", "file", "hash")

# InvokeAI node types that hold core metadata inside a graph
INVOKEAI_CORE_NODE_TYPES = ("core_metadata", "metadata_accumulator")
INVOKEAI_GRAPH_NODE_TYPES = (
    *INVOKEAI_CORE_NODE_TYPES,
    "main_model_loader", "sdxl_model_loader", "compel", "sdxl_compel_prompt",
    "noise", "denoise_latents", "t2l", "l2i",
)

# ComfyUI node classification (lowercased substrings)
COMFY_SAMPLER_MARKERS = ("ksampler", "samplercustom")
COMFY_LOADER_MARKERS = ("checkpointloader", "unetloader")
COMFY_LATENT_MARKERS = ("emptylatentimage", "emptysd3latentimage")
COMFY_TEXT_MARKERS = ("cliptextencode", "prompt", "text")
COMFY_NEGATIVE_LABELS = ("neg", "negative")
COMFY_POSITIVE_LABELS = ("positive",)
COMFY_MODEL_INPUTS = ("ckpt_name", "unet_name", "model_name")

# Positional widgets_values layouts for ComfyUI workflow nodes, keyed by
# layout version. Matching is by lowercased node type substring, most
# specific first. Best-effort: ComfyUI does not version these arrays.
COMFY_WIDGET_LAYOUT_VERSION = 1
COMFY_WIDGET_LAYOUTS = {
    1: [
        (
            "ksampleradvanced",
            ("add_noise", "seed", "control_after_generate", "steps", "cfg",
             "sampler", "scheduler", "start_at_step", "end_at_step", "return_with_leftover_noise"),
        ),
        (
            "ksampler",
            ("seed", "control_after_generate", "steps", "cfg", "sampler", "scheduler", "denoise"),
        ),
        (
            "efficient loader",
            ("model", "vae_name", "clip_skip", "lora_name", "lora_model_strength",
             "lora_clip_strength", "positive", "negative", "token_normalization",
             "weight_interpretation", "width", "height", "batch_size"),
        ),
        ("checkpointloader", ("model",)),
        ("emptylatentimage", ("width", "height", "batch_size")),
    ],
}

# Whole-file brute force scan limits
MAX_SCAN_BYTES = 64 * 1024 * 1024
MAX_JSON_CANDIDATE = 4 * 1024 * 1024
MIN_TEXT_RUN = 20

# Text export suffix
EXPORT_SUFFIX = ".metadata.txt"

# EXIF tags harvested as metadata candidates (piexif tag names)
EXIF_TEXT_TAGS = (
    "UserComment", "ImageDescription", "XPComment", "XPTitle", "XPSubject",
    "XPKeywords", "Artist", "DocumentName", "Copyright",
)
EXIF_SOFTWARE_TAGS = ("Software", "ProcessingSoftware", "HostComputer")
EXIF_IFDS = ("0th", "Exif", "1st", "GPS", "Interop")

# IPTC (record, dataset) pairs carrying free text: caption, headline,
# keywords, special instructions, originating program
IPTC_TEXT_DATASETS = ((2, 120), (2, 105), (2, 25), (2, 40), (2, 65))
