"""Prompt presets and style enhancement for icon generation."""

from __future__ import annotations

from dataclasses import dataclass

from schemas.generation import ImageSizeObject


HIGH_QUALITY_SUFFIX = "high quality render"


@dataclass(frozen=True)
class StyleOption:
    id: str
    name: str
    value: str


@dataclass(frozen=True)
class QuickPrompt:
    id: str
    name: str
    prompt: str
    category: str


MATERIALS: tuple[StyleOption, ...] = (
    StyleOption("None", "None", ""),
    StyleOption("glossy", "Glossy", "glossy"),
    StyleOption("metallic", "Metallic", "metallic"),
    StyleOption("matte", "Matte", "matte"),
    StyleOption("wooden", "Wooden", "wooden texture"),
    StyleOption("plastic", "Plastic", "plastic"),
    StyleOption("glass", "Glass", "glass transparent"),
)

ANGLES: tuple[StyleOption, ...] = (
    StyleOption("front", "Front View", "front view"),
    StyleOption("isometric", "Isometric", "isometric view"),
    StyleOption("angled", "Angled", "angled view slight perspective"),
    StyleOption("3d", "3D", "full 3D rendering"),
)

SIZES: tuple[StyleOption, ...] = (
    StyleOption("256", "256 × 256", "256"),
    StyleOption("512", "512 × 512", "512"),
    StyleOption("1024", "1024 × 1024", "1024"),
)

QUICK_PROMPTS: tuple[QuickPrompt, ...] = (
    QuickPrompt(
        "1",
        "Glossy Apple",
        "A glossy red apple with a green leaf and metallic highlights",
        "Food",
    ),
    QuickPrompt(
        "2",
        "Camera",
        "A detailed DSLR camera with leather texture and metal dials",
        "Tech",
    ),
    QuickPrompt(
        "3",
        "Compass",
        "An antique brass compass with weathered texture and detailed "
        "cardinal directions",
        "Travel",
    ),
    QuickPrompt(
        "4",
        "Game Controller",
        "A modern game controller with rubberized grips and glowing buttons",
        "Gaming",
    ),
    QuickPrompt(
        "5",
        "Wallet",
        "A leather wallet with stitching details and metal zipper",
        "Fashion",
    ),
    QuickPrompt(
        "6",
        "Clock",
        "A wooden clock with metal hands and roman numerals",
        "Home",
    ),
)

DEFAULT_MATERIAL = "glossy"
DEFAULT_ANGLE = "front"
DEFAULT_SIZE = "512"


def _option_value(options: tuple[StyleOption, ...], option_id: str | None) -> str:
    for option in options:
        if option.id == option_id:
            return option.value
    return ""


def enhance_prompt(
    prompt: str,
    material: str | None = DEFAULT_MATERIAL,
    angle: str | None = DEFAULT_ANGLE,
) -> str:
    """Append material and angle styling unless the prompt already has it.

    Returns an empty string for a blank prompt so callers can reject it.
    """
    enhanced = prompt.strip()
    if not enhanced:
        return ""

    for value in (_option_value(MATERIALS, material), _option_value(ANGLES, angle)):
        if value and value.lower() not in enhanced.lower():
            enhanced += f", {value}"

    return f"{enhanced}, {HIGH_QUALITY_SUFFIX}"


def image_size_for(size_id: str) -> ImageSizeObject:
    """Square pixel size for one of the ``SIZES`` presets.

    Raises:
        KeyError: unknown size id.
    """
    value = _option_value(SIZES, size_id)
    if not value:
        raise KeyError(size_id)
    side = int(value)
    return ImageSizeObject(width=side, height=side)


def find_quick_prompt(prompt_id: str) -> QuickPrompt:
    for quick_prompt in QUICK_PROMPTS:
        if quick_prompt.id == prompt_id:
            return quick_prompt
    raise KeyError(prompt_id)
