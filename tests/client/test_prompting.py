import pytest

from client.prompting import (
    QUICK_PROMPTS,
    enhance_prompt,
    find_quick_prompt,
    image_size_for,
)
from schemas.generation import ImageSizeObject


def test_enhance_prompt_defaults() -> None:
    assert enhance_prompt("  camera ") == (
        "camera, glossy, front view, high quality render"
    )


def test_enhance_prompt_skips_styles_already_present() -> None:
    assert enhance_prompt("Wooden clock", "wooden", "3d") == (
        "Wooden clock, wooden texture, full 3D rendering, high quality render"
    )
    assert enhance_prompt("metallic robot", "metallic", "front") == (
        "metallic robot, front view, high quality render"
    )


def test_enhance_prompt_without_styles() -> None:
    assert enhance_prompt("lamp", "None", None) == "lamp, high quality render"
    assert enhance_prompt("   ") == ""


def test_image_size_for() -> None:
    assert image_size_for("1024") == ImageSizeObject(width=1024, height=1024)
    with pytest.raises(KeyError):
        image_size_for("2048")


def test_find_quick_prompt() -> None:
    assert find_quick_prompt("3").name == "Compass"
    assert len({p.id for p in QUICK_PROMPTS}) == len(QUICK_PROMPTS)
    with pytest.raises(KeyError):
        find_quick_prompt("99")
