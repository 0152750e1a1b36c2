"""Style catalog and prompt construction for thumbnail images."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

from animethumb.errors import InvalidStyleKey

STYLE_CATALOG: Mapping[str, str] = MappingProxyType(
    {
        "cute": (
            "Extremely cute and adorable anime style, kawaii, moe, soft colors, "
            "sparkling eyes, for a heartwarming story."
        ),
        "cool": (
            "Dynamic and cool anime style, sharp lines, action-packed scene, intense "
            "lighting, stylish character design, for an action or fantasy story."
        ),
        "realistic": (
            "Highly detailed and realistic anime style, cinematic lighting, "
            "photorealistic textures, mature character designs, for a serious drama "
            "or sci-fi story."
        ),
        "punk": (
            "Cyberpunk or punk rock anime style, neon lights, gritty urban environment, "
            "rebellious attitude, futuristic gadgets, for a dystopian or sci-fi story."
        ),
    }
)

STYLE_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "cute": "Cute",
        "cool": "Cool",
        "realistic": "Realistic",
        "punk": "Punk",
    }
)

STYLE_KEYS: Tuple[str, ...] = tuple(STYLE_CATALOG)
DEFAULT_STYLE = STYLE_KEYS[0]


def style_label(style_key: str) -> str:
    """Return the selector label for a style key."""

    if style_key not in STYLE_CATALOG:
        raise InvalidStyleKey(style_key)
    return STYLE_LABELS.get(style_key, style_key)


def build_prompt(title: str, style_key: str) -> str:
    """Build the image prompt for ``title`` rendered in the given style.

    The title and the style description are embedded verbatim.
    """

    try:
        style_description = STYLE_CATALOG[style_key]
    except KeyError:
        raise InvalidStyleKey(style_key) from None

    # Chat-based image models sometimes answer with prose unless told to draw
    image_instruction = (
        "Generate an image. Do not describe the image - actually create and output "
        "the image.\n\n"
    )
    return (
        f"{image_instruction}"
        "Create a high-quality, professional anime-style image suitable for a video "
        f'thumbnail. The theme is "{title}". '
        f"The specific art style should be: {style_description} "
        "Use a widescreen 16:9 framing with a high-contrast, professional composition. "
        "The image must be visually striking, with vibrant colors and a clean "
        "composition. It should not contain any text, letters, captions or logos."
    )
