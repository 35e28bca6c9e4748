"""Placeholder image rendering for the local generator."""

from typing import Optional

import numpy as np
from PIL import Image, ImageDraw, ImageFont


def render_placeholder(
    width: int,
    height: int,
    text: str,
    seed: Optional[int] = None,
) -> Image.Image:
    """Render a diagonal two-color gradient with ``text`` centered on it.

    The same seed always yields the same colors, so every stage of one job
    shares a palette and only the resolution changes.
    """
    rng = np.random.default_rng(seed)
    start = rng.integers(0, 256, size=3).astype(np.float32)
    end = rng.integers(0, 256, size=3).astype(np.float32)

    xs = np.linspace(0.0, 1.0, width, dtype=np.float32)
    ys = np.linspace(0.0, 1.0, height, dtype=np.float32)
    t = (ys[:, None] + xs[None, :]) / 2.0
    pixels = start + (end - start) * t[..., None]
    image = Image.fromarray(pixels.astype(np.uint8))

    draw = ImageDraw.Draw(image)
    font = _get_font(max(12, width // 16))
    caption = f"{text} ({width}x{height})"
    left, top, right, bottom = draw.textbbox((0, 0), caption, font=font)
    origin = ((width - (right - left)) // 2, (height - (bottom - top)) // 2)
    draw.text(origin, caption, fill=(255, 255, 255), font=font)
    return image


def _get_font(size: int) -> Optional[ImageFont.FreeTypeFont]:
    """Try to load a TrueType font, falling back to Pillow's default."""
    try:
        return ImageFont.truetype("arial.ttf", size)
    except Exception:
        try:
            return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", size)
        except Exception:
            return ImageFont.load_default()
