"""
Artwork-driven color derivation.

The dominant color of the artwork is extracted with a deterministic quantization
pass. Text and accent colors are then chosen by WCAG contrast ratio against the
dominant color, the accent from hue rotations of the dominant color itself.
"""

from __future__ import annotations

import colorsys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from PIL import Image

from spotifymonitor.models.types import (
    BLACK,
    DEFAULT_DOMINANT_COLOR,
    WHITE,
    Color,
    HarmonyType,
)

# Extraction works on a fixed-size thumbnail so that cost does not depend on artwork size
EXTRACTION_SIZE = (64, 64)
MAX_EXTRACTED_COLORS = 8

TRIADIC_OFFSETS = (120.0, 240.0)
ANALOGOUS_OFFSETS = (30.0, -30.0)
COMPLEMENTARY_OFFSET = 180.0

TEXT_CANDIDATES = (BLACK, WHITE)


def extract_colors(image: Image.Image, max_colors: int = MAX_EXTRACTED_COLORS) -> list[Color]:
    """
    Extract the main colors of an image, most frequent first.

    Uses median-cut quantization, which is deterministic: identical pixels
    always produce identical colors in identical order. Ties in pixel count
    are ordered by palette index.

    NOTE: This function is not async friendly.
    """
    if max_colors <= 0:
        raise ValueError(f"max_colors must be positive, got {max_colors}")

    rgb_image = image.convert("RGB")
    if rgb_image.size != EXTRACTION_SIZE:
        rgb_image = rgb_image.resize(EXTRACTION_SIZE, Image.Resampling.BILINEAR)
    quantized = rgb_image.quantize(colors=max_colors, method=Image.Quantize.MEDIANCUT)

    palette = quantized.getpalette() or []
    counts = quantized.getcolors(256) or []
    colors: list[Color] = []
    for _count, index in sorted(counts, key=lambda entry: (-entry[0], entry[1])):
        offset = index * 3
        colors.append(Color(palette[offset], palette[offset + 1], palette[offset + 2]))
    return colors


def _linearize(channel: int) -> float:
    value = channel / 255
    if value <= 0.04045:
        return value / 12.92
    return ((value + 0.055) / 1.055) ** 2.4


def relative_luminance(color: Color) -> float:
    """WCAG relative luminance of an sRGB color (0.0 for black, 1.0 for white)."""
    return (
        0.2126 * _linearize(color.r)
        + 0.7152 * _linearize(color.g)
        + 0.0722 * _linearize(color.b)
    )


def contrast_ratio(first: Color, second: Color) -> float:
    """WCAG contrast ratio between two colors, from 1.0 to 21.0."""
    lum_first = relative_luminance(first)
    lum_second = relative_luminance(second)
    lighter, darker = max(lum_first, lum_second), min(lum_first, lum_second)
    return (lighter + 0.05) / (darker + 0.05)


def choose_best_contrasting_color(base: Color, candidates: Iterable[Color]) -> Color:
    """
    Return the candidate with the highest contrast ratio against base.

    The first candidate wins ties.
    """
    best_color: Color | None = None
    best_contrast = 0.0
    for candidate in candidates:
        contrast = contrast_ratio(base, candidate)
        if best_color is None or contrast > best_contrast:
            best_color = candidate
            best_contrast = contrast
    if best_color is None:
        raise ValueError("At least one candidate color is required")
    return best_color


def provide_text_color(background: Color) -> Color:
    """Return black or white, whichever is more readable on background."""
    return choose_best_contrasting_color(background, TEXT_CANDIDATES)


def rotate_hue(color: Color, degrees: float) -> Color:
    """
    Rotate the hue of a color by the given number of degrees.

    Saturation, lightness and alpha are kept.
    """
    hue, lightness, saturation = colorsys.rgb_to_hls(color.r / 255, color.g / 255, color.b / 255)
    rotated = ((hue * 360.0 + degrees) % 360.0) / 360.0
    red, green, blue = colorsys.hls_to_rgb(rotated, lightness, saturation)
    return Color(
        _to_channel(red),
        _to_channel(green),
        _to_channel(blue),
        color.a,
    )


def _to_channel(value: float) -> int:
    # Rounded, not truncated: a full turn maps every channel back onto itself
    return max(0, min(255, round(value * 255)))


def provide_triadic_colors(color: Color) -> tuple[Color, Color]:
    """Return the two triadic companions (+120 and +240 degrees) of a color."""
    first, second = TRIADIC_OFFSETS
    return rotate_hue(color, first), rotate_hue(color, second)


def provide_analogous_colors(color: Color) -> tuple[Color, Color]:
    """Return the two analogous neighbours (+30 and -30 degrees) of a color."""
    first, second = ANALOGOUS_OFFSETS
    return rotate_hue(color, first), rotate_hue(color, second)


def provide_complementary_color(color: Color) -> Color:
    """Return the complementary color (+180 degrees) of a color."""
    return rotate_hue(color, COMPLEMENTARY_OFFSET)


def harmonic_colors(color: Color) -> dict[HarmonyType, tuple[Color, ...]]:
    """Return all harmonic colors of a color, grouped by harmony."""
    return {
        HarmonyType.TRIADIC: provide_triadic_colors(color),
        HarmonyType.ANALOGOUS: provide_analogous_colors(color),
        HarmonyType.COMPLEMENTARY: (provide_complementary_color(color),),
    }


def accent_candidates(color: Color) -> list[Color]:
    """
    Candidate accent colors, in selection order.

    Triadic first, then analogous, then complementary.
    """
    harmonics = harmonic_colors(color)
    return [
        *harmonics[HarmonyType.TRIADIC],
        *harmonics[HarmonyType.ANALOGOUS],
        *harmonics[HarmonyType.COMPLEMENTARY],
    ]


@dataclass(frozen=True)
class Palette:
    """Colors derived from one piece of artwork."""

    dominant: Color
    """Most frequent artwork color, used as background."""
    text: Color
    """Black or white, whichever contrasts most with dominant."""
    accent: Color | None = None
    """Harmonic color contrasting most with dominant, if accent selection is enabled."""
    harmonics: tuple[Color, ...] = ()
    """Accent candidates in selection order."""
    extracted: tuple[Color, ...] = field(default_factory=tuple)
    """All colors extracted from the artwork, most frequent first."""

    @property
    def progress(self) -> Color:
        """Color of the progress bar."""
        return self.accent if self.accent is not None else self.text


def palette_from_dominant(
    dominant: Color, extracted: Sequence[Color] = (), *, accent: bool = True
) -> Palette:
    """Derive a palette from a known dominant color."""
    harmonics = tuple(accent_candidates(dominant)) if accent else ()
    return Palette(
        dominant=dominant,
        text=provide_text_color(dominant),
        accent=choose_best_contrasting_color(dominant, harmonics) if harmonics else None,
        harmonics=harmonics,
        extracted=tuple(extracted),
    )


def palette_from_image(image: Image.Image, *, accent: bool = True) -> Palette:
    """
    Derive a palette from decoded artwork.

    Falls back to the default dominant color when nothing can be extracted.

    NOTE: This function is not async friendly.
    """
    extracted = extract_colors(image)
    if not extracted:
        return default_palette(accent=accent)
    return palette_from_dominant(extracted[0], extracted, accent=accent)


def default_palette(*, accent: bool = True) -> Palette:
    """Palette used when there is no usable artwork."""
    return palette_from_dominant(DEFAULT_DOMINANT_COLOR, accent=accent)
