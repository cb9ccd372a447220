"""Framebuffer rendering helpers for presentation front ends."""

from typing import List, Sequence, Tuple

import numpy as np

from .state import DISPLAY_HEIGHT, DISPLAY_WIDTH


Color = Tuple[int, int, int]

PIXEL_ON: Color = (255, 255, 255)
PIXEL_OFF: Color = (0, 0, 0)


def framebuffer_to_array(framebuffer: Sequence[Sequence[bool]]) -> np.ndarray:
    """Convert a column-major framebuffer[x][y] to a row-major uint8 array.

    Returns:
        (DISPLAY_HEIGHT, DISPLAY_WIDTH) array of 0/1
    """
    columns = np.asarray(framebuffer, dtype=np.uint8)
    if columns.shape != (DISPLAY_WIDTH, DISPLAY_HEIGHT):
        raise ValueError(f"Expected a {DISPLAY_WIDTH}x{DISPLAY_HEIGHT} framebuffer, got {columns.shape}")
    return columns.T.copy()


def framebuffer_to_image(framebuffer: Sequence[Sequence[bool]], scale: int = 8,
                         on: Color = PIXEL_ON, off: Color = PIXEL_OFF) -> np.ndarray:
    """Scale a framebuffer up to an RGB image.

    Args:
        framebuffer: framebuffer[x][y] pixel values
        scale: Output pixels per CHIP-8 pixel along each axis
        on: Color of lit pixels
        off: Color of unlit pixels

    Returns:
        (32*scale, 64*scale, 3) uint8 array
    """
    if scale < 1:
        raise ValueError("scale must be at least 1")
    pixels = framebuffer_to_array(framebuffer).astype(bool)
    scaled = np.repeat(np.repeat(pixels, scale, axis=0), scale, axis=1)
    image = np.empty(scaled.shape + (3,), dtype=np.uint8)
    image[scaled] = on
    image[~scaled] = off
    return image


def framebuffer_rows(framebuffer: Sequence[Sequence[bool]]) -> List[str]:
    """Compact '#'/'.' rows, handy for assertions and logs."""
    pixels = framebuffer_to_array(framebuffer)
    return ["".join("#" if p else "." for p in row) for row in pixels]
