"""
Renderer module for the unit animation core
Draws posed parts into offscreen RGBA frames
"""

from .sprite_renderer import SpriteRenderer, make_frame_producer, render_transforms

__all__ = [
    'SpriteRenderer',
    'make_frame_producer',
    'render_transforms',
]
