"""
Sprite Renderer
Offscreen rendering of posed parts into RGBA frames with Pillow
Separated from the export pipeline so frames can be rendered and tested alone
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from core.data_structures import AnimationClip, Model, SpriteSheet, WorldTransform
from core.hierarchy import draw_order, pose
from core.transform import Affine2D

# Neutral grey used when an export asks for a background
BACKGROUND_COLOR = (50, 50, 50, 255)

# Parts fainter than this are not drawn
MIN_DRAW_OPACITY = 0.005


def camera_matrix(width: int, height: int, pan: Tuple[float, float], zoom: float) -> Affine2D:
    """World -> screen: viewport center + (world + pan) * zoom."""
    return Affine2D(
        m00=zoom,
        m01=0.0,
        m10=0.0,
        m11=zoom,
        tx=width / 2.0 + pan[0] * zoom,
        ty=height / 2.0 + pan[1] * zoom,
    )


def premultiply(image: Image.Image) -> np.ndarray:
    """RGBA image -> premultiplied float32 array."""
    arr = np.array(image.convert('RGBA'), dtype=np.float32)
    alpha = arr[..., 3:4] / 255.0
    arr[..., :3] *= alpha
    return arr


class SpriteRenderer:
    """
    Handles sprite rendering logic

    Owns the per-sheet cache of cropped, premultiplied sprite images; pass the
    same renderer to every frame of an export to reuse it.
    """

    def __init__(self, sheet: SpriteSheet):
        self.sheet = sheet
        self._sprite_cache: Dict[int, Optional[Image.Image]] = {}

    def clear_cache(self):
        self._sprite_cache.clear()

    def get_sprite_image(self, sprite_index: int) -> Optional[Image.Image]:
        """
        Cropped premultiplied sprite for an index

        Returns:
            RGBA image sized to the cut's original size, or None when the
            sheet has no bitmap or no cut for the index
        """
        if sprite_index in self._sprite_cache:
            return self._sprite_cache[sprite_index]

        sprite = None
        cut = self.sheet.get_cut(sprite_index)
        atlas = self.sheet.image
        if cut is not None and atlas is not None:
            left, top, right, bottom = cut.pixel_box(atlas.size)
            if right > left and bottom > top:
                crop = atlas.convert('RGBA').crop((left, top, right, bottom))
                size = (max(1, int(round(cut.width))), max(1, int(round(cut.height))))
                if crop.size != size:
                    crop = crop.resize(size, Image.Resampling.BILINEAR)
                sprite = Image.fromarray(premultiply(crop).astype(np.uint8), 'RGBA')

        self._sprite_cache[sprite_index] = sprite
        return sprite

    def render_frame(
        self,
        transforms: Sequence[WorldTransform],
        width: int,
        height: int,
        pan: Tuple[float, float] = (0.0, 0.0),
        zoom: float = 1.0,
        background: bool = False,
    ) -> Image.Image:
        """
        Render one frame

        Args:
            transforms: Resolved world transforms of every part
            width: Output width in pixels
            height: Output height in pixels
            pan: Camera pan in world units
            zoom: Camera zoom factor
            background: Fill with the neutral grey instead of transparency

        Returns:
            Premultiplied RGBA image
        """
        fill = BACKGROUND_COLOR if background else (0, 0, 0, 0)
        canvas = np.empty((height, width, 4), dtype=np.float32)
        canvas[...] = fill
        camera = camera_matrix(width, height, pan, zoom)

        for transform in draw_order(transforms):
            self.render_sprite(canvas, transform, camera)

        return Image.fromarray(np.clip(canvas, 0.0, 255.0).astype(np.uint8), 'RGBA')

    def render_sprite(self, canvas: np.ndarray, transform: WorldTransform, camera: Affine2D) -> bool:
        """Composite one part onto the canvas; returns False when nothing was drawn."""
        if transform.hidden or transform.opacity < MIN_DRAW_OPACITY:
            return False
        sprite = self.get_sprite_image(transform.sprite_index)
        if sprite is None:
            return False

        px, py = transform.pivot
        placement = camera @ transform.matrix @ Affine2D(tx=-px, ty=-py)
        try:
            inverse = placement.inverse()
        except ValueError:
            # Collapsed to zero area
            return False

        height, width = canvas.shape[:2]
        layer = sprite.transform(
            (width, height),
            Image.Transform.AFFINE,
            (inverse.m00, inverse.m01, inverse.tx, inverse.m10, inverse.m11, inverse.ty),
            resample=Image.Resampling.BILINEAR,
        )
        src = np.array(layer, dtype=np.float32) * transform.opacity

        if transform.glow > 0:
            canvas += src
        else:
            src_alpha = src[..., 3:4] / 255.0
            canvas *= 1.0 - src_alpha
            canvas += src
        np.clip(canvas, 0.0, 255.0, out=canvas)
        return True


def make_frame_producer(
    model: Model,
    clip: Optional[AnimationClip],
    sheet: SpriteSheet,
    width: int,
    height: int,
    pan: Tuple[float, float] = (0.0, 0.0),
    zoom: float = 1.0,
    background: bool = False,
    sub_frame: bool = False,
    renderer: Optional[SpriteRenderer] = None,
) -> Callable[[int], Image.Image]:
    """
    Wrap posing and rendering into the callback an export job pulls frames from

    Returns:
        frame number -> premultiplied RGBA image
    """
    renderer = renderer or SpriteRenderer(sheet)

    def produce(frame: int) -> Image.Image:
        transforms = pose(model, clip, float(frame), sub_frame=sub_frame)
        return renderer.render_frame(transforms, width, height, pan, zoom, background)

    return produce


def render_transforms(
    sheet: SpriteSheet,
    transforms: List[WorldTransform],
    width: int,
    height: int,
    pan: Tuple[float, float] = (0.0, 0.0),
    zoom: float = 1.0,
) -> Image.Image:
    """Render one frame with a throwaway renderer."""
    return SpriteRenderer(sheet).render_frame(transforms, width, height, pan, zoom)
