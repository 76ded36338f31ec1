"""
Bounds & Centering Analyzer
Scans posed frames for visible sprite quads and derives camera framing
"""

import math
from typing import Iterable, List, Optional, Tuple

from .data_structures import AnimationClip, Model, Rect, SpriteSheet, WorldTransform
from .hierarchy import pose

# Camera framing limits
MIN_ZOOM = 0.05
MAX_ZOOM = 5.0
BREATHING_ROOM = 0.45

# Strict scan thresholds
STRICT_MIN_OPACITY = 0.25
STRICT_GLOW_MIN_OPACITY = 0.75
OVERSIZED_SCALE = 3.0
OVERSIZED_MIN_OPACITY = 0.95
BEAM_MIN_HEIGHT = 1000.0
SKY_MAX_Y = -1200.0

# Centroid scan thresholds
CENTER_MIN_OPACITY = 0.2
LENIENT_MIN_OPACITY = 0.01

Point = Tuple[float, float]


def quad_corners(transform: WorldTransform, width: float, height: float) -> List[Point]:
    """World-space corners of a sprite quad offset by the part's pivot."""
    px, py = transform.pivot
    local = [
        (-px, -py),
        (width - px, -py),
        (width - px, height - py),
        (-px, height - py),
    ]
    return [transform.matrix.transform_point(x, y) for x, y in local]


def _corners_rect(corners: Iterable[Point]) -> Rect:
    xs, ys = zip(*corners)
    return Rect(min(xs), min(ys), max(xs), max(ys))


def _passes_strict(transform: WorldTransform) -> bool:
    if transform.hidden or transform.opacity < STRICT_MIN_OPACITY:
        return False
    if transform.glow > 0 and transform.opacity < STRICT_GLOW_MIN_OPACITY:
        return False
    if transform.matrix.max_scale > OVERSIZED_SCALE:
        if transform.opacity < OVERSIZED_MIN_OPACITY or transform.glow > 0:
            return False
    return True


def _passes_lenient(transform: WorldTransform) -> bool:
    return not transform.hidden and transform.opacity > LENIENT_MIN_OPACITY


def _is_effect_shape(rect: Rect) -> bool:
    # Tall narrow beams and geometry far above the unit
    if rect.height > BEAM_MIN_HEIGHT and rect.height > rect.width * 2.0:
        return True
    return rect.max_y < SKY_MAX_Y


def scan_bounds(
    model: Model,
    clip: Optional[AnimationClip],
    sheet: SpriteSheet,
    strict: bool,
    frame_range: Optional[Tuple[int, int]] = None,
) -> Optional[Rect]:
    """
    Union of every visible sprite quad over a range of frames

    Args:
        model: Model to pose
        clip: Animation, or None for the static pose
        sheet: Sprite sheet giving each sprite's pixel size
        strict: Drop faint, glowing, oversized and effect-shaped parts
        frame_range: Inclusive (start, end); defaults to the whole clip

    Returns:
        The world-space box, or None when nothing passed the filters
    """
    if frame_range is not None:
        start, end = frame_range
    elif clip is not None:
        start, end = 0, clip.max_frame
    else:
        start, end = 0, 0

    bounds: Optional[Rect] = None
    for frame in range(start, end + 1):
        for transform in pose(model, clip, float(frame)):
            if strict:
                if not _passes_strict(transform):
                    continue
            elif not _passes_lenient(transform):
                continue

            cut = sheet.get_cut(transform.sprite_index)
            if cut is None:
                continue

            part_rect = _corners_rect(quad_corners(transform, cut.width, cut.height))
            if strict and _is_effect_shape(part_rect):
                continue
            bounds = part_rect.union(bounds)

    return bounds


def tight_bounds(model: Model, clip: Optional[AnimationClip], sheet: SpriteSheet) -> Optional[Rect]:
    """Bounding box of the whole animation, strict scan first then lenient."""
    solid = scan_bounds(model, clip, sheet, True)
    if solid is not None:
        return solid
    return scan_bounds(model, clip, sheet, False)


def zoom_for(rect: Rect, viewport: Tuple[float, float]) -> float:
    w = max(rect.width, 1.0)
    h = max(rect.height, 1.0)
    zoom = min(viewport[0] / w, viewport[1] / h)
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


def initial_view(
    model: Model,
    clip: Optional[AnimationClip],
    sheet: SpriteSheet,
    viewport: Tuple[float, float],
) -> Optional[Tuple[Point, float]]:
    """
    Seed camera pan and zoom from frame 0

    Args:
        model: Model to frame
        clip: Animation, or None for the static pose
        sheet: Sprite sheet
        viewport: (width, height) of the view in pixels

    Returns:
        (pan, zoom) where pan is the negated box center, or None
    """
    frame_zero = (0, 0)
    rect = scan_bounds(model, clip, sheet, True, frame_zero)
    if rect is None:
        rect = scan_bounds(model, clip, sheet, False, frame_zero)
    if rect is None:
        return None

    cx, cy = rect.center
    return (-cx, -cy), zoom_for(rect, viewport) * BREATHING_ROOM


def _bounds_and_center(
    transforms: List[WorldTransform],
    sheet: SpriteSheet,
    strict: bool,
) -> Optional[Tuple[Point, Rect]]:
    bounds: Optional[Rect] = None
    weighted_x = 0.0
    weighted_y = 0.0
    total_weight = 0.0

    for transform in transforms:
        if transform.hidden:
            continue
        if strict:
            if transform.opacity < CENTER_MIN_OPACITY or transform.glow > 0:
                continue
        elif transform.opacity <= LENIENT_MIN_OPACITY:
            continue

        cut = sheet.get_cut(transform.sprite_index)
        if cut is None:
            continue

        w, h = cut.width, cut.height
        bounds = _corners_rect(quad_corners(transform, w, h)).union(bounds)

        m = transform.matrix
        sx, sy = m.scale_x, m.scale_y
        rot = m.rotation
        cos_r = math.cos(rot)
        sin_r = math.sin(rot)
        px, py = transform.pivot
        mid_x = (w / 2.0 - px) * sx
        mid_y = (h / 2.0 - py) * sy
        center_x = mid_x * cos_r - mid_y * sin_r + m.tx
        center_y = mid_x * sin_r + mid_y * cos_r + m.ty

        weight = (w * sx) * (h * sy) * transform.opacity
        weighted_x += center_x * weight
        weighted_y += center_y * weight
        total_weight += weight

    if bounds is None:
        return None

    if total_weight > 0.001:
        focus = (weighted_x / total_weight, weighted_y / total_weight)
    else:
        focus = bounds.center
    return (-focus[0], -focus[1]), bounds


def center_offset(
    model: Model,
    clip: Optional[AnimationClip],
    sheet: SpriteSheet,
) -> Optional[Tuple[Point, Rect]]:
    """
    Pan that centers the unit on its weighted visual centroid at frame 0

    Large opaque parts outweigh small bright effects.

    Returns:
        (pan, rect) where pan is the negated centroid and rect the frame-0 box
    """
    transforms = pose(model, clip, 0.0)
    result = _bounds_and_center(transforms, sheet, True)
    if result is not None:
        return result
    return _bounds_and_center(transforms, sheet, False)


def zoom_fit(rect: Rect, viewport: Tuple[float, float], padding: float) -> float:
    """Zoom that fits rect inside viewport, 1.0 for degenerate boxes."""
    if rect.width <= 1.0 or rect.height <= 1.0:
        return 1.0
    zoom = min(viewport[0] / rect.width, viewport[1] / rect.height)
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom)) * padding
