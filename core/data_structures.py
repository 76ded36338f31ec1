"""
Data structures for the unit animation core
Defines the parsed model/clip/atlas types consumed by the core and the
per-frame types it produces
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple

from .transform import Affine2D


DEFAULT_SCALE_UNIT = 1000.0
DEFAULT_ANGLE_UNIT = 3600.0
DEFAULT_ALPHA_UNIT = 1000.0


class ModificationType(IntEnum):
    """Attribute a curve drives, using the tag values stored in animation files."""
    UNKNOWN = -1
    REPARENT = 0
    REASSIGN_UNIT = 1
    SET_SPRITE = 2
    SET_DRAW_LAYER = 3
    TRANSLATE_X = 4
    TRANSLATE_Y = 5
    PIVOT_X = 6
    PIVOT_Y = 7
    SCALE_UNIFORM = 8
    SCALE_X = 9
    SCALE_Y = 10
    ROTATE = 11
    ALPHA = 12
    FLIP_X = 13
    FLIP_Y = 14

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN

    @property
    def is_discrete(self) -> bool:
        return self in _DISCRETE_TYPES


_DISCRETE_TYPES = frozenset({
    ModificationType.REPARENT,
    ModificationType.REASSIGN_UNIT,
    ModificationType.SET_DRAW_LAYER,
    ModificationType.FLIP_X,
    ModificationType.FLIP_Y,
})


class EaseMode(IntEnum):
    """Keyframe easing. Unknown tags fall back to linear."""
    LINEAR = 0
    STEP = 1
    POWER = 2
    LAGRANGE = 3

    @classmethod
    def _missing_(cls, value):
        return cls.LINEAR


class LoopMode(Enum):
    ONCE = "once"
    CYCLIC = "cyclic"


@dataclass(frozen=True)
class Part:
    """One node of a model rig"""
    parent_id: int = -1
    unit_id: int = 0
    sprite_index: int = 0
    draw_layer: int = 0
    position_x: float = 0.0
    position_y: float = 0.0
    pivot_x: float = 0.0
    pivot_y: float = 0.0
    scale_x: float = DEFAULT_SCALE_UNIT
    scale_y: float = DEFAULT_SCALE_UNIT
    rotation: float = 0.0
    alpha: float = DEFAULT_ALPHA_UNIT
    glow: int = 0
    flip_x: bool = False
    flip_y: bool = False
    name: str = ""


@dataclass
class Model:
    """Parsed model: an ordered part list plus the unit constants of its file"""
    parts: List[Part]
    scale_unit: float = DEFAULT_SCALE_UNIT
    angle_unit: float = DEFAULT_ANGLE_UNIT
    alpha_unit: float = DEFAULT_ALPHA_UNIT
    name: str = ""

    def __post_init__(self):
        parts = list(self.parts)
        if parts:
            # The root always sits on the origin, whatever the file says
            parts[0] = replace(parts[0], position_x=0.0, position_y=0.0, pivot_x=0.0, pivot_y=0.0)
        self.parts = parts

    @property
    def units(self) -> Tuple[float, float, float]:
        """(scale, angle, alpha) units with zero values replaced by the defaults."""
        return (
            self.scale_unit or DEFAULT_SCALE_UNIT,
            self.angle_unit or DEFAULT_ANGLE_UNIT,
            self.alpha_unit or DEFAULT_ALPHA_UNIT,
        )


@dataclass(frozen=True)
class Keyframe:
    frame: int
    value: int
    ease_mode: EaseMode = EaseMode.LINEAR
    ease_power: int = 0


@dataclass
class Curve:
    """A keyframe track driving one attribute of one part"""
    part_index: int
    modification_type: ModificationType
    keyframes: List[Keyframe]
    loop_mode: LoopMode = LoopMode.ONCE

    @property
    def first_frame(self) -> int:
        return self.keyframes[0].frame if self.keyframes else 0

    @property
    def last_frame(self) -> int:
        return self.keyframes[-1].frame if self.keyframes else 0

    @property
    def span(self) -> int:
        return self.last_frame - self.first_frame


_TRUE_LOOP_LIMIT = 999_999


@dataclass
class AnimationClip:
    """Parsed animation: the curves applied on top of a model"""
    curves: List[Curve]
    name: str = ""

    @property
    def max_frame(self) -> int:
        """Largest last-keyframe frame over all curves."""
        last_frames = [curve.last_frame for curve in self.curves if curve.keyframes]
        return max(last_frames, default=0)

    def true_loop_length(self) -> Optional[int]:
        """
        Length after which every cyclic curve is back in phase

        Returns:
            max_frame when nothing cycles, None when the common period is
            larger than 999,999 frames, otherwise max(period, max_frame)
        """
        period = 1
        found_cyclic = False
        for curve in self.curves:
            if curve.loop_mode != LoopMode.CYCLIC or not curve.keyframes:
                continue
            if curve.span > 0:
                period = period * curve.span // math.gcd(period, curve.span)
                found_cyclic = True
                if period > _TRUE_LOOP_LIMIT:
                    return None

        if not found_cyclic:
            return self.max_frame
        return max(period, self.max_frame)


@dataclass(frozen=True)
class SpriteCut:
    """Atlas entry for one sprite index"""
    uv: Tuple[float, float, float, float]
    width: float
    height: float

    def pixel_box(self, image_size: Tuple[int, int]) -> Tuple[int, int, int, int]:
        """Return the cut's (left, top, right, bottom) pixel box inside the atlas image."""
        image_w, image_h = image_size
        u0, v0, u1, v1 = self.uv
        return (
            int(round(u0 * image_w)),
            int(round(v0 * image_h)),
            int(round(u1 * image_w)),
            int(round(v1 * image_h)),
        )


@dataclass
class SpriteSheet:
    """Sprite atlas: sprite index -> cut, plus the optional atlas bitmap"""
    cuts: Dict[int, SpriteCut] = field(default_factory=dict)
    image: Optional[object] = None
    name: str = ""

    def get_cut(self, sprite_index: int) -> Optional[SpriteCut]:
        return self.cuts.get(sprite_index)


@dataclass(frozen=True)
class WorldTransform:
    """Resolved placement and visibility of one part at one frame"""
    matrix: Affine2D
    opacity: float
    glow: int
    hidden: bool
    sprite_index: int
    pivot: Tuple[float, float]
    z_order: int
    part_index: int


@dataclass(frozen=True)
class Rect:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def union(self, other: Optional["Rect"]) -> "Rect":
        if other is None:
            return self
        return Rect(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )
