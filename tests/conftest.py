from __future__ import annotations

from typing import List, Sequence, Tuple

import pytest
from PIL import Image

from core.data_structures import (
    AnimationClip,
    Curve,
    EaseMode,
    Keyframe,
    LoopMode,
    Model,
    ModificationType,
    Part,
    SpriteCut,
    SpriteSheet,
)

# Root part that draws nothing itself
ROOT = Part(parent_id=-1, sprite_index=-1)


def make_curve(
    part_index: int,
    mod_type: ModificationType,
    points: Sequence[Tuple[int, int]],
    loop_mode: LoopMode = LoopMode.ONCE,
    ease: EaseMode = EaseMode.LINEAR,
    ease_power: int = 0,
) -> Curve:
    keyframes = [Keyframe(frame, value, ease, ease_power) for frame, value in points]
    return Curve(part_index, mod_type, keyframes, loop_mode)


@pytest.fixture
def curve_factory():
    return make_curve


@pytest.fixture
def single_part_model() -> Model:
    """Root plus one 100x100 sprite part centered on (10, 20)."""
    part = Part(parent_id=0, sprite_index=0, position_x=10, position_y=20, pivot_x=50, pivot_y=50)
    return Model([ROOT, part], name="single")


@pytest.fixture
def chain_model() -> Model:
    """Root -> arm -> hand, each with its own offset, rotation and scale."""
    root = Part(parent_id=-1, sprite_index=-1, rotation=300, scale_x=1200, scale_y=900)
    arm = Part(parent_id=0, position_x=30, position_y=-5, rotation=450, scale_x=800, scale_y=1100)
    hand = Part(parent_id=1, position_x=12, position_y=7, rotation=-200, flip_x=True)
    return Model([root, arm, hand], name="chain")


@pytest.fixture
def square_sheet() -> SpriteSheet:
    """Sprite 0 is 100x100, sprite 1 a 10x2000 beam, no bitmap."""
    return SpriteSheet(cuts={
        0: SpriteCut((0.0, 0.0, 1.0, 1.0), 100, 100),
        1: SpriteCut((0.0, 0.0, 1.0, 1.0), 10, 2000),
    })


@pytest.fixture
def red_sheet() -> SpriteSheet:
    """A 10x10 opaque red atlas holding a single sprite."""
    image = Image.new('RGBA', (10, 10), (255, 0, 0, 255))
    return SpriteSheet(cuts={0: SpriteCut((0.0, 0.0, 1.0, 1.0), 10, 10)}, image=image, name="red")


@pytest.fixture
def looping_clip() -> AnimationClip:
    """Part 1 slides and spins, repeating exactly every 30 frames."""
    curves: List[Curve] = [
        make_curve(1, ModificationType.TRANSLATE_X, [(0, 0), (30, 300)], LoopMode.CYCLIC),
        make_curve(1, ModificationType.ROTATE, [(0, 0), (30, 3600)], LoopMode.CYCLIC),
    ]
    return AnimationClip(curves, name="loop")
