"""
Core module for the unit animation core
Contains data structures, posing, hierarchy, bounds, loop search and export
"""

from .data_structures import (
    ModificationType,
    EaseMode,
    LoopMode,
    Part,
    Model,
    Keyframe,
    Curve,
    AnimationClip,
    SpriteCut,
    SpriteSheet,
    WorldTransform,
    Rect,
)
from .transform import (
    Affine2D,
    create_translation_matrix,
    create_rotation_matrix,
    create_scale_matrix,
    matrix_multiply,
)
from .animation_player import AnimationPlayer, evaluate, interpolate_curve
from .hierarchy import solve, pose, draw_order
from .bounds import tight_bounds, initial_view, center_offset, zoom_fit
from .loop_finder import LoopStatus, start_search

__all__ = [
    'ModificationType',
    'EaseMode',
    'LoopMode',
    'Part',
    'Model',
    'Keyframe',
    'Curve',
    'AnimationClip',
    'SpriteCut',
    'SpriteSheet',
    'WorldTransform',
    'Rect',
    'Affine2D',
    'create_translation_matrix',
    'create_rotation_matrix',
    'create_scale_matrix',
    'matrix_multiply',
    'AnimationPlayer',
    'evaluate',
    'interpolate_curve',
    'solve',
    'pose',
    'draw_order',
    'tight_bounds',
    'initial_view',
    'center_offset',
    'zoom_fit',
    'LoopStatus',
    'start_search',
]
