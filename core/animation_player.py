"""
Animation Player
Handles animation playback, timing, and keyframe interpolation
"""

import math
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set

from .data_structures import (
    AnimationClip,
    Curve,
    EaseMode,
    Keyframe,
    LoopMode,
    Model,
    ModificationType,
    Part,
    WorldTransform,
)

# Per-frame velocity above which a short segment snaps instead of tweening
_SNAP_SEGMENT_FRAMES = 2.1
_SNAP_VELOCITY = {
    ModificationType.TRANSLATE_X: 20.0,
    ModificationType.TRANSLATE_Y: 20.0,
    ModificationType.PIVOT_X: 20.0,
    ModificationType.PIVOT_Y: 20.0,
    ModificationType.ROTATE: 15.0,
    ModificationType.SCALE_UNIFORM: 0.2,
    ModificationType.SCALE_X: 0.2,
    ModificationType.SCALE_Y: 0.2,
    ModificationType.ALPHA: 0.2,
}

_LAGRANGE_EPSILON = 1e-4


def lerp(a: float, b: float, t: float) -> float:
    """
    Linear interpolation between two values

    Args:
        a: Start value
        b: End value
        t: Interpolation factor (0-1)

    Returns:
        Interpolated value
    """
    return a + (b - a) * t


def wrap_frame(curve: Curve, frame: float) -> float:
    """Map a query frame into the curve's keyframe range when it cycles."""
    if curve.loop_mode != LoopMode.CYCLIC or not curve.keyframes:
        return frame
    first = curve.first_frame
    duration = max(curve.span, 1)
    # Python's % already returns the Euclidean remainder for a positive divisor
    return (frame - first) % duration + first


def _power_factor(t: float, power: int) -> float:
    t = max(0.0, min(1.0, t))
    p = power or 1
    try:
        if p >= 0:
            factor = 1.0 - math.sqrt(1.0 - t ** p)
        else:
            factor = math.sqrt(1.0 - (1.0 - t) ** (-p))
    except (ValueError, ZeroDivisionError):
        return t
    if math.isnan(factor):
        return t
    return factor


def _lagrange_points(keyframes: Sequence[Keyframe], start_idx: int, end_idx: int) -> List[Keyframe]:
    points = [keyframes[start_idx]]
    i = start_idx - 1
    while i >= 0 and keyframes[i].ease_mode == EaseMode.LAGRANGE:
        points.insert(0, keyframes[i])
        i -= 1

    for j in range(end_idx, len(keyframes)):
        points.append(keyframes[j])
        if keyframes[j].ease_mode != EaseMode.LAGRANGE:
            break
    return points


def lagrange(points: Sequence[Keyframe], frame: float) -> float:
    """Evaluate the Lagrange polynomial through (frame, value) points."""
    total = 0.0
    for j, pj in enumerate(points):
        term = float(pj.value)
        for m, pm in enumerate(points):
            if m == j:
                continue
            denom = pj.frame - pm.frame
            if abs(denom) <= _LAGRANGE_EPSILON:
                continue
            term *= (frame - pm.frame) / denom
        total += term
    return total


def interpolate_curve(
    curve: Curve,
    frame: float,
    sub_frame: bool = False,
    reparent_frames: Optional[Set[int]] = None,
) -> Optional[float]:
    """
    Evaluate one curve at a frame

    Args:
        curve: Curve to evaluate
        frame: Query frame (fractional frames allowed)
        sub_frame: Use the smoothed sub-frame rules used by interpolated exports
        reparent_frames: Frames at which the same part switches parent (sub-frame only)

    Returns:
        The curve value, or None when the curve has no effect at this frame
    """
    keyframes = curve.keyframes
    if not keyframes:
        return None

    mod_type = curve.modification_type
    query = wrap_frame(curve, frame)
    if query < keyframes[0].frame:
        return None

    end_idx = None
    for idx, keyframe in enumerate(keyframes):
        if keyframe.frame > query:
            end_idx = idx
            break

    if end_idx is None:
        return float(keyframes[-1].value)
    if end_idx == 0:
        return float(keyframes[0].value)

    start = keyframes[end_idx - 1]
    end = keyframes[end_idx]

    discrete = mod_type.is_discrete or (sub_frame and mod_type == ModificationType.SET_SPRITE)
    if discrete:
        return float(start.value)

    frames = end.frame - start.frame
    if frames == 0:
        return float(start.value)

    change = end.value - start.value

    if sub_frame:
        if reparent_frames and end.frame in reparent_frames:
            return float(start.value)
        threshold = _SNAP_VELOCITY.get(mod_type)
        if threshold is not None and frames <= _SNAP_SEGMENT_FRAMES:
            if abs(change) / frames > threshold:
                return float(start.value)

    t = (query - start.frame) / frames

    if start.ease_mode == EaseMode.LAGRANGE:
        value = lagrange(_lagrange_points(keyframes, end_idx - 1, end_idx), query)
    elif start.ease_mode == EaseMode.STEP:
        value = float(end.value) if t >= 1.0 else float(start.value)
    elif start.ease_mode == EaseMode.POWER:
        value = lerp(start.value, end.value, _power_factor(t, start.ease_power))
    else:
        value = lerp(start.value, end.value, t)

    if mod_type == ModificationType.SET_SPRITE:
        value = float(math.ceil(value) if change < 0 else math.floor(value))
    return value


def _apply_value(state: Dict, base: Part, part_index: int, mod_type: ModificationType, value: float, model: Model):
    # Continuous values are taken against the base part, so a later curve of
    # the same kind replaces an earlier one
    scale_unit, _, alpha_unit = model.units

    if mod_type == ModificationType.REPARENT:
        parent = int(value)
        if parent != part_index:
            state['parent_id'] = parent
    elif mod_type == ModificationType.REASSIGN_UNIT:
        state['unit_id'] = int(value)
    elif mod_type == ModificationType.SET_SPRITE:
        state['sprite_index'] = int(value)
    elif mod_type == ModificationType.SET_DRAW_LAYER:
        state['draw_layer'] = int(value)
    elif mod_type == ModificationType.TRANSLATE_X:
        state['position_x'] = base.position_x + value
    elif mod_type == ModificationType.TRANSLATE_Y:
        state['position_y'] = base.position_y + value
    elif mod_type == ModificationType.PIVOT_X:
        state['pivot_x'] = base.pivot_x + value
    elif mod_type == ModificationType.PIVOT_Y:
        state['pivot_y'] = base.pivot_y + value
    elif mod_type == ModificationType.SCALE_UNIFORM:
        state['scale_x'] = base.scale_x * value / scale_unit
        state['scale_y'] = base.scale_y * value / scale_unit
    elif mod_type == ModificationType.SCALE_X:
        state['scale_x'] = base.scale_x * value / scale_unit
    elif mod_type == ModificationType.SCALE_Y:
        state['scale_y'] = base.scale_y * value / scale_unit
    elif mod_type == ModificationType.ROTATE:
        state['rotation'] = base.rotation + value
    elif mod_type == ModificationType.ALPHA:
        state['alpha'] = base.alpha * value / alpha_unit
    elif mod_type == ModificationType.FLIP_X:
        state['flip_x'] = value != 0
    elif mod_type == ModificationType.FLIP_Y:
        state['flip_y'] = value != 0
    # ModificationType.UNKNOWN: no-op


def _reparent_frames(clip: AnimationClip) -> Dict[int, Set[int]]:
    frames: Dict[int, Set[int]] = {}
    for curve in clip.curves:
        if curve.modification_type == ModificationType.REPARENT:
            frames.setdefault(curve.part_index, set()).update(k.frame for k in curve.keyframes)
    return frames


def evaluate(
    model: Model,
    clip: Optional[AnimationClip],
    frame: float,
    sub_frame: bool = False,
) -> List[Part]:
    """
    Pose a model at a frame

    The model is never modified; a new part list carrying the curve-driven
    overrides is returned.

    Args:
        model: Base model
        clip: Animation applied on top of the model (None for the static pose)
        frame: Query frame
        sub_frame: Use the smoothed sub-frame rules

    Returns:
        Posed copy of the model's parts
    """
    parts = model.parts
    if clip is None or not clip.curves:
        return list(parts)

    reparent_frames = _reparent_frames(clip) if sub_frame else {}
    overrides: Dict[int, Dict] = {}

    for curve in clip.curves:
        index = curve.part_index
        if index < 0 or index >= len(parts) or not curve.keyframes:
            continue
        value = interpolate_curve(
            curve,
            frame,
            sub_frame=sub_frame,
            reparent_frames=reparent_frames.get(index),
        )
        if value is None:
            continue
        state = overrides.get(index)
        if state is None:
            part = parts[index]
            state = {
                'parent_id': part.parent_id,
                'unit_id': part.unit_id,
                'sprite_index': part.sprite_index,
                'draw_layer': part.draw_layer,
                'position_x': part.position_x,
                'position_y': part.position_y,
                'pivot_x': part.pivot_x,
                'pivot_y': part.pivot_y,
                'scale_x': part.scale_x,
                'scale_y': part.scale_y,
                'rotation': part.rotation,
                'alpha': part.alpha,
                'flip_x': part.flip_x,
                'flip_y': part.flip_y,
            }
            overrides[index] = state
        _apply_value(state, parts[index], index, curve.modification_type, value, model)

    posed = list(parts)
    for index, state in overrides.items():
        posed[index] = replace(parts[index], **state)
    return posed


class AnimationPlayer:
    """Handles animation playback and frame posing"""

    def __init__(self, fps: float = 30.0):
        self.model: Optional[Model] = None
        self.clip: Optional[AnimationClip] = None
        self.current_frame: float = 0.0
        self.fps: float = fps
        self.playing: bool = False
        self.loop: bool = True
        self.duration: float = 0.0
        self.playback_speed: float = 1.0
        # When True, poses use the sub-frame smoothing rules
        self.sub_frame: bool = False

    def load_animation(self, model: Model, clip: Optional[AnimationClip]):
        """
        Load a model and the animation to play on it

        Args:
            model: Model to animate
            clip: Animation clip, or None for the static pose
        """
        self.model = model
        self.clip = clip
        self.current_frame = 0.0
        self.calculate_duration()

    def calculate_duration(self):
        """Calculate animation duration (in frames) from keyframes"""
        if not self.clip:
            self.duration = 0.0
            return
        self.duration = float(self.clip.max_frame)

    def update(self, delta_time: float):
        """
        Advance the playhead

        Args:
            delta_time: Time elapsed since last update (in seconds)
        """
        if not self.playing or not self.model:
            return

        speed = max(0.01, self.playback_speed)
        self.current_frame += delta_time * self.fps * speed

        if self.current_frame > self.duration:
            if self.loop and self.duration > 0:
                self.current_frame %= self.duration
            else:
                self.current_frame = self.duration
                self.playing = False

    def seek(self, frame: float):
        self.current_frame = max(0.0, min(float(frame), self.duration))

    def set_playback_speed(self, speed: float):
        """Adjust playback speed multiplier (>0)."""
        if speed <= 0:
            speed = 0.01
        self.playback_speed = speed

    def posed_parts(self, frame: Optional[float] = None) -> List[Part]:
        if not self.model:
            return []
        at = self.current_frame if frame is None else frame
        return evaluate(self.model, self.clip, at, sub_frame=self.sub_frame)

    def world_transforms(self, frame: Optional[float] = None) -> List[WorldTransform]:
        """Resolve world transforms for the current (or given) frame."""
        if not self.model:
            return []
        # Imported here, hierarchy imports evaluate from this module
        from .hierarchy import solve
        return solve(self.posed_parts(frame), self.model)
