"""
Hierarchy Resolver
Composes posed parts through their parent chain into world-space transforms
"""

from typing import List, Optional, Sequence

from .animation_player import evaluate
from .data_structures import AnimationClip, Model, Part, WorldTransform
from .transform import Affine2D

# Parts fainter than this are treated as hidden
HIDDEN_OPACITY = 0.001


def local_matrix(part: Part, model: Model) -> Affine2D:
    """
    Build a part's local transform

    The transformation order is: Translate to position -> Rotate -> Scale.
    Flip flags mirror the matrix through a negative scale. The pivot is not
    baked in; it offsets the sprite quad instead.

    Args:
        part: Posed part
        model: Model providing the scale/angle units

    Returns:
        Local affine matrix
    """
    scale_unit, angle_unit, _ = model.units
    angle_degrees = part.rotation * 360.0 / angle_unit
    scale_x = part.scale_x / scale_unit
    scale_y = part.scale_y / scale_unit
    if part.flip_x:
        scale_x = -scale_x
    if part.flip_y:
        scale_y = -scale_y
    return Affine2D.from_components(part.position_x, part.position_y, angle_degrees, scale_x, scale_y)


def solve(parts: Sequence[Part], model: Model) -> List[WorldTransform]:
    """
    Resolve world transforms for a posed part list

    Child transform = Parent_Matrix x Child_Local_Matrix. Parts are walked in
    index order, so a parent index that is not strictly smaller than the
    child's own index cannot be resolved yet and the part is placed as a root.

    Args:
        parts: Posed parts (see evaluate)
        model: Model the parts belong to

    Returns:
        One WorldTransform per part, in part order
    """
    _, _, alpha_unit = model.units
    resolved: List[WorldTransform] = []

    for index, part in enumerate(parts):
        parent: Optional[WorldTransform] = None
        if 0 <= part.parent_id < index:
            parent = resolved[part.parent_id]

        local = local_matrix(part, model)
        own_opacity = max(0.0, min(1.0, part.alpha / alpha_unit))

        if parent is not None:
            matrix = parent.matrix @ local
            opacity = own_opacity * parent.opacity
            glow = part.glow if part.glow > 0 else parent.glow
        else:
            matrix = local
            opacity = own_opacity
            glow = part.glow

        hidden = part.unit_id == -1 or part.sprite_index == -1 or opacity < HIDDEN_OPACITY

        resolved.append(WorldTransform(
            matrix=matrix,
            opacity=opacity,
            glow=glow,
            hidden=hidden,
            sprite_index=part.sprite_index,
            pivot=(part.pivot_x, part.pivot_y),
            z_order=part.draw_layer,
            part_index=index,
        ))

    return resolved


def pose(
    model: Model,
    clip: Optional[AnimationClip],
    frame: float,
    sub_frame: bool = False,
) -> List[WorldTransform]:
    """Evaluate and resolve one frame."""
    return solve(evaluate(model, clip, frame, sub_frame=sub_frame), model)


def draw_order(transforms: Sequence[WorldTransform]) -> List[WorldTransform]:
    """Sort transforms back-to-front by draw layer, ties kept in part order."""
    return sorted(transforms, key=lambda wt: (wt.z_order, wt.part_index))
