"""Hierarchy resolution tests: matrix composition, inheritance and malformed parents."""

from __future__ import annotations

import math

import numpy as np
import pytest

from core.data_structures import AnimationClip, Curve, Keyframe, LoopMode, Model, ModificationType, Part
from core.hierarchy import draw_order, local_matrix, pose, solve
from core.transform import (
    Affine2D,
    create_rotation_matrix,
    create_scale_matrix,
    create_translation_matrix,
    matrix_multiply,
)


class TestAffine2D:
    def test_matmul_matches_numpy(self):
        a = Affine2D.from_components(3, -4, 30, 2, 0.5)
        b = Affine2D.from_components(-1, 7, -75, 1.5, -1)
        expected = a.to_array() @ b.to_array()
        np.testing.assert_allclose((a @ b).to_array(), expected)

    def test_from_components_matches_helpers(self):
        built = matrix_multiply(
            matrix_multiply(create_translation_matrix(5, 6), create_rotation_matrix(40)),
            create_scale_matrix(2, 3),
        )
        np.testing.assert_allclose(Affine2D.from_components(5, 6, 40, 2, 3).to_array(), built)

    def test_accessors(self):
        m = Affine2D.from_components(8, 9, 90, 2, 3)
        assert m.translation == (8, 9)
        assert m.scale_x == pytest.approx(2)
        assert m.scale_y == pytest.approx(3)
        assert m.rotation == pytest.approx(math.pi / 2)
        assert m.transform_point(1, 0) == pytest.approx((8, 11))

    def test_inverse(self):
        m = Affine2D.from_components(8, -2, 33, 2, -0.5)
        np.testing.assert_allclose((m @ m.inverse()).to_array(), np.eye(3), atol=1e-12)

    def test_singular_inverse_raises(self):
        with pytest.raises(ValueError):
            Affine2D(m00=0, m11=0).inverse()

    def test_flat_layout_is_column_major(self):
        m = Affine2D(1, 2, 3, 4, 5, 6)
        assert m.as_flat() == (1, 3, 0, 2, 4, 0, 5, 6, 1)


class TestLocalMatrix:
    def test_rotation_uses_angle_unit(self):
        model = Model([Part()])
        m = local_matrix(Part(rotation=900), model)
        assert m.transform_point(1, 0) == pytest.approx((0, 1), abs=1e-12)

    def test_flip_mirrors_axis(self):
        model = Model([Part()])
        m = local_matrix(Part(flip_x=True, scale_x=2000), model)
        assert m.m00 == pytest.approx(-2)
        assert m.m11 == pytest.approx(1)

    def test_zero_units_fall_back_to_defaults(self):
        model = Model([Part()], scale_unit=0, angle_unit=0, alpha_unit=0)
        m = local_matrix(Part(scale_x=500, rotation=1800), model)
        assert m.scale_x == pytest.approx(0.5)
        assert abs(m.rotation) == pytest.approx(math.pi)


class TestSolve:
    def test_chain_equals_explicit_product(self, chain_model):
        world = solve(chain_model.parts, chain_model)
        locals_ = [local_matrix(p, chain_model).to_array() for p in chain_model.parts]
        expected = locals_[0] @ locals_[1] @ locals_[2]
        np.testing.assert_allclose(world[2].matrix.to_array(), expected, atol=1e-9)

    def test_opacity_multiplies_down_the_chain(self):
        parts = [Part(alpha=500), Part(parent_id=0, alpha=500), Part(parent_id=1, alpha=2000)]
        world = solve(parts, Model(parts))
        assert [wt.opacity for wt in world] == pytest.approx([0.5, 0.25, 0.25])

    def test_glow_inherits_from_parent(self):
        parts = [Part(glow=2), Part(parent_id=0), Part(parent_id=1, glow=1)]
        world = solve(parts, Model(parts))
        assert [wt.glow for wt in world] == [2, 2, 1]

    def test_hidden_flags(self):
        parts = [
            Part(),
            Part(parent_id=0, unit_id=-1),
            Part(parent_id=0, sprite_index=-1),
            Part(parent_id=0, alpha=0),
            Part(parent_id=3),
        ]
        world = solve(parts, Model(parts))
        assert [wt.hidden for wt in world] == [False, True, True, True, True]

    @pytest.mark.parametrize("parent_id", [1, 2, 7, -5])
    def test_malformed_parent_is_treated_as_root(self, parent_id):
        parts = [Part(position_x=100), Part(parent_id=parent_id, position_x=3)]
        world = solve(parts, Model(parts))
        assert world[1].matrix.translation == (3, 0)

    def test_carries_sprite_pivot_and_layer(self):
        parts = [Part(), Part(parent_id=0, sprite_index=4, pivot_x=6, pivot_y=7, draw_layer=9)]
        wt = solve(parts, Model(parts))[1]
        assert (wt.sprite_index, wt.pivot, wt.z_order, wt.part_index) == (4, (6, 7), 9, 1)

    def test_repeated_pose_is_identical(self, chain_model):
        clip = AnimationClip([
            Curve(1, ModificationType.ROTATE, [Keyframe(0, 0), Keyframe(7, 900)], LoopMode.CYCLIC),
        ])
        assert pose(chain_model, clip, 3.3) == pose(chain_model, clip, 3.3)


class TestDrawOrder:
    def test_sorted_by_layer_then_index(self):
        parts = [Part(draw_layer=2), Part(parent_id=0, draw_layer=1), Part(parent_id=0, draw_layer=2), Part(parent_id=0)]
        order = [wt.part_index for wt in draw_order(solve(parts, Model(parts)))]
        assert order == [3, 1, 0, 2]
