"""Bounds and centering tests: strict/lenient scans, effect filters and camera fit."""

from __future__ import annotations

import pytest

from core.bounds import center_offset, initial_view, scan_bounds, tight_bounds, zoom_fit
from core.data_structures import AnimationClip, Model, ModificationType, Part, Rect

MT = ModificationType

ROOT = Part(parent_id=-1, sprite_index=-1)


def body(**kwargs) -> Part:
    fields = dict(parent_id=0, sprite_index=0, pivot_x=50, pivot_y=50)
    fields.update(kwargs)
    return Part(**fields)


class TestTightBounds:
    def test_single_opaque_part_exact_box(self, single_part_model, square_sheet):
        rect = tight_bounds(single_part_model, None, square_sheet)
        assert rect == Rect(-40, -30, 60, 70)
        assert (rect.width, rect.height) == (100, 100)
        assert rect.center == (10, 20)

    def test_scans_whole_animation(self, single_part_model, square_sheet, curve_factory):
        clip = AnimationClip([curve_factory(1, MT.TRANSLATE_X, [(0, 0), (10, 100)])])
        rect = tight_bounds(single_part_model, clip, square_sheet)
        assert rect.min_x == pytest.approx(-40)
        assert rect.max_x == pytest.approx(160)

    def test_faint_part_falls_back_to_lenient(self, square_sheet):
        model = Model([ROOT, body(alpha=100)])
        assert scan_bounds(model, None, square_sheet, True) is None
        assert tight_bounds(model, None, square_sheet) == Rect(-50, -50, 50, 50)

    def test_faint_glow_excluded_when_solid_part_exists(self, square_sheet):
        model = Model([ROOT, body(), body(position_x=500, glow=1, alpha=600)])
        assert tight_bounds(model, None, square_sheet) == Rect(-50, -50, 50, 50)

    def test_oversized_translucent_effect_excluded(self, square_sheet):
        model = Model([ROOT, body(), body(scale_x=4000, scale_y=4000, alpha=900)])
        assert tight_bounds(model, None, square_sheet) == Rect(-50, -50, 50, 50)

    def test_oversized_opaque_part_kept(self, square_sheet):
        model = Model([ROOT, body(scale_x=4000, scale_y=4000)])
        assert tight_bounds(model, None, square_sheet) == Rect(-200, -200, 200, 200)

    def test_beam_excluded(self, square_sheet):
        model = Model([ROOT, body(), body(sprite_index=1, pivot_x=5, pivot_y=1000)])
        assert tight_bounds(model, None, square_sheet) == Rect(-50, -50, 50, 50)

    def test_sky_excluded(self, square_sheet):
        model = Model([ROOT, body(), body(position_y=-3000)])
        assert tight_bounds(model, None, square_sheet) == Rect(-50, -50, 50, 50)

    def test_lenient_keeps_effects(self, square_sheet):
        model = Model([ROOT, body(), body(position_y=-3000)])
        rect = scan_bounds(model, None, square_sheet, False)
        assert rect.min_y == -3050

    def test_fully_invisible_returns_none(self, square_sheet):
        model = Model([ROOT, body(alpha=0), body(unit_id=-1)])
        assert tight_bounds(model, None, square_sheet) is None

    def test_parts_without_cut_are_skipped(self, square_sheet):
        model = Model([ROOT, body(sprite_index=42)])
        assert tight_bounds(model, None, square_sheet) is None

    def test_frame_range_limits_scan(self, single_part_model, square_sheet, curve_factory):
        clip = AnimationClip([curve_factory(1, MT.TRANSLATE_X, [(0, 0), (10, 100)])])
        rect = scan_bounds(single_part_model, clip, square_sheet, True, (0, 0))
        assert rect == Rect(-40, -30, 60, 70)


class TestInitialView:
    def test_pan_and_zoom(self, single_part_model, square_sheet):
        pan, zoom = initial_view(single_part_model, None, square_sheet, (800, 600))
        assert pan == (-10, -20)
        # min(8, 6) clamps to 5.0, then the breathing room factor
        assert zoom == pytest.approx(2.25)

    def test_small_viewport(self, single_part_model, square_sheet):
        _, zoom = initial_view(single_part_model, None, square_sheet, (100, 300))
        assert zoom == pytest.approx(0.45)

    def test_none_when_invisible(self, square_sheet):
        model = Model([ROOT, body(alpha=0)])
        assert initial_view(model, None, square_sheet, (800, 600)) is None


class TestCenterOffset:
    def test_single_part_centroid(self, single_part_model, square_sheet):
        pan, rect = center_offset(single_part_model, None, square_sheet)
        assert pan == pytest.approx((-10, -20))
        assert rect == Rect(-40, -30, 60, 70)

    def test_large_parts_dominate(self):
        from core.data_structures import SpriteCut, SpriteSheet
        sheet = SpriteSheet(cuts={
            0: SpriteCut((0, 0, 1, 1), 100, 100),
            1: SpriteCut((0, 0, 1, 1), 10, 10),
        })
        model = Model([ROOT, body(), body(sprite_index=1, pivot_x=5, pivot_y=5, position_x=100)])
        pan, rect = center_offset(model, None, sheet)
        assert pan[0] == pytest.approx(-100 * 100 / 10100)
        assert rect == Rect(-50, -50, 105, 50)

    def test_glow_ignored_in_strict_pass(self, square_sheet):
        model = Model([ROOT, body(), body(position_x=400, glow=1)])
        pan, rect = center_offset(model, None, square_sheet)
        assert pan == pytest.approx((0, 0))
        assert rect == Rect(-50, -50, 50, 50)

    def test_off_center_pivot(self, square_sheet):
        model = Model([ROOT, body(pivot_x=0, pivot_y=0)])
        pan, _ = center_offset(model, None, square_sheet)
        assert pan == pytest.approx((-50, -50))

    def test_none_when_invisible(self, square_sheet):
        model = Model([ROOT, body(alpha=5)])
        assert center_offset(model, None, square_sheet) is None


class TestZoomFit:
    def test_degenerate_box(self):
        assert zoom_fit(Rect(0, 0, 1, 50), (800, 600), 0.9) == 1.0

    def test_fit_with_padding(self):
        assert zoom_fit(Rect(0, 0, 200, 100), (400, 400), 0.9) == pytest.approx(1.8)

    def test_clamped(self):
        assert zoom_fit(Rect(0, 0, 100000, 100000), (100, 100), 1.0) == pytest.approx(0.05)
