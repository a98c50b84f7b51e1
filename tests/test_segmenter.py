"""Tests for ink_ctc.segmenter."""

import numpy as np
import pytest

from ink_ctc import (MultiCharSegmenter, SegmentationConfig, estimate_char_cut_points,
                     split_to_characters)
from ink_ctc.segmenter import detect_x_ranges, merge_ranges


@pytest.fixture
def cfg():
    return SegmentationConfig()


def _columns_raster(width, ink_columns, height=10):
    raster = np.full((height, width), 255, dtype=np.uint8)
    for first, last in ink_columns:
        raster[2:8, first:last + 1] = 0
    return raster


class TestDetectRanges:

    def test_short_gap_does_not_split(self, cfg):
        raster = _columns_raster(100, [(0, 14), (20, 39), (55, 70)])
        assert detect_x_ranges(raster, cfg) == [(0, 39), (55, 70)]

    def test_narrow_noise_dropped(self, cfg):
        raster = _columns_raster(100, [(10, 30), (60, 62)])
        assert detect_x_ranges(raster, cfg) == [(10, 30)]

    def test_ink_up_to_right_edge(self, cfg):
        raster = _columns_raster(50, [(5, 20), (35, 49)])
        assert detect_x_ranges(raster, cfg) == [(5, 20), (35, 49)]

    def test_min_ink_pixels_per_column(self):
        raster = np.full((10, 40), 255, dtype=np.uint8)
        raster[5, 0:40] = 0           # one-pixel line everywhere
        raster[2:8, 0:15] = 0         # thick block on the left
        config = SegmentationConfig(min_ink_pixels_per_column=3)
        assert detect_x_ranges(raster, config) == [(0, 14)]

    def test_degenerate_image(self, cfg):
        assert detect_x_ranges(np.zeros((1, 50), dtype=np.uint8), cfg) == []
        assert detect_x_ranges(np.zeros((50, 1), dtype=np.uint8), cfg) == []


class TestMergeRanges:

    def test_small_gap_merges(self, cfg):
        assert merge_ranges([(0, 20), (25, 45)], cfg) == [(0, 45)]

    def test_large_gap_keeps_both(self, cfg):
        assert merge_ranges([(0, 20), (40, 60)], cfg) == [(0, 20), (40, 60)]

    def test_thin_neighbour_merges(self, cfg):
        ranges = [(0, 20), (40, 45), (70, 90)]
        assert merge_ranges(ranges, cfg) == [(0, 45), (70, 90)]

    def test_two_thin_ranges_force_merge(self, cfg):
        assert merge_ranges([(0, 5), (30, 35)], cfg) == [(0, 35)]

    def test_unsorted_input(self, cfg):
        assert merge_ranges([(40, 60), (0, 20)], cfg) == [(0, 20), (40, 60)]

    def test_single_and_empty(self, cfg):
        assert merge_ranges([], cfg) == []
        assert merge_ranges([(3, 9)], cfg) == [(3, 9)]


class TestSplitToCharacters:

    def test_two_blobs_split_left_to_right(self, two_blob_raster):
        parts = split_to_characters(two_blob_raster)
        assert len(parts) == 2
        # the left block is 60 px wide, the right one 140 px
        assert parts[0].shape[1] < parts[1].shape[1]
        assert parts[0].shape[0] == parts[1].shape[0] == 60
        for part in parts:
            assert part.dtype == np.uint8
            assert (part < 245).any()

    def test_single_blob_not_split(self, square_blob_raster):
        for max_chars in (1, 2, 12):
            parts = split_to_characters(square_blob_raster, SegmentationConfig(max_chars=max_chars))
            assert len(parts) == 1
            assert parts[0].shape == (40, 40)

    def test_empty_raster(self, blank_raster):
        assert split_to_characters(blank_raster) == []

    def test_thin_strokes_stay_together(self, draw):
        # Two thin vertical strokes like "い"
        raster = np.full((80, 120), 255, dtype=np.uint8)
        draw(raster, 20, 16, 31, 64)
        draw(raster, 56, 16, 67, 64)
        config = SegmentationConfig()
        assert len(detect_x_ranges(raster[16:64, 20:67], config)) == 2
        assert len(split_to_characters(raster)) == 1
        assert estimate_char_cut_points(raster) == []

    def test_max_chars_caps_segments(self, draw):
        raster = np.full((100, 600), 255, dtype=np.uint8)
        for x0 in (20, 220, 420):
            draw(raster, x0, 20, x0 + 100, 80)
        assert len(split_to_characters(raster)) == 3
        assert len(split_to_characters(raster, SegmentationConfig(max_chars=2))) == 2

    def test_parts_stay_inside_crop(self, two_blob_raster):
        plan = MultiCharSegmenter().plan(two_blob_raster)
        crop_w = plan.crop.shape[1]
        for lx, rx in plan.spans:
            assert 0 <= lx < rx <= crop_w


class TestCutPoints:

    def test_cut_between_blobs(self, two_blob_raster):
        cuts = estimate_char_cut_points(two_blob_raster)
        assert len(cuts) == 1
        assert 80 < cuts[0] < 200

    def test_cuts_follow_split_count(self, draw):
        raster = np.full((100, 600), 255, dtype=np.uint8)
        for x0 in (20, 220, 420):
            draw(raster, x0, 20, x0 + 100, 80)
        cuts = estimate_char_cut_points(raster)
        assert len(cuts) == 2
        assert cuts == sorted(cuts)
        assert 120 < cuts[0] < 220
        assert 320 < cuts[1] < 420

    def test_single_character_has_no_cuts(self, square_blob_raster):
        assert estimate_char_cut_points(square_blob_raster) == []

    def test_empty_raster_has_no_cuts(self, blank_raster):
        assert estimate_char_cut_points(blank_raster) == []
