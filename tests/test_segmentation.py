import numpy as np
import pytest

from config import ColorBand, TargetColors
from conftest import blank_frame, frame_with_rect, ORANGE_BGR
from ring_vision import Segmenter
from ring_vision.segmentation import EMPTY_MASK


@pytest.fixture
def segmenter():
    return Segmenter()


def test_mask_marks_only_pixels_inside_band(segmenter, ring_frame):
    mask = segmenter.segment(ring_frame)

    assert mask.shape == ring_frame.shape[:2]
    assert mask.dtype == np.uint8
    assert set(np.unique(mask)) == {0, 255}
    assert mask[60, 80] == 255
    assert mask[10, 10] == 0
    assert np.count_nonzero(mask) == 41 * 41


def test_frame_outside_band_gives_blank_mask(segmenter):
    mask = segmenter.segment(blank_frame())
    assert not mask.any()


def test_band_bounds_are_inclusive(segmenter):
    frame = blank_frame(color=ORANGE_BGR)
    exact = ColorBand('exact', (0, 255, 255), (20, 255, 255))
    assert segmenter.segment(frame, exact).all()


@pytest.mark.parametrize("frame", [None, np.zeros((0, 0, 3), dtype=np.uint8)])
def test_empty_frame_gives_empty_mask(segmenter, frame):
    mask = segmenter.segment(frame)
    assert mask is EMPTY_MASK
    assert mask.size == 0


def test_segment_does_not_modify_frame(segmenter, ring_frame):
    before = ring_frame.copy()
    segmenter.segment(ring_frame)
    assert np.array_equal(before, ring_frame)


def test_coverage_percentage(segmenter):
    frame = frame_with_rect(0, 0, 79, 119)
    assert segmenter.coverage_percentage(frame) == pytest.approx(50.0)
    assert segmenter.coverage_percentage(blank_frame()) == 0.0
    assert segmenter.coverage_percentage(None) == 0.0


def test_coverage_band_is_narrower_than_ring_band(segmenter):
    # Hue 18: inside the ring band, outside the coverage band
    hue_18 = blank_frame(color=(0, 153, 255))
    assert segmenter.segment(hue_18, TargetColors.ORANGE_RING).all()
    assert segmenter.coverage_percentage(hue_18) == 0.0
