import math

import pytest

from geometry import (
    PercentBox, chunk_spans, clamp_rect, detected_to_image_rect, detection_scale,
    display_to_image, image_to_percent, normalize_percent_box, pad_percent_box,
    percent_to_chunk_pixels, chunk_to_image, pixel_box,
)


@pytest.mark.parametrize("height", [1, 500, 2047, 2048, 2049, 4096, 5000, 31337])
def test_chunk_spans_cover_height(height):
    spans = chunk_spans(height, 2048)
    assert len(spans) == math.ceil(height / 2048)
    assert sum(h for _, h in spans) == height
    assert all(0 < h <= 2048 for _, h in spans)
    # contiguous, top to bottom
    y = 0
    for start, h in spans:
        assert start == y
        y += h


def test_chunk_spans_tall_strip():
    assert chunk_spans(5000, 2048) == [(0, 2048), (2048, 2048), (4096, 904)]


def test_chunk_spans_empty_image():
    assert chunk_spans(0) == []


def test_detection_scale():
    assert detection_scale(1000, 2048) == 1.0
    assert detection_scale(2048, 2048) == 1.0
    assert detection_scale(4096, 2048) == 0.5


@pytest.mark.parametrize("box", [
    PercentBox(0, 0, 100, 100),
    PercentBox(10, 20, 30, 60),
    PercentBox(0, 99, 1, 100),
    PercentBox(98, 0, 100, 3),
    PercentBox(50, 50, 50, 50),
])
def test_padding_stays_inside_percent_space(box):
    p = pad_percent_box(box, 0.05)
    for v in p:
        assert 0 <= v <= 100
    assert p.ymin <= box.ymin and p.ymax >= box.ymax
    assert p.xmin <= box.xmin and p.xmax >= box.xmax


def test_padding_is_five_percent_of_own_size():
    p = pad_percent_box(PercentBox(10, 20, 30, 60), 0.05)
    assert tuple(p) == pytest.approx((9, 18, 31, 62))


def test_normalize_swaps_and_clamps():
    n = normalize_percent_box(PercentBox(ymin=80, xmin=-10, ymax=20, xmax=140))
    assert n == PercentBox(20, 0, 80, 100)


def test_percent_to_chunk_and_image():
    rect = percent_to_chunk_pixels(PercentBox(25, 10, 75, 60), 1000, 2048)
    assert rect == pytest.approx((100, 512, 500, 1024))
    assert chunk_to_image(rect, 2048) == pytest.approx((100, 2560, 500, 1024))


def test_round_trip_image_percent_image():
    rect = (123.5, 2100.25, 333.0, 77.75)
    box = image_to_percent(rect, 2048, 1000, 2048)
    back = chunk_to_image(percent_to_chunk_pixels(box, 1000, 2048), 2048)
    assert back == pytest.approx(rect)


def test_detected_box_in_second_chunk():
    # 1000x5000 strip, second chunk starts at 2048 and is 2048 tall
    x, y, w, h = detected_to_image_rect(PercentBox(10, 20, 30, 60), 2048, 1000, 2048, 0.05)
    assert x == pytest.approx(180)
    assert w == pytest.approx(440)
    assert y == pytest.approx(2048 + 0.09 * 2048)
    assert h == pytest.approx(0.22 * 2048)


def test_display_to_image_scales_by_rendered_size():
    # 2000x4000 image shown at 500x1000, offset by the page layout
    assert display_to_image((60, 120), (10, 20, 500, 1000), 2000, 4000) == pytest.approx((200, 400))


def test_display_to_image_rejects_empty_rect():
    with pytest.raises(ValueError):
        display_to_image((0, 0), (0, 0, 0, 100), 100, 100)


def test_clamp_rect():
    assert clamp_rect(-10, -10, 30, 30, 100, 100) == (0, 0, 20, 20)
    assert clamp_rect(90, 90, 30, 30, 100, 100) == (90, 90, 10, 10)
    assert clamp_rect(50, 50, -20, -20, 100, 100) == (30, 30, 20, 20)


def test_pixel_box_covers_rect_and_keeps_one_pixel():
    assert pixel_box((10.4, 20.6, 30.2, 0.2)) == (10, 20, 41, 21)
    assert pixel_box((10, 20, 30, 40)) == (10, 20, 40, 60)
    assert pixel_box((5, 5, 0, 0)) == (5, 5, 6, 6)


def test_pixel_box_stays_inside_image_edge():
    # sliver at the right edge of a 1000px wide image
    x, y, w, h = clamp_rect(999.6, 0, 0.4, 10, 1000, 1000)
    assert pixel_box((x, y, w, h)) == (999, 0, 1000, 10)
    assert pixel_box((0.1, 0.1, 999.9, 999.9)) == (0, 0, 1000, 1000)
