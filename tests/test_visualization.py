"""Tests for the deterministic local visualization fallback."""

import numpy as np

from conftest import encode_test_jpeg
from detectors.visualization import _rng_for, generate_local_boxes, render_visualization
from utils.image_ops import decode_image


def test_boxes_are_within_size_bounds():
    rng = np.random.default_rng(7)
    for _ in range(50):
        boxes = generate_local_boxes(1000, 800, is_healthy=False, rng=rng)
        assert 1 <= len(boxes) <= 3
        for x, y, w, h in boxes:
            assert 200 <= w <= 500
            assert 120 <= h <= 320
            assert 0 <= x <= 1000 - w
            assert 0 <= y <= 800 - h


def test_healthy_frames_get_no_boxes():
    assert generate_local_boxes(640, 480, is_healthy=True, rng=np.random.default_rng(1)) == []


def test_box_placement_is_seeded_from_image_content():
    first = generate_local_boxes(640, 480, False, _rng_for(b"same image"))
    second = generate_local_boxes(640, 480, False, _rng_for(b"same image"))
    assert first == second


def test_render_visualization_is_deterministic_and_decodable():
    image_bytes = encode_test_jpeg(size=(240, 320))

    first = render_visualization(image_bytes, "Karpa (Anthracnose)", 87, is_healthy=False)
    second = render_visualization(image_bytes, "Karpa (Anthracnose)", 87, is_healthy=False)

    assert first == second
    decoded = decode_image(first)
    assert decoded.shape[:2] == (240, 320)


def test_render_visualization_undecodable_input():
    assert render_visualization(b"nope", "Healthy", 95, is_healthy=True) is None
