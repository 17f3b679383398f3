import cv2
import numpy as np


def decode_image(image_bytes: bytes):
    """
    Decodes JPEG/PNG bytes into a BGR image.

    Returns:
        np.ndarray or None if the bytes are not a decodable image.
    """
    if not image_bytes:
        return None
    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    return image


def encode_jpeg(image, quality: int = 90) -> bytes:
    """Encodes a BGR image as JPEG bytes."""
    ok, encoded = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return encoded.tobytes()


def resize_max_side(image, max_side: int = 800):
    """
    Downscales an image so its longer side is at most max_side.
    Smaller images are returned unchanged.
    """
    h, w = image.shape[:2]
    scale = min(max_side / w, max_side / h)
    if scale >= 1.0:
        return image
    new_size = (max(1, round(w * scale)), max(1, round(h * scale)))
    return cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)


def prepare_for_inference(image_bytes: bytes, max_side: int = 800) -> bytes:
    """
    Normalizes camera bytes before upload to the inference service:
    decoded, downscaled to max_side and re-encoded as JPEG (quality 90).
    Undecodable bytes are passed through unchanged.
    """
    image = decode_image(image_bytes)
    if image is None:
        return image_bytes
    return encode_jpeg(resize_max_side(image, max_side), quality=90)
