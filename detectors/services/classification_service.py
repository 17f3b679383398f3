"""
Classification Service - Grape Disease Classification.

Implements ClassificationInterface by wrapping the remote InferenceClient.
Provides a total contract for the ingestion pipeline: every successful
classification carries a visualization, synthesized locally when the
service does not return a usable overlay.
"""

import re

import cv2
import numpy as np

from detectors.disease_catalog import DISEASE_CATALOG, HEALTHY, match_label
from detectors.interfaces.classification import (
    ClassificationInterface,
    ClassificationResult,
    InferenceClientInterface,
)
from detectors.visualization import render_visualization
from logging_config import get_logger
from utils.image_ops import decode_image, prepare_for_inference, resize_max_side

logger = get_logger(__name__)

PERCENT_PATTERN = re.compile(r"(\d{1,3}(?:\.\d+)?)\s?%")
PROBABILITY_PATTERN = re.compile(r"(0?\.\d{1,3}|1\.0)")

# Heuristic defaults when the label carries no score; not measured values.
DEFAULT_HEALTHY_CONFIDENCE = 95.0
DEFAULT_DISEASE_CONFIDENCE = 90.0

FALLBACK_MODEL_ID = "color-heuristic"
LESION_THRESHOLD = 0.08


def parse_confidence(label: str | None, is_healthy: bool) -> float:
    """
    Extracts a confidence percentage from a textual label.

    Tries "NN%" first, then a 0-1 probability. Falls back to 95 for healthy
    and 90 otherwise when nothing usable is found.
    """
    confidence = 0.0
    text = label or ""
    percent_match = PERCENT_PATTERN.search(text)
    if percent_match:
        confidence = max(0.0, min(100.0, float(percent_match.group(1))))
    else:
        prob_match = PROBABILITY_PATTERN.search(text)
        if prob_match:
            value = float(prob_match.group(1))
            confidence = max(0.0, min(100.0, round(value * 1000) / 10))
    if confidence == 0:
        confidence = DEFAULT_HEALTHY_CONFIDENCE if is_healthy else DEFAULT_DISEASE_CONFIDENCE
    return confidence


class ClassificationService(ClassificationInterface):
    """
    Handles whole-frame disease classification.

    Features:
    - Remote inference with connect/predict timeouts
    - Label to catalog mapping (severity, region count)
    - Overlay validation and deterministic local visualization
    - Color-based local fallback when the remote call fails
    """

    def __init__(self, client: InferenceClientInterface, connect_timeout: float = 10.0):
        """
        Initialize the classification service.

        Args:
            client: Transport to the inference service.
            connect_timeout: Connect timeout used when classify() is given
                an explicit predict timeout.
        """
        self._client = client
        self._connect_timeout = connect_timeout

    def classify(
        self, image_bytes: bytes, timeout: float | None = None
    ) -> ClassificationResult:
        prepared = prepare_for_inference(image_bytes)
        call_timeout = (self._connect_timeout, timeout) if timeout else None
        output = self._client.predict(prepared, timeout=call_timeout)

        info = match_label(output.label)
        is_healthy = info.is_healthy or "healthy" in output.label.lower()
        confidence = parse_confidence(output.label, is_healthy)

        visualization = output.overlay
        if visualization is not None and decode_image(visualization) is None:
            logger.warning("Inference overlay is not a decodable image, discarding")
            visualization = None
        if visualization is None:
            logger.debug("No valid visualization from service, generating local one")
            visualization = render_visualization(
                image_bytes, info.name, confidence, is_healthy
            )

        return ClassificationResult(
            label=info.name,
            confidence=confidence,
            severity=info.severity,
            region_count=0 if is_healthy else 1,
            visualization=visualization,
            model_id=self.get_model_id(),
        )

    def fallback_classify(self, image_bytes: bytes) -> ClassificationResult:
        """
        Color-based analysis used when the inference service is unavailable.

        Compares lesion-colored pixels (brown, whitish, yellow) against green
        leaf pixels. The result is a heuristic, marked fallback=True.
        """
        image = decode_image(image_bytes)
        if image is None:
            logger.warning("Fallback classification: image could not be decoded")
            return ClassificationResult(
                label="Unknown",
                confidence=0.0,
                severity="Unknown",
                model_id=FALLBACK_MODEL_ID,
                fallback=True,
            )

        ratios = self._lesion_ratios(resize_max_side(image, 400))
        dominant, ratio = max(ratios.items(), key=lambda kv: kv[1])
        total = sum(ratios.values())

        if ratio < LESION_THRESHOLD:
            info = DISEASE_CATALOG[5]
            confidence = round(max(50.0, min(95.0, 100.0 * (1.0 - total))), 1)
        else:
            info = DISEASE_CATALOG[dominant]
            confidence = round(max(50.0, min(90.0, 50.0 + 100.0 * ratio)), 1)

        return ClassificationResult(
            label=info.name,
            confidence=confidence,
            severity=info.severity,
            region_count=0 if info.name == HEALTHY else 1,
            visualization=render_visualization(
                image_bytes, info.name, confidence, info.is_healthy
            ),
            model_id=FALLBACK_MODEL_ID,
            fallback=True,
        )

    @staticmethod
    def _lesion_ratios(image) -> dict[int, float]:
        """Fraction of plant pixels per lesion color, keyed by catalog id."""
        hsv = cv2.cvtColor(image, cv2.COLOR_BGR2HSV)
        h, s, v = cv2.split(hsv)

        green = (h >= 35) & (h <= 85) & (s > 40) & (v > 40)
        brown = (h >= 5) & (h < 20) & (s > 60) & (v > 30) & (v < 200)
        whitish = (s < 40) & (v > 180)
        yellow = (h >= 20) & (h < 35) & (s > 60) & (v > 80)

        plant = int(np.count_nonzero(green | brown | whitish | yellow))
        if plant == 0:
            return {1: 0.0, 2: 0.0, 4: 0.0}
        return {
            1: np.count_nonzero(brown) / plant,
            2: np.count_nonzero(whitish) / plant,
            4: np.count_nonzero(yellow) / plant,
        }

    def get_model_id(self) -> str:
        return self._client.get_model_id()

    def is_ready(self) -> bool:
        return bool(getattr(self._client, "is_configured", True))
