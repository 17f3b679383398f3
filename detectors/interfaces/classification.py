"""
Classification Interface - Grape Disease Classification.

Defines the contract for classifying a full camera frame through the
inference service and producing a visualization for the UI.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class InferenceOutput:
    """
    Raw answer of the inference service.

    Attributes:
        label: Free-text label (may embed a percentage or probability).
        overlay: Visualization bytes returned by the service, if usable.
    """

    label: str
    overlay: bytes | None = None


@dataclass
class ClassificationResult:
    """
    Result of a classification operation.

    Attributes:
        label: Catalog disease name (or the raw label when unknown).
        confidence: Confidence in percent (0 to 100).
        severity: "High" | "Medium" | "None" | "Unknown".
        region_count: Number of affected regions (0 for healthy).
        visualization: JPEG bytes of the annotated image, if any.
        model_id: Identifier of the model that produced the result.
        fallback: True when produced by the local fallback heuristic.
    """

    label: str
    confidence: float
    severity: str
    region_count: int = 0
    visualization: bytes | None = None
    model_id: str = ""
    fallback: bool = False


class InferenceClientInterface(ABC):
    """Transport to the remote inference service."""

    @abstractmethod
    def predict(
        self, image_bytes: bytes, timeout: tuple[float, float] | None = None
    ) -> InferenceOutput:
        """
        Sends image bytes to the service.

        Raises:
            InferenceTimeout: If the service does not answer in time.
            InferenceError: On transport failure or unusable response.
        """
        pass

    @abstractmethod
    def get_model_id(self) -> str:
        pass


class ClassificationInterface(ABC):
    """
    Interface for whole-frame disease classification.

    Implementations should handle:
    - Remote inference with a bounded timeout
    - Confidence extraction from textual labels
    - A visualization for every successful result
    """

    @abstractmethod
    def classify(
        self, image_bytes: bytes, timeout: float | None = None
    ) -> ClassificationResult:
        """
        Classifies an encoded camera image.

        Args:
            image_bytes: JPEG/PNG bytes of the frame.
            timeout: Predict timeout in seconds (None uses the default).

        Returns:
            ClassificationResult, always with a visualization when the
            image could be decoded.

        Raises:
            InferenceTimeout / InferenceError: When the remote call fails.
        """
        pass

    @abstractmethod
    def fallback_classify(self, image_bytes: bytes) -> ClassificationResult:
        """Best-effort local classification used when inference fails."""
        pass

    @abstractmethod
    def get_model_id(self) -> str:
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        pass
