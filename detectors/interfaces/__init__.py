"""
Classification Pipeline Interfaces.

Abstract interfaces for the inference transport and the classifier
adapter. Concrete implementations live in detectors/ and services/.
"""

from detectors.interfaces.classification import (
    ClassificationInterface,
    ClassificationResult,
    InferenceClientInterface,
    InferenceOutput,
)

__all__ = [
    # Interfaces
    "ClassificationInterface",
    "InferenceClientInterface",
    # Data Classes
    "ClassificationResult",
    "InferenceOutput",
]
