"""
Classification Services.

Concrete implementations of the interfaces in detectors/interfaces/.
"""

from detectors.services.classification_service import ClassificationService

__all__ = ["ClassificationService"]
