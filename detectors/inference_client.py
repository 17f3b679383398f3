"""
Inference Client - HTTP transport to the disease detection service.

The service accepts a multipart image upload and answers with a label and an
optional overlay image. Two response shapes are understood:

    {"label": "Bhuri (Powdery Mildew) 87%", "overlay": "<url|data-url|base64>"}
    {"data": ["Bhuri (Powdery Mildew) 87%", {"url": "https://..."}]}

The overlay is best effort: anything that cannot be turned into image bytes
is dropped and the caller synthesizes its own visualization.
"""

import base64
import binascii

import requests

from core.exceptions import InferenceError, InferenceTimeout
from detectors.interfaces.classification import (
    InferenceClientInterface,
    InferenceOutput,
)
from logging_config import get_logger

logger = get_logger(__name__)


class InferenceClient(InferenceClientInterface):
    def __init__(
        self,
        endpoint: str,
        token: str | None = None,
        connect_timeout: float = 10.0,
        predict_timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self._endpoint = endpoint
        self._token = token
        self._timeout = (connect_timeout, predict_timeout)
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: dict) -> "InferenceClient":
        return cls(
            endpoint=config["INFERENCE_URL"],
            token=config.get("INFERENCE_TOKEN"),
            connect_timeout=config["INFERENCE_CONNECT_TIMEOUT"],
            predict_timeout=config["INFERENCE_PREDICT_TIMEOUT"],
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint)

    def get_model_id(self) -> str:
        return self._endpoint or ""

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    def predict(
        self, image_bytes: bytes, timeout: tuple[float, float] | None = None
    ) -> InferenceOutput:
        if not self._endpoint:
            raise InferenceError("Inference endpoint not configured")

        timeout = timeout or self._timeout
        try:
            response = self._session.post(
                self._endpoint,
                files={"image": ("image.jpg", image_bytes, "image/jpeg")},
                headers=self._headers(),
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise InferenceTimeout(f"Prediction timeout after {timeout}s") from e
        except requests.RequestException as e:
            raise InferenceError(f"Inference request failed: {e}") from e

        if not response.ok:
            raise InferenceError(
                f"Inference failed: {response.status_code} - {response.text[:200]}"
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise InferenceError(f"Inference returned invalid JSON: {e}") from e

        label, overlay_ref = self._split_payload(payload)
        overlay = self._resolve_overlay(overlay_ref, timeout)
        logger.debug(f"Inference label={label!r} overlay={'yes' if overlay else 'no'}")
        return InferenceOutput(label=label, overlay=overlay)

    @staticmethod
    def _split_payload(payload) -> tuple[str, object]:
        if isinstance(payload, dict) and "data" in payload:
            data = payload["data"]
            if isinstance(data, list):
                label = data[0] if data else ""
                overlay = data[1] if len(data) > 1 else None
                return str(label or ""), overlay
            return str(data or ""), None
        if isinstance(payload, dict):
            return str(payload.get("label") or ""), payload.get("overlay")
        return str(payload or ""), None

    def _resolve_overlay(self, ref, timeout) -> bytes | None:
        """Turns a URL, data URL, base64 string or {url|path} dict into bytes."""
        if not ref:
            return None
        if isinstance(ref, dict):
            ref = ref.get("url") or ref.get("path") or ref.get("name")
            if not ref:
                return None
        if not isinstance(ref, str):
            return None

        if ref.startswith(("http://", "https://")):
            try:
                response = self._session.get(ref, headers=self._headers(), timeout=timeout)
            except requests.RequestException as e:
                logger.warning(f"Visualization URL not reachable: {ref} ({e})")
                return None
            if not response.ok or not response.content:
                logger.warning(
                    f"Visualization URL not accessible: {ref} Status: {response.status_code}"
                )
                return None
            return response.content

        if ref.startswith("data:"):
            _, _, ref = ref.partition(",")
        try:
            data = base64.b64decode(ref, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Could not decode visualization from inference response")
            return None
        return data or None
