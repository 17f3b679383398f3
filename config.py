# config.py
import os
import threading

from dotenv import load_dotenv

# Load environment variables from .env file.
load_dotenv()

_config: dict | None = None
_config_lock = threading.Lock()


def _parse_camera_tags(raw: str) -> tuple[str, ...]:
    tags = tuple(t.strip() for t in raw.split(",") if t.strip())
    return tags or ("1", "2")


def load_config():
    """
    Loads configuration from environment variables and returns a dictionary.

    Runtime overrides from OUTPUT_DIR/settings.yaml take precedence over the
    environment for keys that already exist in the configuration.
    """
    config = {
        # General Settings
        "DEBUG_MODE": os.getenv("DEBUG_MODE", "False").lower() == "true",
        "OUTPUT_DIR": os.getenv("OUTPUT_DIR", "/output"),
        "WEB_PORT": int(os.getenv("WEB_PORT", 8050)),

        # Remote Archive (Google Drive v3)
        "DRIVE_API_BASE": os.getenv("DRIVE_API_BASE", "https://www.googleapis.com/drive/v3"),
        "DRIVE_API_KEY": os.getenv("DRIVE_API_KEY", ""),
        "DRIVE_ROOT_FOLDER_ID": os.getenv("DRIVE_ROOT_FOLDER_ID", ""),
        "DRIVE_PROXY_BASE_URL": os.getenv("DRIVE_PROXY_BASE_URL", "") or None,
        "DRIVE_PAGE_SIZE": int(os.getenv("DRIVE_PAGE_SIZE", 100)),
        "REMOTE_TIMEOUT": float(os.getenv("REMOTE_TIMEOUT", 15)),
        "CAMERA_TAGS": _parse_camera_tags(os.getenv("CAMERA_TAGS", "1,2")),

        # Inference Service
        "INFERENCE_URL": os.getenv("INFERENCE_URL", ""),
        "INFERENCE_TOKEN": os.getenv("INFERENCE_TOKEN", "") or None,
        "INFERENCE_CONNECT_TIMEOUT": float(os.getenv("INFERENCE_CONNECT_TIMEOUT", 10)),
        "INFERENCE_PREDICT_TIMEOUT": float(os.getenv("INFERENCE_PREDICT_TIMEOUT", 30)),

        # Ingestion
        "INGEST_MAX_WORKERS": int(os.getenv("INGEST_MAX_WORKERS", 5)),
        "INGEST_BATCH_SIZE": int(os.getenv("INGEST_BATCH_SIZE", 5)),
        "HISTORY_PAGE_SIZE": int(os.getenv("HISTORY_PAGE_SIZE", 10)),
        "MONITOR_INTERVAL_SECONDS": float(os.getenv("MONITOR_INTERVAL_SECONDS", 30)),

        # Blob Storage
        "BLOB_PUBLIC_BASE_URL": os.getenv("BLOB_PUBLIC_BASE_URL", "/blobs"),
    }

    from utils.settings import load_settings_yaml

    overrides = load_settings_yaml(config["OUTPUT_DIR"])
    for key, value in overrides.items():
        if key in config and value is not None:
            config[key] = value
    if isinstance(config["CAMERA_TAGS"], str):
        config["CAMERA_TAGS"] = _parse_camera_tags(config["CAMERA_TAGS"])
    return config


def get_config() -> dict:
    """Returns the process-wide configuration, loading it on first use."""
    global _config
    with _config_lock:
        if _config is None:
            _config = load_config()
        return _config


def reload_config() -> dict:
    """Drops the cached configuration and loads it again."""
    global _config
    with _config_lock:
        _config = load_config()
        return _config


if __name__ == "__main__":
    # For testing purposes, print the configuration
    config = load_config()
    from pprint import pprint

    pprint(config)
