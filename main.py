# ------------------------------------------------------------------------------
# Live Ingestion & Reconciliation Service with Flask Web Interface
# main.py
# ------------------------------------------------------------------------------
import atexit
import json
import os

from config import load_config

config = load_config()
from logging_config import get_logger

logger = get_logger(__name__)

# --------------------------------------------------------------------------
# Configuration Parameters
# --------------------------------------------------------------------------
_debug = config["DEBUG_MODE"]
output_dir = config["OUTPUT_DIR"]

_SECRET_KEYS = ("DRIVE_API_KEY", "INFERENCE_TOKEN")

logger.info(f"Debug mode is {'enabled' if _debug else 'disabled'}.")
logger.info(
    "Configuration: "
    + json.dumps(
        {k: ("***" if k in _SECRET_KEYS and v else v) for k, v in config.items()},
        indent=2,
        default=str,
    )
)

os.makedirs(output_dir, exist_ok=True)

# -----------------------------
# Build the Pipeline
# -----------------------------
from core.live_monitoring import LiveMonitoringPipeline

pipeline = LiveMonitoringPipeline.from_config(config)

if not config["DRIVE_API_KEY"] or not config["DRIVE_ROOT_FOLDER_ID"]:
    logger.warning("DRIVE_API_KEY / DRIVE_ROOT_FOLDER_ID not set, archive scans will fail.")
if not pipeline.classifier.is_ready():
    logger.warning("INFERENCE_URL not set, every item will use the local fallback classifier.")

atexit.register(pipeline.shutdown)

# -----------------------------
# Import and Run the Web Interface
# -----------------------------
from web.web_interface import create_web_interface

interface = create_web_interface(pipeline, config)
app = interface["server"]

if __name__ == "__main__":
    try:
        interface["run"](debug=_debug, host="0.0.0.0", port=config["WEB_PORT"])
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received. Shutting down live monitoring...")
        pipeline.shutdown()
