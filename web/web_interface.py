# ------------------------------------------------------------------------------
# web_interface.py
# ------------------------------------------------------------------------------

import logging

from flask import Flask, jsonify

from core.exceptions import PipelineError
from web.blueprints.live import register_live_api


def create_web_interface(pipeline, config: dict | None = None):
    """
    Creates and returns the web interface for the live monitoring pipeline.

    Returns a dict with:
      - server: The Flask app (WSGI entry point).
      - run: Callable starting the development server.
    """
    logger = logging.getLogger(__name__)
    config = config or {}

    server = Flask(__name__)

    register_live_api(server, pipeline, output_dir=config.get("OUTPUT_DIR"))

    @server.errorhandler(PipelineError)
    def handle_pipeline_error(e):
        logger.error(f"Unhandled pipeline error: {e}")
        return jsonify({"status": "error", "message": str(e)}), 502

    @server.route("/api/live/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "status": "success",
                "inference_ready": pipeline.classifier.is_ready(),
                "model": pipeline.classifier.get_model_id(),
                "monitoring": pipeline.scheduler.is_running,
                "archive": pipeline.remote_status(),
            }
        )

    def run(debug=False, host="0.0.0.0", port=8050):
        server.run(debug=debug, host=host, port=port, use_reloader=False, threaded=True)

    return {"server": server, "run": run}
