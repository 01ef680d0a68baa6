"""
Creates and returns main flask app
"""

from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from .liquidation.bot_manager import MonitorManager
from .liquidation.routes import liquidation, start_monitor


def create_app(manager: Optional[MonitorManager] = None):
    """Create Flask app and start the liquidation monitor in the background"""
    app = Flask(__name__)
    CORS(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy"}), 200

    # Config and event filter errors raise here, before the app starts serving
    start_monitor(manager)

    app.register_blueprint(liquidation, url_prefix="/liquidation")

    return app
