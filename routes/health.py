"""Health check blueprint.

Provides a lightweight ``/api/health`` endpoint for status probes.
"""

from flask import Blueprint, current_app, jsonify
import psutil

from config.settings import get_settings

health_bp = Blueprint("health", __name__)


@health_bp.route("/", strict_slashes=False)
def api_health():
    """Return quick status information about the workout loop and host."""

    runtime = current_app.extensions.get("workout_runtime")
    loop_ok = bool(runtime and runtime.alive)
    poller_running = False
    strap_status = None
    if loop_ok:
        try:
            poller_running = runtime.status()["poller"]["running"]
        except Exception:
            current_app.logger.exception("Workout status probe failed")
            loop_ok = False
        if runtime.strap is not None:
            strap_status = runtime.strap.status
    usage = psutil.disk_usage(str(get_settings().BASE_DIR))
    data = {
        "workout_loop": loop_ok,
        "poller_running": poller_running,
        "hr_strap": strap_status,
        "disk_free_gb": round(usage.free / (1024**3), 2),
        "cpu_percent": psutil.cpu_percent(interval=None),
        "mem_percent": psutil.virtual_memory().percent,
    }
    return jsonify(data)
