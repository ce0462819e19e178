from __future__ import annotations

import argparse
import logging
import os
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, g, has_request_context

from config.settings import get_settings
from routes.health import health_bp
from routes.workout import workout_bp
from StaminaBar.runtime import WorkoutRuntime

logger = logging.getLogger(__name__)


class RequestIDFilter(logging.Filter):
    def filter(self, record):
        if has_request_context() and hasattr(g, "request_id"):
            record.request_id = g.request_id
        else:
            record.request_id = "-"
        return True


class SafeRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that ensures the log directory exists."""

    def __init__(self, filename, *args, **kwargs):  # type: ignore[override]
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        super().__init__(filename, *args, **kwargs)


def setup_logging(level=None) -> logging.Handler:
    """Configure application and access logging.

    Returns the main application log handler so tests can inspect it.  Logs
    go to ``logs/app.log`` under ``BASE_DIR``.  When ``STAMINA_ACCESS_LOG``
    is set, werkzeug request lines are also written to ``logs/access.log``.
    Calling this again reuses the handlers already installed.
    """

    cfg = get_settings()
    if level is None:
        level = logging.getLevelName(str(cfg.LOG_LEVEL).upper())
        if not isinstance(level, int):
            level = logging.INFO

    log_dir = Path(cfg.BASE_DIR) / "logs"
    app_log = log_dir / "app.log"

    root = logging.getLogger()
    root.setLevel(level)

    existing = next(
        (
            h
            for h in root.handlers
            if isinstance(h, SafeRotatingFileHandler) and Path(getattr(h, "baseFilename", "")) == app_log
        ),
        None,
    )
    if existing is None:
        handler = SafeRotatingFileHandler(app_log, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"))
        handler.addFilter(RequestIDFilter())
        root.addHandler(handler)
        main_handler = handler
    else:
        main_handler = existing

    werk_logger = logging.getLogger("werkzeug")
    if cfg.STAMINA_ACCESS_LOG:
        werk_logger.setLevel(logging.INFO)
        access_file = log_dir / "access.log"
        access_existing = next(
            (
                h
                for h in werk_logger.handlers
                if isinstance(h, SafeRotatingFileHandler) and Path(getattr(h, "baseFilename", "")) == access_file
            ),
            None,
        )
        if access_existing is None:
            werk_logger.addHandler(
                SafeRotatingFileHandler(access_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
            )
    else:
        werk_logger.setLevel(logging.WARNING)

    return main_handler


def create_app(runtime: WorkoutRuntime | None = None) -> Flask:
    """Build the Flask app around ``runtime``, starting a simulated one if omitted."""

    setup_logging()
    app = Flask(__name__)
    if runtime is None:
        runtime = WorkoutRuntime(simulate=True)
    runtime.start()
    app.extensions["workout_runtime"] = runtime

    @app.before_request
    def _assign_request_id():
        g.request_id = uuid.uuid4().hex[:8]

    app.register_blueprint(workout_bp, url_prefix="/api/workout")
    app.register_blueprint(health_bp, url_prefix="/api/health")
    return app


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Serve the Stamina Bar workout API")
    parser.add_argument("--host", default=os.environ.get("STAMINA_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("STAMINA_PORT", "5050")))
    parser.add_argument("--no-simulate", action="store_true", help="do not synthesise samples for new workouts")
    args = parser.parse_args(argv)

    runtime = WorkoutRuntime(simulate=not args.no_simulate)
    app = create_app(runtime)
    logger.info("Serving on http://%s:%s", args.host, args.port)
    try:
        app.run(host=args.host, port=args.port, use_reloader=False)
    finally:
        runtime.stop()


if __name__ == "__main__":
    main()
