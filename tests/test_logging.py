import logging

from stamina_server import SafeRotatingFileHandler, setup_logging


def _app_handlers(root, log_file):
    return [h for h in root.handlers if isinstance(h, SafeRotatingFileHandler) and h.baseFilename == str(log_file)]


def test_setup_logging_writes_utf8(tmp_path):
    """Log non-ASCII characters and ensure they are written to disk as UTF-8."""

    setup_logging()
    msg = "Ritmo cardíaco ❤️ 142"
    logging.getLogger().info(msg)

    log_file = tmp_path / "logs" / "app.log"
    with open(log_file, encoding="utf-8") as fh:
        content = fh.read()

    assert msg in content
    assert "[-]" in content


def test_setup_logging_reuses_handler_and_quiets_werkzeug(tmp_path):
    root = logging.getLogger()
    handler1 = setup_logging()
    handler2 = setup_logging()
    assert handler1 is handler2
    assert len(_app_handlers(root, tmp_path / "logs" / "app.log")) == 1
    assert logging.getLogger("werkzeug").level == logging.WARNING


def test_access_log_enabled(tmp_path, monkeypatch):
    from config.settings import reset_settings

    monkeypatch.setenv("STAMINA_ACCESS_LOG", "1")
    reset_settings()
    setup_logging(logging.DEBUG)
    setup_logging(logging.DEBUG)
    werkzeug = logging.getLogger("werkzeug")
    assert werkzeug.level == logging.INFO
    assert len(_app_handlers(werkzeug, tmp_path / "logs" / "access.log")) == 1
    assert logging.getLogger().level == logging.DEBUG
