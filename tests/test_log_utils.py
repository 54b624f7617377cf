import logging
from importlib import reload

import log_utils


def _reset_logger(logger: logging.Logger) -> None:
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        try:
            handler.close()
        except Exception:
            pass


def test_setup_logger_writes_to_rotating_file(tmp_path, monkeypatch):
    module = reload(log_utils)
    log_file = tmp_path / "logs" / "scalp_agent.log"
    monkeypatch.setattr(module, "LOG_FILE", str(log_file), raising=False)

    logger = module.setup_logger("test_log_utils_file")
    try:
        assert len(logger.handlers) == 2
        logger.warning("hello from the scalp agent")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from the scalp agent" in log_file.read_text()
        assert module.setup_logger("test_log_utils_file") is logger
        assert len(logger.handlers) == 2
    finally:
        _reset_logger(logger)


def test_setup_logger_respects_log_level(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    module = reload(log_utils)
    monkeypatch.setattr(module, "LOG_FILE", str(tmp_path / "agent.log"), raising=False)

    logger = module.setup_logger("test_log_utils_level")
    try:
        assert logger.level == logging.DEBUG
    finally:
        _reset_logger(logger)


def test_setup_logger_survives_unwritable_log_dir(tmp_path, monkeypatch):
    module = reload(log_utils)
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    monkeypatch.setattr(module, "LOG_FILE", str(blocker / "agent.log"), raising=False)

    logger = module.setup_logger("test_log_utils_console_only")
    try:
        assert len(logger.handlers) == 1
    finally:
        _reset_logger(logger)
