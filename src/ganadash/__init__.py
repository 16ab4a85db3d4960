# GanaDash backend
import logging
import os

LOGGER_NAME = "ganadash"


def _level_from_env(var: str, default: int) -> int:
    name = (os.getenv(var) or "").strip().upper()
    return logging.getLevelName(name) if name in logging.getLevelNamesMapping() else default


def _configure_logging() -> None:
    root = logging.getLogger(LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[GANADASH][%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(handler)
    level = _level_from_env("GANADASH_LOG_LEVEL", logging.INFO)
    root.setLevel(level)
    # Separate level for provider calls
    logging.getLogger(f"{LOGGER_NAME}.llm").setLevel(_level_from_env("GANADASH_LLM_LOG_LEVEL", level))


_configure_logging()
