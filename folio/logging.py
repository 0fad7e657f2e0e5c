import logging
import os
import structlog
import sys
from pathlib import Path
from dotenv import load_dotenv

def _renderer(fmt: str):
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()

def setup_logging(level: str | None = None, fmt: str | None = None, stream=None):
    """Route structlog through stdlib logging.

    LOG_LEVEL, LOG_FORMAT (json|console) and LOG_ERROR_FILE come from the
    environment (or .env); explicit arguments win.
    """
    load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).lower()
    error_log_path = os.getenv("LOG_ERROR_FILE", "").strip()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    formatter = logging.Formatter("%(message)s")
    console = logging.StreamHandler(stream or sys.stdout)
    console.setLevel(log_level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if error_log_path:
        Path(error_log_path).parent.mkdir(parents=True, exist_ok=True)
        errors = logging.FileHandler(error_log_path)
        errors.setLevel(logging.ERROR)
        errors.setFormatter(formatter)
        root.addHandler(errors)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _renderer(fmt),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=False,
    )
    structlog.contextvars.bind_contextvars(service="folio-engine")
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(log_level)
