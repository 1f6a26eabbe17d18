# logging_config.py
import logging
import sys

_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the ``booklib`` logger tree once; later calls only adjust the level"""
    logger = logging.getLogger("booklib")
    logger.setLevel(level.upper())

    if not any(getattr(h, "_booklib", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        handler._booklib = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
