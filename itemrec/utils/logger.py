"""
Handler setup for the model constructor process.

Library modules never configure logging; they call logging.getLogger(__name__)
and inherit whatever the entry point attached to the "itemrec" logger here.
"""
import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE = "model_constructor.log"


def _resolve_level(level) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    # getLevelName returns "Level X" for names it does not know
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str = "itemrec", level: str = "INFO", log_dir: str | None = None) -> logging.Logger:
    """
    Attach a console handler (once) and, when `log_dir` is given, a file
    handler writing `model_constructor.log` in that directory (once per file).

    Calling again is safe: the level is updated and no handler is duplicated,
    so the CLI can log config errors before the real config is known.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler) for h in logger.handlers
    )
    if not has_console:
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.abspath(os.path.join(log_dir, LOG_FILE))
        if not any(isinstance(h, logging.FileHandler) and h.baseFilename == log_path for h in logger.handlers):
            fh = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            fh.setFormatter(formatter)
            logger.addHandler(fh)

    return logger
