import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(
        name="worktimer",
        level=logging.INFO,
        log_dir: Path | str | None = None,
        max_bytes=5 * 1024 * 1024,
        backup_count=5,
        console=True,
) -> logging.Logger:
    """Return the named logger, attaching any handler it doesn't have yet.

    Handlers are tagged by name so calling this again (e.g. once settings are
    loaded) only adds what is missing and updates levels.
    """
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    # Rotating file handler, only when a directory is configured
    persistent_handler_name = f"{name}:persistent"
    if log_dir is not None and not any(h.get_name() == persistent_handler_name for h in logger.handlers):
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        persistent_handler = RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        persistent_handler.setFormatter(fmt)
        persistent_handler.set_name(persistent_handler_name)
        logger.addHandler(persistent_handler)

    console_handler_name = f"{name}:console"
    if console and not any(h.get_name() == console_handler_name for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(fmt)
        console_handler.set_name(console_handler_name)
        logger.addHandler(console_handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger


log = get_logger()
