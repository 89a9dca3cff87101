import os
import logging


def configure_logging(log_dir=None, level=None):
    """Configure root logger and return it.

    Task summaries go to the console; when ``log_dir`` is given a rotating
    ``assets.log`` with timestamps is written there as well.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    for handler in list(logger.handlers):
        try:
            handler.close()
        except Exception:
            pass
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    if log_dir:
        from logging.handlers import RotatingFileHandler

        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, "assets.log")
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
        logger.addHandler(file_handler)

    return logger
