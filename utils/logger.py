import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

log = logging.getLogger("spotify-now-playing")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        force=True,  # ensure our config is used even if libs pre-configure logging
    )
    # httpx logs every request at INFO; keep that out of the poll output.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_debug(message: str) -> None:
    log.debug(message)


def log_info(message: str) -> None:
    log.info(message)


def log_success(message: str) -> None:
    log.info("✓ %s", message)


def log_warning(message: str) -> None:
    log.warning(message)


def log_error(message: str) -> None:
    log.error(message)
