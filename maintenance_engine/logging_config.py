"""Process-wide logging setup."""
import logging

LOG_FORMAT = "[%(levelname)s] %(asctime)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the package logger.

    Safe to call more than once (uvicorn reloads, test sessions).
    """
    package_logger = logging.getLogger("maintenance_engine")
    package_logger.setLevel(level)

    if not any(getattr(h, "_maintenance_engine", False) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._maintenance_engine = True
        package_logger.addHandler(handler)
