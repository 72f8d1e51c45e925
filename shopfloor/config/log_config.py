import os
import logging


def configure_logging() -> None:
    """Configure basic logging, plus the client's own level from LOG_LEVEL."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s - %(filename)s:%(lineno)d",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Configure the logging for the client itself if the user specifies it.
    if "LOG_LEVEL" in os.environ:
        match os.environ["LOG_LEVEL"].upper():
            case "DEBUG":
                log_level = logging.DEBUG
            case "INFO":
                log_level = logging.INFO
            case "WARNING":
                log_level = logging.WARNING
            case "ERROR":
                log_level = logging.ERROR
            case "CRITICAL":
                log_level = logging.CRITICAL
            case _:
                raise ValueError(f"Invalid log level: {os.environ['LOG_LEVEL']}")
        logging.getLogger("shopfloor").setLevel(log_level)
