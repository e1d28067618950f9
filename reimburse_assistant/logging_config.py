"""Logging configuration for the reimbursement assistant."""
import logging
import logging.config
from pathlib import Path
from typing import Dict, Any

CONSOLE_FORMAT = "%(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "google_genai")


def get_logging_config(
    logs_folder: Path,
    log_filename: str = "reimburse_assistant.log",
    console_level: str = "WARNING"
) -> Dict[str, Any]:
    """
    Build the dictConfig for the CLI.

    The terminal is kept for prompts and tables, so the console handler only
    shows warnings unless console_level says otherwise. The file log receives
    everything from the application loggers.
    """
    logs_folder = Path(logs_folder)
    logs_folder.mkdir(parents=True, exist_ok=True)

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT},
            "file": {"format": FILE_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": console_level,
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
            "file": {
                "class": "logging.FileHandler",
                "level": "DEBUG",
                "formatter": "file",
                "filename": str(logs_folder / log_filename),
                "encoding": "utf-8",
            },
        },
        "root": {"level": "WARNING", "handlers": ["console", "file"]},
        "loggers": {
            "reimburse_assistant": {"level": "DEBUG"},
            "reports": {"level": "INFO"},
        },
    }
    for name in NOISY_LOGGERS:
        config["loggers"][name] = {"level": "WARNING"}
    return config


def setup_logging(logs_folder: Path, log_filename: str = "reimburse_assistant.log", verbose: bool = False) -> Path:
    """Configure logging and return the path of the log file."""
    config = get_logging_config(logs_folder, log_filename, "INFO" if verbose else "WARNING")
    logging.config.dictConfig(config)
    return Path(config["handlers"]["file"]["filename"])
