"""Logging configuration and setup."""
import logging
import sys
from colorama import Fore, Style, init

init(autoreset=True)

HANDLER_NAME = "rocketchat_mcp"


class ColoredFormatter(logging.Formatter):
    """Formatter with coloured level names for console output"""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Style.BRIGHT,
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, '')
        levelname = record.levelname
        record.levelname = f"{log_color}{levelname}{Style.RESET_ALL}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_logger(config: 'Config') -> logging.Logger:
    """Set up logging from the configuration.

    Console output goes to stderr so stdout stays free for command results.
    Calling this twice replaces the handlers installed the first time.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.logging.level))

    for handler in list(root_logger.handlers):
        if handler.get_name() and handler.get_name().startswith(HANDLER_NAME):
            root_logger.removeHandler(handler)
            handler.close()

    # Console Handler
    if config.logging.console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.set_name(f"{HANDLER_NAME}.console")
        console_handler.setLevel(getattr(logging, config.logging.level))
        console_handler.setFormatter(ColoredFormatter(config.logging.format))
        root_logger.addHandler(console_handler)

    # File Handler (optional)
    if config.logging.log_file:
        config.logging.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.logging.log_file)
        file_handler.set_name(f"{HANDLER_NAME}.file")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(config.logging.format))
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger
