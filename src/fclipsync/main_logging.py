"""Logging configuration for fclipsync CLI."""
import logging


def configure_logging(verbose: bool, log_file: str | None = None) -> None:
    """Configure logging level based on verbosity setting.

    Args:
        verbose: If True, set DEBUG level; otherwise WARNING level.
        log_file: Optional file that additionally receives INFO and above
            with timestamps, regardless of verbosity.

    Errors are always printed to stderr regardless of verbosity.
    """
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    handlers: list[logging.Handler] = [console]
    level = console.level

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)
        level = min(level, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        handlers=handlers,
    )
