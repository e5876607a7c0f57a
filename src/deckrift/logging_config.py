import logging
import os


def configure_logging(level: int = logging.INFO) -> None:
    """Configure the root logger with one stderr handler.

    Respects DECKRIFT_LOG_LEVEL env var if present. Output goes to stderr so
    JSON printed by the CLI on stdout stays parseable.
    """
    level_name = os.getenv("DECKRIFT_LOG_LEVEL")
    if level_name:
        level = getattr(logging, level_name.upper(), level)
    # force replaces handlers left over from earlier calls
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        force=True,
    )
