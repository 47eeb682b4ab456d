"""Process-wide logging setup for services embedding the engine."""

import logging
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging once per process.

    The audit.fallback logger always emits at ERROR or above so lost audit
    entries stay visible even when the root level is raised.

    Raises:
        ValueError: level is not a known level name or an int
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    elif not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("audit.fallback").setLevel(min(level, logging.ERROR))
