"""
Logging configuration.

We use a YAML logging config (`src/tadamon/config/logging.yaml`) and then apply
runtime overrides from settings (e.g., `TADAMON_LOG_LEVEL`).
"""

from __future__ import annotations

import copy
import logging.config

from tadamon.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> None:
    """Configure the Python logging system from the packaged YAML config + settings.

    `level` (e.g. from a `--verbose` CLI flag) takes priority over the settings value.
    """
    settings = get_settings()
    # The loaded dict is cached; dictConfig must not see our level edits leak between calls.
    config = copy.deepcopy(get_logging_config())

    resolved = (level or settings.app.log_level).upper()
    config.setdefault("root", {})["level"] = resolved
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = resolved

    logging.config.dictConfig(config)
