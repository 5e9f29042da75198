"""Logging utilities."""
from __future__ import annotations

import logging.config
from pathlib import Path

_CONFIG_PATH = Path(__file__).resolve().parent / "../.." / "configs" / "logging.yaml"


def configure_logging(config_path: Path | None = None) -> None:
    """Configure logging from the YAML configuration file if present."""
    path = config_path or _CONFIG_PATH
    if path.exists():
        import yaml  # type: ignore[import-untyped]

        with path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=logging.INFO)
