"""
practice_config -- single public entrypoint for tenant billing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- YAML-driven.  This package sits above
    ``practice_kernel`` and below ``practice_services`` / ``practice_batch``.
    The kernel MUST NEVER import from ``practice_config``; ``bridges``
    translates the parsed config into kernel settings.

Failure modes:
    - ``FileNotFoundError`` -- explicit path (or PRACTICE_CONFIG) missing.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``practice_config_loaded`` log entry with the config id, version and
    checksum, tying postings back to the configuration that governed them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from practice_config.loader import load_config_file
from practice_config.schema import PracticeConfig

_logger = logging.getLogger("practice_kernel.config")

CONFIG_ENV_VAR = "PRACTICE_CONFIG"

# Built-in configuration shipped with the package
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> PracticeConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: explicit ``path``, then the ``PRACTICE_CONFIG``
    environment variable, then the packaged ``defaults.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If configuration validation fails.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else _DEFAULT_CONFIG_PATH

    config = load_config_file(Path(path))

    _logger.info(
        "practice_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source_path": str(path),
        },
    )
    return config


__all__ = ["CONFIG_ENV_VAR", "PracticeConfig", "get_active_config"]
