"""Load watch options from YAML files."""

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..models import ConfigurationError, WatchOptions

logger = logging.getLogger(__name__)


def load_options_from_yaml(config_path: Path) -> WatchOptions:
    """
    Load watch options from a YAML file.

    Expected format:

    ```yaml
    watch:
      source:
        - ./src
        - ./docs
      exclude:
        - "**/*.log"
        - "node_modules/**"
      usePolling: false
    ```

    Sources may use ``~`` and environment variables.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        The parsed WatchOptions

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Watch config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading watch config: {e}")
        raise ConfigurationError(f"Error loading watch config: {config_path}", e) from e

    if not isinstance(data, dict) or not isinstance(data.get("watch"), dict):
        raise ConfigurationError(f"Watch config has no 'watch' section: {config_path}")

    watch_data = dict(data["watch"])
    if "source" in watch_data:
        watch_data["source"] = _expand(watch_data["source"])

    try:
        options = WatchOptions.model_validate(watch_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid watch config: {config_path}", e) from e

    logger.info(f"Loaded watch options from {config_path}")
    return options


def _expand(source):
    """Expand user home and environment variables in one or more paths."""
    if isinstance(source, list):
        return [_expand(s) for s in source]
    if isinstance(source, str):
        return os.path.expandvars(os.path.expanduser(source))
    return source


def save_options_to_yaml(options: WatchOptions, config_path: Path) -> None:
    """
    Save watch options to a YAML file.

    Args:
        options: Options to write
        config_path: Path to write the YAML file
    """
    config_path = Path(config_path)
    data = {
        "watch": options.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
        )
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True)

    logger.info(f"Saved watch options to {config_path}")


# Example configuration template
EXAMPLE_CONFIG = """# changewatch configuration
#
# Paths to watch for changes. Each change is reported once, after the
# writer has finished, relative to the directory the watcher runs in.

watch:
  # One path or a list of paths
  source:
    - ./src
    - ./docs

  # Glob patterns for paths that never produce notifications
  exclude:
    - "**/*.log"
    - "**/*.tmp"
    - "node_modules/**"
    - ".git/**"

  # Poll instead of using native OS events (network drives, containers)
  usePolling: false
"""


def write_example_config(config_path: Path) -> None:
    """Write an example configuration file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(EXAMPLE_CONFIG)
    logger.info(f"Wrote example watch configuration to {config_path}")
