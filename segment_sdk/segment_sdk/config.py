"""
Configuration loader for segment.yaml files and SEGMENT_* environment variables.

Example segment.yaml:

    write_key: your_write_key
    http:
      host: https://api.segment.io
      connect_timeout: 10
    batching:
      max_batch_bytes: 512000
      max_message_bytes: 32768
      auto_timestamp: true
    context:
      library:
        name: my-service
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .batcher import MAX_BATCH_SIZE, MAX_MESSAGE_SIZE
from .client import DEFAULT_HOST

CONFIG_FILENAME = "segment.yaml"


@dataclass
class SegmentConfig:
    """Settings consumed when building an AutoBatcher."""
    write_key: str = ""
    host: str = DEFAULT_HOST
    max_batch_bytes: int = MAX_BATCH_SIZE
    max_message_bytes: int = MAX_MESSAGE_SIZE
    auto_timestamp: bool = True
    context: Optional[Dict[str, Any]] = None
    connect_timeout: float = 10.0
    read_timeout: Optional[float] = None

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SegmentConfig":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        http = data.get("http") or {}
        batching = data.get("batching") or {}

        return cls(
            write_key=data.get("write_key", ""),
            host=http.get("host", DEFAULT_HOST),
            connect_timeout=float(http.get("connect_timeout", 10.0)),
            read_timeout=http.get("read_timeout"),
            max_batch_bytes=int(batching.get("max_batch_bytes", MAX_BATCH_SIZE)),
            max_message_bytes=int(batching.get("max_message_bytes", MAX_MESSAGE_SIZE)),
            auto_timestamp=bool(batching.get("auto_timestamp", True)),
            context=data.get("context"),
        )

    @classmethod
    def from_env(cls) -> "SegmentConfig":
        """Create config from environment variables."""
        return cls(
            write_key=os.environ.get("SEGMENT_WRITE_KEY", ""),
            host=os.environ.get("SEGMENT_HOST", DEFAULT_HOST),
            max_batch_bytes=int(os.environ.get("SEGMENT_MAX_BATCH_BYTES", MAX_BATCH_SIZE)),
            max_message_bytes=int(
                os.environ.get("SEGMENT_MAX_MESSAGE_BYTES", MAX_MESSAGE_SIZE)
            ),
            auto_timestamp=_env_flag("SEGMENT_AUTO_TIMESTAMP", True),
        )


def load_config(config_path: Optional[Union[str, Path]] = None) -> SegmentConfig:
    """
    Load configuration.

    Search order:
    1. Provided config_path
    2. SEGMENT_CONFIG environment variable
    3. ./segment.yaml in current directory
    4. segment.yaml in parent directories (walk up the tree)
    5. SEGMENT_* environment variables alone

    A write key missing from the file is taken from SEGMENT_WRITE_KEY.

    Args:
        config_path: Optional explicit path to config file

    Returns:
        SegmentConfig instance

    Raises:
        FileNotFoundError: If an explicitly named config file does not exist
    """
    path = config_path or os.environ.get("SEGMENT_CONFIG") or _find_config_file()
    if not path:
        return SegmentConfig.from_env()

    config = SegmentConfig.from_yaml(path)
    if not config.write_key:
        config.write_key = os.environ.get("SEGMENT_WRITE_KEY", "")
    return config


def _find_config_file() -> Optional[Path]:
    """Walk up from the working directory looking for segment.yaml."""
    current = Path.cwd()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate

        # Stop at filesystem root
        if current == current.parent:
            return None
        current = current.parent


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")
