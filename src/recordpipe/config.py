"""
Process-wide stream defaults.

Values can be overridden through environment variables or by installing a
custom StreamConfig with set_config().
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class StreamConfig:
    """Default sizing and format settings for stages.

    Attributes:
        high_water_mark: Items buffered per stage before producers are suspended
        parse_buffer_size: Buffer capacity of the Parsable output stage
        default_format: Format used when stream() is called without one
        encoding: Text encoding for serialized payloads
    """

    high_water_mark: int = 16
    parse_buffer_size: int = 500 * 1000
    default_format: str = "csv"
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        if self.high_water_mark < 1:
            raise ValueError("high_water_mark must be at least 1")
        if self.parse_buffer_size < 1:
            raise ValueError("parse_buffer_size must be at least 1")

    @classmethod
    def from_env(cls) -> StreamConfig:
        """Create configuration from environment variables."""
        return cls(
            high_water_mark=int(os.getenv("RECORDPIPE_HIGH_WATER_MARK", "16")),
            parse_buffer_size=int(
                os.getenv("RECORDPIPE_PARSE_BUFFER_SIZE", str(500 * 1000))
            ),
            default_format=os.getenv("RECORDPIPE_DEFAULT_FORMAT", "csv"),
            encoding=os.getenv("RECORDPIPE_ENCODING", "utf-8"),
        )


_config: StreamConfig | None = None


def get_config() -> StreamConfig:
    """Get the active configuration, loading it from the environment once."""
    global _config
    if _config is None:
        _config = StreamConfig.from_env()
    return _config


def set_config(config: StreamConfig | None) -> None:
    """Install a configuration. Passing None reloads from the environment."""
    global _config
    _config = config
