"""Watch options - user-facing configuration and its resolved form."""

import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError

PathLike = Union[str, Path]


class WatchOptions(BaseModel):
    """
    Options supplied by the caller when constructing a watcher.
    
    ``source`` is declared optional here so that a missing source surfaces
    as a ``ConfigurationError`` from the watcher rather than as a pydantic
    validation error.
    """
    
    model_config = ConfigDict(populate_by_name=True, extra="forbid")
    
    source: Optional[Union[PathLike, list[PathLike]]] = None
    """One or more root paths to watch."""
    
    exclude: Optional[Union[str, list[str]]] = None
    """Glob patterns; paths matching any of them are suppressed."""
    
    use_polling: Optional[bool] = Field(default=None, alias="usePolling")
    """Force polling instead of native OS events."""


class ResolvedWatchConfig(BaseModel):
    """
    Fully-defaulted form of WatchOptions.
    
    Derived once when the watcher is constructed and immutable afterwards.
    """
    
    model_config = ConfigDict(frozen=True)
    
    sources: tuple[str, ...] = Field(min_length=1)
    exclude: tuple[str, ...] = ()
    use_polling: bool = False
    
    @classmethod
    def from_options(cls, options: WatchOptions) -> "ResolvedWatchConfig":
        """
        Validate options and apply defaults.
        
        Raises:
            ConfigurationError: If no source was given
        """
        sources = _as_tuple(options.source)
        if not sources or not all(sources):
            raise ConfigurationError("Source is required")
        
        return cls(
            sources=sources,
            exclude=_as_tuple(options.exclude),
            use_polling=bool(options.use_polling),
        )
    
    @property
    def display_source(self) -> str:
        """Sources rendered for log lines."""
        return ",".join(self.sources)
    
    def to_options(self) -> WatchOptions:
        """Convert back to user-facing options (for serialization)."""
        return WatchOptions(
            source=list(self.sources),
            exclude=list(self.exclude),
            use_polling=self.use_polling,
        )


def _as_tuple(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, os.PathLike)):
        return (os.fspath(value),)
    return tuple(os.fspath(v) for v in value)
