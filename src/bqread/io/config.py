"""
Configuration for the bqread.io layer.

Defines ReadSettings, a frozen dataclass carrying runtime configuration for the stream
pipelines. Defaults are sourced from bqread.core.constants (the single source of truth).

Source of truth
- bqread.core.constants.MAX_FRAME_SIZE, MAX_WORKERS, CHANNEL_CAPACITY,
  MAX_STREAM_COUNT, ON_SCHEMA_MISMATCH

Loading
- ReadSettings.load() applies precedence: environment > TOML > defaults.
- Environment variables use the BQREAD_ prefix (e.g. BQREAD_MAX_WORKERS).
- TOML is read from ./bqread.toml ([read] table or top-level keys) or from
  ./pyproject.toml under [tool.bqread.read].

Notes
- Credentials, endpoints and retry policy are not configured here; they belong to the
  transport the caller hands in.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal

from bqread.core.constants import CHANNEL_CAPACITY as CORE_CHANNEL_CAPACITY
from bqread.core.constants import MAX_FRAME_SIZE as CORE_MAX_FRAME_SIZE
from bqread.core.constants import MAX_STREAM_COUNT as CORE_MAX_STREAM_COUNT
from bqread.core.constants import MAX_STREAM_COUNT_LIMIT
from bqread.core.constants import MAX_WORKERS as CORE_MAX_WORKERS
from bqread.core.constants import ON_SCHEMA_MISMATCH as CORE_ON_SCHEMA_MISMATCH
from bqread.core.errors import ConfigError

logger = logging.getLogger(__name__)

OnSchemaMismatch = Literal["raise", "skip"]

_MISMATCH_POLICIES = ("raise", "skip")


@dataclass(frozen=True)
class ReadSettings:
    """
    Runtime settings for the bqread.io layer.

    Attributes:
        max_frame_size (int): Largest accepted IPC message (prefix + metadata + body) in
            bytes. Larger declared lengths fail the stream with FrameTooLarge.
        max_workers (int): Default number of concurrent stream pipelines.
        channel_capacity (int): Bounded size of the result channel used by parallel reads.
        default_max_stream_count (int): max_stream_count used when no ReadOptions are given
            (0 lets the service decide).
        on_schema_mismatch (Literal["raise", "skip"]): Whether a batch that disagrees with
            the stream schema fails the stream ("raise") or is logged and dropped ("skip").

    Raises:
        ConfigError: If any value is out of range.

    Examples:
        >>> from bqread.io.config import ReadSettings
        >>> ReadSettings(max_workers=8)  # doctest: +ELLIPSIS
        ReadSettings(...)
    """

    max_frame_size: int = CORE_MAX_FRAME_SIZE
    max_workers: int = CORE_MAX_WORKERS
    channel_capacity: int = CORE_CHANNEL_CAPACITY
    default_max_stream_count: int = CORE_MAX_STREAM_COUNT
    on_schema_mismatch: OnSchemaMismatch = CORE_ON_SCHEMA_MISMATCH  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.max_frame_size < 1:
            raise ConfigError(f"max_frame_size must be >= 1, got {self.max_frame_size}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.channel_capacity < 1:
            raise ConfigError(f"channel_capacity must be >= 1, got {self.channel_capacity}")
        if not 0 <= self.default_max_stream_count <= MAX_STREAM_COUNT_LIMIT:
            raise ConfigError(
                f"default_max_stream_count must be in [0, {MAX_STREAM_COUNT_LIMIT}], "
                f"got {self.default_max_stream_count}"
            )
        if self.on_schema_mismatch not in _MISMATCH_POLICIES:
            raise ConfigError(
                f"on_schema_mismatch must be one of {_MISMATCH_POLICIES}, "
                f"got {self.on_schema_mismatch!r}"
            )

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: ReadSettings, cfg: dict[str, Any] | None) -> ReadSettings:
        """Apply a loose config mapping onto ReadSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base

        for name in ("max_frame_size", "max_workers", "channel_capacity", "default_max_stream_count"):
            if name not in cfg:
                continue
            try:
                value = int(cfg[name])
            except (TypeError, ValueError):
                logger.warning("ignoring non-integer %s=%r", name, cfg[name])
                continue
            s = replace(s, **{name: value})

        if "on_schema_mismatch" in cfg and isinstance(cfg["on_schema_mismatch"], str):
            policy = cfg["on_schema_mismatch"].strip().lower()
            s = replace(s, on_schema_mismatch=policy)  # type: ignore[arg-type]

        return s

    @classmethod
    def from_env(cls, base: ReadSettings | None = None, prefix: str = "BQREAD_") -> ReadSettings:
        """
        Build ReadSettings from environment variables. Precedence is env > base > defaults.

        Recognized variables:
            - BQREAD_MAX_FRAME_SIZE
            - BQREAD_MAX_WORKERS
            - BQREAD_CHANNEL_CAPACITY
            - BQREAD_DEFAULT_MAX_STREAM_COUNT
            - BQREAD_ON_SCHEMA_MISMATCH ("raise" | "skip")
        """
        s = base or cls()

        mapping: dict[str, Any] = {}
        for name in (
            "max_frame_size",
            "max_workers",
            "channel_capacity",
            "default_max_stream_count",
            "on_schema_mismatch",
        ):
            v = os.getenv(prefix + name.upper())
            if v:
                mapping[name] = v

        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> ReadSettings:
        """
        Build ReadSettings from a TOML file.

        Search order when `path` is None:
            1) ./bqread.toml (with either a top-level [read] table or direct keys)
            2) ./pyproject.toml under [tool.bqread.read]

        Returns defaults if no file is present.

        Raises:
            ConfigError: If the file exists but is not valid TOML.
        """
        s = cls()

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "bqread.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            try:
                with p.open("rb") as fh:
                    data = tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"invalid TOML in {p}: {exc}") from exc
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("bqread", {}).get("read") if isinstance(tool, dict) else None
            else:
                top = data.get("read")
                cfg = top if isinstance(top, dict) else data
            if cfg:
                logger.debug("loaded read settings from %s", p)
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> ReadSettings:
        """
        Load ReadSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search defaults (bqread.toml,
                pyproject.toml).

        Returns:
            ReadSettings
        """
        s = cls.from_toml(path)
        s = cls.from_env(base=s)
        return s
