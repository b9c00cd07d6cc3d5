from __future__ import annotations

from pathlib import Path

import pytest

from bqread.core.constants import CHANNEL_CAPACITY, MAX_FRAME_SIZE, MAX_WORKERS
from bqread.core.errors import ConfigError
from bqread.io.config import ReadSettings

_ENV_KEYS = [
    "BQREAD_MAX_FRAME_SIZE",
    "BQREAD_MAX_WORKERS",
    "BQREAD_CHANNEL_CAPACITY",
    "BQREAD_DEFAULT_MAX_STREAM_COUNT",
    "BQREAD_ON_SCHEMA_MISMATCH",
]


def _write_bqread_toml(tmp: Path, content: str) -> Path:
    p = tmp / "bqread.toml"
    p.write_text(content)
    return p


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_read_settings_precedence_env_over_toml(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    # Arrange TOML
    _write_bqread_toml(
        tmp_path,
        """
        [read]
        max_workers = 2
        max_frame_size = 1048576
        on_schema_mismatch = "skip"
        """.strip(),
    )
    # Ensure cwd for ReadSettings.from_toml() search
    clean_env.chdir(tmp_path)
    # Arrange ENV that should override TOML
    clean_env.setenv("BQREAD_MAX_WORKERS", "16")
    clean_env.setenv("BQREAD_ON_SCHEMA_MISMATCH", "RAISE")

    # Act
    s = ReadSettings.load()

    # Assert precedence: env > TOML
    assert s.max_workers == 16  # env override
    assert s.on_schema_mismatch == "raise"  # env override, normalized
    assert s.max_frame_size == 1048576  # TOML only


def test_read_settings_from_toml_when_no_env(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _write_bqread_toml(
        tmp_path,
        """
        max_workers = 3
        channel_capacity = 8
        default_max_stream_count = 10
        """.strip(),
    )
    clean_env.chdir(tmp_path)

    s = ReadSettings.load()

    # Top-level keys are accepted without a [read] table
    assert s.max_workers == 3
    assert s.channel_capacity == 8
    assert s.default_max_stream_count == 10


def test_read_settings_from_pyproject_tool_table(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    (tmp_path / "pyproject.toml").write_text(
        """
        [project]
        name = "consumer"

        [tool.bqread.read]
        max_workers = 5
        """.strip()
    )
    clean_env.chdir(tmp_path)

    assert ReadSettings.load().max_workers == 5


def test_read_settings_defaults_when_no_config(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    # No TOML, no env
    clean_env.chdir(tmp_path)

    s = ReadSettings.load()

    # Defaults from ReadSettings / bqread.core.constants
    assert s.max_frame_size == MAX_FRAME_SIZE
    assert s.max_workers == MAX_WORKERS
    assert s.channel_capacity == CHANNEL_CAPACITY
    assert s.default_max_stream_count == 0
    assert s.on_schema_mismatch == "raise"


def test_non_integer_env_value_is_ignored(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    clean_env.chdir(tmp_path)
    clean_env.setenv("BQREAD_MAX_WORKERS", "lots")

    assert ReadSettings.load().max_workers == MAX_WORKERS


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_frame_size": 0},
        {"max_workers": 0},
        {"channel_capacity": 0},
        {"default_max_stream_count": 1001},
        {"on_schema_mismatch": "ignore"},
    ],
)
def test_invalid_values_raise_config_error(kwargs: dict) -> None:
    with pytest.raises(ConfigError):
        ReadSettings(**kwargs)


def test_invalid_env_policy_raises_config_error(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    clean_env.chdir(tmp_path)
    clean_env.setenv("BQREAD_ON_SCHEMA_MISMATCH", "ignore")

    with pytest.raises(ConfigError, match="on_schema_mismatch"):
        ReadSettings.load()


def test_invalid_toml_raises_config_error(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _write_bqread_toml(tmp_path, "[read\nmax_workers = ")
    clean_env.chdir(tmp_path)

    with pytest.raises(ConfigError, match="invalid TOML"):
        ReadSettings.load()
