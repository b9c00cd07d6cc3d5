"""
Pydantic v2 models for table references and read-session options.

Responsibilities
- TableReference: validated, immutable {project_id, dataset_id, table_id} triple that
  renders the service's table path.
- ReadOptions: validated, immutable options forwarded to session creation.

Style
- Zero-IO (stdlib + pydantic only).
- Invalid values raise pydantic.ValidationError at construction time.

Examples:
    >>> from bqread.core.table import ReadOptions, TableReference
    >>> ref = TableReference(project_id="bigquery-public-data", dataset_id="london_bicycles",
    ...                      table_id="cycle_stations")
    >>> ref.path
    'projects/bigquery-public-data/datasets/london_bicycles/tables/cycle_stations'
    >>> ReadOptions(max_stream_count=4).parent_for(ref)
    'projects/bigquery-public-data'
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import MAX_STREAM_COUNT, MAX_STREAM_COUNT_LIMIT

__all__ = [
    "TableReference",
    "ReadOptions",
    "Compression",
]

Compression = Literal["lz4_frame", "zstd"]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")
_PATH_RE = re.compile(r"^projects/([^/]+)/datasets/([^/]+)/tables/([^/]+)$")
_DOTTED_RE = re.compile(r"^([^.:/]+(?::[^.:/]+)?)[.:]([^.]+)\.([^.]+)$")


def _check_project(value: str) -> str:
    if not value.strip():
        raise ValueError("project id must be non-empty")
    if "/" in value or any(c.isspace() for c in value):
        raise ValueError(f"project id must not contain '/' or whitespace: {value!r}")
    return value


class TableReference(BaseModel):
    """
    A fully qualified table.

    Attributes:
        project_id (str): Project owning the table (non-empty, no '/' or whitespace).
        dataset_id (str): Dataset id; alphanumerics and underscores only.
        table_id (str): Table id; alphanumerics and underscores only.

    Raises:
        pydantic.ValidationError: If any component is empty or malformed.

    Examples:
        >>> str(TableReference.parse("my-project.my_dataset.my_table"))
        'projects/my-project/datasets/my_dataset/tables/my_table'
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    project_id: str = Field(..., min_length=1)
    dataset_id: str = Field(..., min_length=1)
    table_id: str = Field(..., min_length=1)

    @field_validator("project_id")
    @classmethod
    def _validate_project(cls, v: str) -> str:
        return _check_project(v)

    @field_validator("dataset_id", "table_id")
    @classmethod
    def _validate_identifier(cls, v: str) -> str:
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(f"only alphanumerics and underscores are allowed, got {v!r}")
        return v

    @classmethod
    def parse(cls, value: str) -> TableReference:
        """
        Parse a table path or a dotted table id.

        Accepted forms:
            - projects/{p}/datasets/{d}/tables/{t}
            - {p}.{d}.{t}
            - {p}:{d}.{t} (legacy SQL)

        Raises:
            ValueError: If the string matches none of the forms.
        """
        m = _PATH_RE.match(value) or _DOTTED_RE.match(value)
        if m is None:
            raise ValueError(f"not a table reference: {value!r}")
        project_id, dataset_id, table_id = m.groups()
        return cls(project_id=project_id, dataset_id=dataset_id, table_id=table_id)

    @property
    def path(self) -> str:
        """Resource path used in session-creation requests."""
        return f"projects/{self.project_id}/datasets/{self.dataset_id}/tables/{self.table_id}"

    def __str__(self) -> str:
        return self.path


class ReadOptions(BaseModel):
    """
    Options for creating a read session.

    Attributes:
        parent_project_id (str | None): Project billed for the read; defaults to the
            table's project.
        max_stream_count (int): Upper bound on streams; 0 lets the service decide. The
            service may return fewer streams than requested.
        row_restriction (str | None): SQL filter forwarded verbatim, e.g. ``"num > 5"``.
        selected_fields (tuple[str, ...]): Column projection; empty reads all columns.
        snapshot_time (datetime | None): Read the table as of this time; None means now.
        compression (Literal["lz4_frame", "zstd"] | None): Arrow buffer compression
            requested from the service.

    Raises:
        pydantic.ValidationError: If max_stream_count is outside [0, 1000] or a selected
            field is empty.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    parent_project_id: str | None = None
    max_stream_count: int = Field(MAX_STREAM_COUNT, ge=0, le=MAX_STREAM_COUNT_LIMIT)
    row_restriction: str | None = None
    selected_fields: tuple[str, ...] = ()
    snapshot_time: datetime | None = None
    compression: Compression | None = None

    @field_validator("parent_project_id")
    @classmethod
    def _validate_parent(cls, v: str | None) -> str | None:
        return None if v is None else _check_project(v)

    @field_validator("selected_fields")
    @classmethod
    def _validate_fields(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for name in v:
            if not name.strip():
                raise ValueError("selected field names must be non-empty")
        return v

    def parent_for(self, table: TableReference) -> str:
        """Return the ``projects/{id}`` parent that owns the session."""
        return f"projects/{self.parent_project_id or table.project_id}"
