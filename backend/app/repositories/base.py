"""Read-only repository base.

- Repositories serve read paths (brief listing) and never write.
- Read-only discipline is enforced at execution time: SELECT statements only,
  and no pending unit-of-work state before or after the query.
- Writes live in `ingestion.core` and `app.services`, which own their transactions.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from sqlalchemy.engine import Result
from sqlalchemy.orm import Session
from sqlalchemy.sql import Executable
from sqlalchemy.sql.dml import Delete, Insert, Update
from sqlalchemy.sql.selectable import Select


class RepositoryReadOnlyViolation(RuntimeError):
    """Raised when a repository detects a write or mutation attempt."""


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Base repository providing a guarded execute helper."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _assert_clean_uow(self) -> None:
        s = self._session
        if s.new or s.dirty or s.deleted:
            raise RepositoryReadOnlyViolation(
                "Repository layer is read-only: session has pending changes "
                f"(new={len(s.new)}, dirty={len(s.dirty)}, deleted={len(s.deleted)})."
            )

    def _assert_select_only(self, stmt: Executable) -> None:
        if isinstance(stmt, (Insert, Update, Delete)):
            raise RepositoryReadOnlyViolation("Repository layer is read-only: DML is forbidden.")
        if not isinstance(stmt, Select):
            raise RepositoryReadOnlyViolation(
                f"Repository layer is read-only: only SELECT statements are allowed (got {type(stmt)!r})."
            )

    def _execute(self, stmt: Executable, *, params: Optional[dict[str, Any]] = None) -> Result[Any]:
        self._assert_select_only(stmt)
        self._assert_clean_uow()
        result = self._session.execute(stmt, params or {})
        self._assert_clean_uow()
        return result
