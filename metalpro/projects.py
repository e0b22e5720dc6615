from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
import json
import logging
import sqlite3
from typing import Callable, Protocol, Sequence
import uuid

from .bom_parser import BOMRow, row_from_dict, row_to_dict
from .db import init_db
from .errors import ProjectNotFoundError


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class SavedProject:
    id: str
    user_id: str
    name: str
    rows: list[BOMRow] = field(default_factory=list)
    description: str | None = None
    file_name: str | None = None
    created_at: str = ""
    updated_at: str = ""
    last_used_at: str | None = None

    @property
    def total_rows(self) -> int:
        return len(self.rows)


class ProjectRepository(Protocol):
    def list_for_user(self, user_id: str) -> list[SavedProject]: ...

    def get(self, project_id: str) -> SavedProject: ...

    def create(
        self,
        user_id: str,
        name: str,
        rows: Sequence[BOMRow],
        description: str | None = None,
        file_name: str | None = None,
    ) -> SavedProject: ...

    def update(
        self,
        project_id: str,
        name: str | None = None,
        description: str | None = None,
        rows: Sequence[BOMRow] | None = None,
    ) -> SavedProject: ...

    def delete(self, project_id: str) -> None: ...

    def mark_used(self, project_id: str) -> SavedProject: ...


def _timestamp(clock: Clock) -> str:
    return clock().isoformat(timespec="microseconds")


def _newest_first(projects: list[SavedProject]) -> list[SavedProject]:
    return sorted(projects, key=lambda p: p.updated_at, reverse=True)


def _detached(project: SavedProject) -> SavedProject:
    return copy.deepcopy(project)


class InMemoryProjectRepository:
    """Dict-backed repository with the same behaviour as the sqlite one."""

    def __init__(self, clock: Clock = datetime.now) -> None:
        self._clock = clock
        self._projects: dict[str, SavedProject] = {}

    def list_for_user(self, user_id: str) -> list[SavedProject]:
        return _newest_first([_detached(p) for p in self._projects.values() if p.user_id == user_id])

    def get(self, project_id: str) -> SavedProject:
        try:
            return _detached(self._projects[project_id])
        except KeyError:
            raise ProjectNotFoundError(f"Project not found: {project_id}") from None

    def create(
        self,
        user_id: str,
        name: str,
        rows: Sequence[BOMRow],
        description: str | None = None,
        file_name: str | None = None,
    ) -> SavedProject:
        now = _timestamp(self._clock)
        project = SavedProject(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            rows=copy.deepcopy(list(rows)),
            description=description,
            file_name=file_name,
            created_at=now,
            updated_at=now,
        )
        self._projects[project.id] = project
        return _detached(project)

    def update(
        self,
        project_id: str,
        name: str | None = None,
        description: str | None = None,
        rows: Sequence[BOMRow] | None = None,
    ) -> SavedProject:
        current = self.get(project_id)
        project = replace(
            current,
            name=name if name is not None else current.name,
            description=description if description is not None else current.description,
            rows=copy.deepcopy(list(rows)) if rows is not None else current.rows,
            updated_at=_timestamp(self._clock),
        )
        self._projects[project_id] = project
        return _detached(project)

    def delete(self, project_id: str) -> None:
        self.get(project_id)
        del self._projects[project_id]

    def mark_used(self, project_id: str) -> SavedProject:
        project = replace(self.get(project_id), last_used_at=_timestamp(self._clock))
        self._projects[project_id] = project
        return _detached(project)


class SqliteProjectRepository:
    """Projects in the ``projects`` table, BOM rows serialized as JSON."""

    def __init__(self, conn: sqlite3.Connection, clock: Clock = datetime.now) -> None:
        self.conn = conn
        self._clock = clock
        init_db(conn)

    def list_for_user(self, user_id: str) -> list[SavedProject]:
        rows = self.conn.execute(
            "SELECT * FROM projects WHERE user_id = ? ORDER BY updated_at DESC",
            (user_id,),
        ).fetchall()
        return [_project_from_row(row) for row in rows]

    def get(self, project_id: str) -> SavedProject:
        row = self.conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        if row is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        return _project_from_row(row)

    def create(
        self,
        user_id: str,
        name: str,
        rows: Sequence[BOMRow],
        description: str | None = None,
        file_name: str | None = None,
    ) -> SavedProject:
        now = _timestamp(self._clock)
        project_id = uuid.uuid4().hex
        self.conn.execute(
            """
            INSERT INTO projects(
                id, user_id, name, description, file_name, total_rows,
                rows_json, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (project_id, user_id, name, description, file_name, len(rows), _rows_json(rows), now, now),
        )
        self.conn.commit()
        logger.info("Saved project %s (%d rows) for %s", name, len(rows), user_id)
        return self.get(project_id)

    def update(
        self,
        project_id: str,
        name: str | None = None,
        description: str | None = None,
        rows: Sequence[BOMRow] | None = None,
    ) -> SavedProject:
        current = self.get(project_id)
        new_rows = list(rows) if rows is not None else current.rows
        self.conn.execute(
            """
            UPDATE projects
            SET name = ?, description = ?, total_rows = ?, rows_json = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                name if name is not None else current.name,
                description if description is not None else current.description,
                len(new_rows),
                _rows_json(new_rows),
                _timestamp(self._clock),
                project_id,
            ),
        )
        self.conn.commit()
        return self.get(project_id)

    def delete(self, project_id: str) -> None:
        cur = self.conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        if cur.rowcount == 0:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        self.conn.commit()

    def mark_used(self, project_id: str) -> SavedProject:
        cur = self.conn.execute(
            "UPDATE projects SET last_used_at = ? WHERE id = ?",
            (_timestamp(self._clock), project_id),
        )
        if cur.rowcount == 0:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        self.conn.commit()
        return self.get(project_id)


def _rows_json(rows: Sequence[BOMRow]) -> str:
    return json.dumps([row_to_dict(row) for row in rows], ensure_ascii=False)


def _project_from_row(row: sqlite3.Row) -> SavedProject:
    payload = json.loads(row["rows_json"] or "[]")
    return SavedProject(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        rows=[row_from_dict(item) for item in payload],
        description=row["description"],
        file_name=row["file_name"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_used_at=row["last_used_at"],
    )
