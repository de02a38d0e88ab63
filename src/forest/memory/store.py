"""Durable SQLite storage for installed plans and their plants."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from .schema import Plan, Plant, PlantStatus, utc_now

DEFAULT_DB_PATH = Path(".forest/forest.sqlite")
LOGGER = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when a write against the store fails."""


def _as_iso(timestamp: datetime) -> str:
    """Serialise a timestamp to a timezone-aware ISO 8601 string."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _dump_json(data: Any, *, default: Any) -> str:
    return json.dumps(default if data is None else data)


def _load_json(value: Optional[str], *, default: Any) -> Any:
    """Decode JSON columns while falling back to the provided default."""
    if not value:
        return default
    data = json.loads(value)
    if data is None:
        return default
    return data


class ForestStore:
    """SQLite-backed plan and plant repository.

    Implements the ``PlanRepository`` and ``PlantRepository`` ports consumed
    by the reconciler. Every write runs in its own short transaction; there is
    no transaction spanning a whole reconcile.
    """

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path).resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = self._open_connection()
        self._bootstrap()

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def __enter__(self) -> "ForestStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self.db_path))
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, base_dir: Path | None = None) -> "ForestStore":
        persistence = config.get("persistence") or {}
        db_value = persistence.get("db_path")
        db_path = Path(db_value) if isinstance(db_value, str) and db_value.strip() else DEFAULT_DB_PATH
        if not db_path.is_absolute() and base_dir is not None:
            db_path = base_dir / db_path
        return cls(db_path)

    def _bootstrap(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS plans (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                version TEXT NOT NULL,
                source TEXT NOT NULL,
                repository TEXT,
                planners TEXT NOT NULL,
                planters TEXT NOT NULL,
                plant_templates TEXT NOT NULL,
                metadata TEXT NOT NULL,
                installed_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS plants (
                key TEXT PRIMARY KEY,
                slug TEXT NOT NULL,
                plan_id TEXT NOT NULL,
                planner_id TEXT NOT NULL,
                status TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                assigned_planters TEXT NOT NULL,
                branches TEXT NOT NULL,
                selected_branch TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_plants_plan_status
                ON plants(plan_id, status);
            """
        )
        self._conn.commit()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as error:
            self._conn.rollback()
            raise PersistenceError(str(error)) from error
        except Exception:
            self._conn.rollback()
            raise

    # Plan operations -----------------------------------------------------------------
    def save_plan(self, plan: Plan) -> None:
        """Insert or replace an installed plan."""
        with self._transaction():
            self._conn.execute(
                """
                INSERT INTO plans (
                    id, name, version, source, repository, planners, planters,
                    plant_templates, metadata, installed_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    version = excluded.version,
                    source = excluded.source,
                    repository = excluded.repository,
                    planners = excluded.planners,
                    planters = excluded.planters,
                    plant_templates = excluded.plant_templates,
                    metadata = excluded.metadata,
                    installed_at = excluded.installed_at
                """,
                (
                    plan.id,
                    plan.name,
                    plan.version,
                    plan.source,
                    plan.repository,
                    _dump_json(plan.planners, default=[]),
                    _dump_json(plan.planters, default=[]),
                    _dump_json(plan.plant_templates, default=[]),
                    _dump_json(plan.metadata, default={}),
                    _as_iso(plan.installed_at),
                ),
            )

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        cursor = self._conn.execute("SELECT * FROM plans WHERE id = ?", (plan_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_plan(row)

    def list_plans(self) -> List[Plan]:
        cursor = self._conn.execute("SELECT * FROM plans ORDER BY id ASC")
        return [self._row_to_plan(row) for row in cursor.fetchall()]

    # Plant operations ----------------------------------------------------------------
    def add_plant(self, plant: Plant) -> None:
        """Insert a new plant; an existing key is a ``PersistenceError``."""
        with self._transaction():
            self._conn.execute(
                """
                INSERT INTO plants (
                    key, slug, plan_id, planner_id, status, title, description,
                    assigned_planters, branches, selected_branch, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._plant_params(plant),
            )
        LOGGER.debug("Stored plant %s", plant.key)

    def update_plant(self, plant: Plant) -> None:
        """Replace every column of an existing plant and stamp ``updated_at``."""
        record = plant.model_copy(update={"updated_at": utc_now()})
        params = self._plant_params(record)
        with self._transaction():
            cursor = self._conn.execute(
                """
                UPDATE plants SET
                    slug = ?,
                    plan_id = ?,
                    planner_id = ?,
                    status = ?,
                    title = ?,
                    description = ?,
                    assigned_planters = ?,
                    branches = ?,
                    selected_branch = ?,
                    created_at = ?,
                    updated_at = ?
                WHERE key = ?
                """,
                (*params[1:], params[0]),
            )
            if cursor.rowcount == 0:
                raise PersistenceError(f"Plant not found: {plant.key}")
        LOGGER.debug("Updated plant %s", plant.key)

    def get_plant(self, key: str) -> Optional[Plant]:
        cursor = self._conn.execute("SELECT * FROM plants WHERE key = ?", (key,))
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_plant(row)

    def list_plants(
        self,
        *,
        plan_id: Optional[str] = None,
        statuses: Optional[Sequence[PlantStatus]] = None,
    ) -> List[Plant]:
        query = "SELECT * FROM plants"
        clauses = []
        params: List[Any] = []
        if plan_id:
            clauses.append("plan_id = ?")
            params.append(plan_id)
        if statuses:
            placeholders = ",".join("?" for _ in statuses)
            clauses.append(f"status IN ({placeholders})")
            params.extend(status.value for status in statuses)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY key ASC"

        cursor = self._conn.execute(query, params)
        return [self._row_to_plant(row) for row in cursor.fetchall()]

    def delete_plant(self, key: str) -> bool:
        with self._transaction():
            cursor = self._conn.execute("DELETE FROM plants WHERE key = ?", (key,))
        return cursor.rowcount > 0

    @staticmethod
    def _plant_params(plant: Plant) -> tuple[Any, ...]:
        return (
            plant.key,
            plant.slug,
            plant.plan_id,
            plant.planner_id,
            plant.status.value,
            plant.title,
            plant.description,
            _dump_json(plant.assigned_planters, default=[]),
            _dump_json(plant.branches, default=[]),
            plant.selected_branch,
            _as_iso(plant.created_at),
            _as_iso(plant.updated_at) if plant.updated_at else None,
        )

    @staticmethod
    def _row_to_plan(row: sqlite3.Row) -> Plan:
        return Plan(
            id=row["id"],
            name=row["name"],
            version=row["version"],
            source=row["source"],
            repository=row["repository"],
            planners=_load_json(row["planners"], default=[]),
            planters=_load_json(row["planters"], default=[]),
            plant_templates=_load_json(row["plant_templates"], default=[]),
            metadata=_load_json(row["metadata"], default={}),
            installed_at=_from_iso(row["installed_at"]),
        )

    @staticmethod
    def _row_to_plant(row: sqlite3.Row) -> Plant:
        return Plant(
            key=row["key"],
            slug=row["slug"],
            plan_id=row["plan_id"],
            planner_id=row["planner_id"],
            status=PlantStatus(row["status"]),
            title=row["title"],
            description=row["description"],
            assigned_planters=_load_json(row["assigned_planters"], default=[]),
            branches=_load_json(row["branches"], default=[]),
            selected_branch=row["selected_branch"],
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )
