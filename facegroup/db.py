"""
Database layer recording grouping runs.

We maintain a SQLite database with a small number of normalized tables to
record metadata about each run, the groups it produced and which image each
group member came from.  Embeddings themselves are never stored.

The tables are created automatically if they do not exist when connecting.
All interactions are implemented using SQLAlchemy Core.
"""

from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    Table, Column, Integer, String, DateTime, Boolean, Float, JSON, MetaData,
    ForeignKey, create_engine, select, insert, update
)
from sqlalchemy.engine import Engine, Connection
from sqlalchemy.exc import SQLAlchemyError, OperationalError


def _make_metadata() -> MetaData:
    """Define and return SQLAlchemy metadata with our table definitions."""
    metadata = MetaData()
    # Table recording each run
    Table(
        "runs", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("input_dir", String, nullable=False),
        Column("output_root", String, nullable=False),
        Column("model_name", String, nullable=False),
        Column("parameters", JSON, nullable=False),
        Column("status", String, nullable=False, default="running"),
        Column("start_time", DateTime, nullable=False),
        Column("end_time", DateTime, nullable=True),
        Column("n_images", Integer, nullable=True),
        Column("n_descriptors", Integer, nullable=True),
        Column("n_groups", Integer, nullable=True),
        Column("n_materialized", Integer, nullable=True),
        Column("command_line", String, nullable=True),
        Column("notes", String, nullable=True),
    )
    # Groups produced by a run, in creation order
    Table(
        "groups", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("run_id", Integer, ForeignKey("runs.id"), nullable=False),
        Column("group_index", Integer, nullable=False),
        Column("label", String, nullable=False),
        Column("size", Integer, nullable=False),
        Column("materialized", Boolean, nullable=False),
    )
    # One row per descriptor
    Table(
        "members", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("run_id", Integer, ForeignKey("runs.id"), nullable=False),
        Column("group_id", Integer, ForeignKey("groups.id"), nullable=False),
        Column("descriptor_index", Integer, nullable=False),
        Column("image_path", String, nullable=False),
        Column("face_index", Integer, nullable=False),
        Column("distance", Float, nullable=True),
    )
    return metadata


_METADATA = _make_metadata()


def _table(name: str) -> Table:
    return _METADATA.tables[name]


def _now() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc).replace(tzinfo=None)


def init_db(db_path: Path) -> Engine:
    """Initialize the database and create tables if they do not exist.

    Parameters
    ----------
    db_path: Path
        Location of the SQLite database file.

    Returns
    -------
    sqlalchemy.Engine
        Connected engine instance.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    _METADATA.create_all(engine)
    return engine


def _bulk_insert_with_ids(conn: Connection, table: Table, rows: List[Dict[str, Any]]) -> List[int]:
    """Insert many rows and return their primary keys.

    Uses ``INSERT ... RETURNING`` when available, otherwise falls back to
    row-by-row inserts to remain compatible with older SQLite versions.
    """
    if not rows:
        return []
    stmt = insert(table)
    try:
        result = conn.execute(stmt.returning(table.c.id, sort_by_parameter_order=True), rows)
        ids = [int(pk) for pk in result.scalars()]
        conn.commit()
        return ids
    except OperationalError as exc:
        # RETURNING not supported on this SQLite build; fall back to per-row inserts
        if conn.in_transaction():
            conn.rollback()
        message = str(exc).upper()
        if "RETURNING" not in message:
            raise
    except SQLAlchemyError:
        if conn.in_transaction():
            conn.rollback()
        raise

    inserted_ids: List[int] = []
    for row in rows:
        single_result = conn.execute(insert(table).values(**row))
        inserted_ids.append(int(single_result.inserted_primary_key[0]))
    conn.commit()
    return inserted_ids


def record_run_start(conn: Connection, input_dir: Path, output_root: Path, model_name: str,
                     parameters: Dict[str, Any], command_line: Optional[str] = None) -> int:
    """Insert a new run row with status ``running`` and return its ID."""
    runs = _table("runs")
    result = conn.execute(
        insert(runs).values(
            input_dir=str(input_dir),
            output_root=str(output_root),
            model_name=model_name,
            parameters=parameters,
            status="running",
            start_time=_now(),
            command_line=command_line,
        )
    )
    conn.commit()
    return int(result.inserted_primary_key[0])


def record_run_end(conn: Connection, run_id: int, status: str, n_images: int,
                   n_descriptors: int, n_groups: int = 0, n_materialized: int = 0,
                   notes: Optional[str] = None) -> None:
    """Update a run row to mark it as finished.

    Parameters
    ----------
    conn: Connection
        Open database connection.
    run_id: int
        Primary key of the run to update.
    status: str
        Final status: ``"done"``, ``"no_faces"`` or ``"failed"``.
    n_images, n_descriptors, n_groups, n_materialized: int
        Counts for the run summary.
    notes: str, optional
        Additional notes to store (e.g. error messages).
    """
    runs = _table("runs")
    conn.execute(
        update(runs)
        .where(runs.c.id == run_id)
        .values(
            status=status,
            end_time=_now(),
            n_images=n_images,
            n_descriptors=n_descriptors,
            n_groups=n_groups,
            n_materialized=n_materialized,
            notes=notes,
        )
    )
    conn.commit()


def update_run_status(conn: Connection, run_id: int, status: str, notes: Optional[str] = None) -> None:
    """Update the status (and optionally notes) for a run."""
    runs = _table("runs")
    conn.execute(
        update(runs)
        .where(runs.c.id == run_id)
        .values(status=status, end_time=_now(), notes=notes)
    )
    conn.commit()


def insert_groups(conn: Connection, run_id: int, group_records: Iterable[Dict[str, Any]]) -> List[int]:
    """Insert groups and their members; return the group primary keys.

    Each record must include ``group_index``, ``label``, ``size``,
    ``materialized`` and ``members``, a list of dicts with
    ``descriptor_index``, ``image_path``, ``face_index`` and ``distance``.
    """
    records = list(group_records)
    group_rows = [
        dict(run_id=run_id, **{k: v for k, v in rec.items() if k != "members"})
        for rec in records
    ]
    group_ids = _bulk_insert_with_ids(conn, _table("groups"), group_rows)
    member_rows = [
        dict(run_id=run_id, group_id=group_id, **member)
        for group_id, rec in zip(group_ids, records)
        for member in rec["members"]
    ]
    _bulk_insert_with_ids(conn, _table("members"), member_rows)
    return group_ids


def get_run(conn: Connection, run_id: int) -> Optional[Dict[str, Any]]:
    """Retrieve a single run by ID as a dictionary, or ``None`` if not found."""
    runs = _table("runs")
    row = conn.execute(select(runs).where(runs.c.id == run_id)).mappings().first()
    return dict(row) if row else None


def list_groups(conn: Connection, run_id: int) -> List[Dict[str, Any]]:
    """Return the groups of a run in creation order."""
    groups = _table("groups")
    rows = conn.execute(
        select(groups).where(groups.c.run_id == run_id).order_by(groups.c.group_index)
    ).mappings().all()
    return [dict(row) for row in rows]


def list_members(conn: Connection, group_id: int) -> List[Dict[str, Any]]:
    members = _table("members")
    rows = conn.execute(
        select(members).where(members.c.group_id == group_id).order_by(members.c.descriptor_index)
    ).mappings().all()
    return [dict(row) for row in rows]
