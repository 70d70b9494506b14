"""
applications/store.py -- SQLAlchemy Core persistence for scholarship applications.

Pattern: Repository + Data Mapper, same as auth/store.py. Shares the
credential store's database URL but owns its own table.

documents is a JSON object serialized as text (file name -> URL).

Usage:
    store = ApplicationStore()
    app_id = store.create(ApplicationRecord(student_no="2024-0001", scholarship_type="Academic"))
    store.set_documents(app_id, {"grades.pdf": "https://..."})
    store.update_status(app_id, "approved")
    store.close()
"""

import json
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine
from sqlalchemy.engine import Engine

from applications.models import ApplicationRecord, ApplicationStatus
from auth.store import to_iso, utc_now
from core.config import get_settings

_metadata = MetaData()

_applications = Table(
    "applications",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("student_no", String(128), nullable=False, index=True),
    Column("scholarship_type", String(200), nullable=False),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("documents", Text),  # JSON object serialized as text
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

STATUSES: frozenset[str] = frozenset(s.value for s in ApplicationStatus)


class ApplicationStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        _metadata.create_all(self.engine)

    def create(self, record: ApplicationRecord) -> int:
        """Insert a new application and return its id. Sets id and timestamps on `record`."""
        now = to_iso(utc_now())
        with self.engine.connect() as conn:
            result = conn.execute(
                _applications.insert().values(
                    student_no=record.student_no,
                    scholarship_type=record.scholarship_type,
                    status=record.status,
                    documents=json.dumps(record.documents),
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        record.id = result.inserted_primary_key[0]
        record.created_at = record.updated_at = now
        return record.id

    def get(self, app_id: int) -> Optional[ApplicationRecord]:
        with self.engine.connect() as conn:
            row = conn.execute(_applications.select().where(_applications.c.id == app_id)).fetchone()
        return _row_to_application(row) if row is not None else None

    def list_for_student(self, student_no: str) -> list[ApplicationRecord]:
        """Return one student's applications, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _applications.select()
                .where(_applications.c.student_no == student_no)
                .order_by(_applications.c.id.desc())
            ).fetchall()
        return [_row_to_application(r) for r in rows]

    def list_all(self, status: Optional[str] = None) -> list[ApplicationRecord]:
        query = _applications.select().order_by(_applications.c.id.desc())
        if status:
            query = query.where(_applications.c.status == status)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_application(r) for r in rows]

    def set_documents(self, app_id: int, documents: dict[str, str]) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _applications.update()
                .where(_applications.c.id == app_id)
                .values(documents=json.dumps(documents), updated_at=to_iso(utc_now()))
            )
            conn.commit()
        return result.rowcount > 0

    def update_status(self, app_id: int, status: str) -> bool:
        """Set the status. Raises ValueError for an unknown status. Returns False if no such application."""
        if status not in STATUSES:
            raise ValueError(f"Unknown application status: {status!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _applications.update()
                .where(_applications.c.id == app_id)
                .values(status=status, updated_at=to_iso(utc_now()))
            )
            conn.commit()
        return result.rowcount > 0

    def delete(self, app_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_applications.delete().where(_applications.c.id == app_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_application(row) -> ApplicationRecord:
    return ApplicationRecord(
        id=row.id,
        student_no=row.student_no,
        scholarship_type=row.scholarship_type,
        status=row.status,
        documents=json.loads(row.documents) if row.documents else {},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
