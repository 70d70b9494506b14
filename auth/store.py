"""
auth/store.py -- SQLAlchemy Core persistence layer for student accounts (the credential store).

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route and flow code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  email and student_no are UNIQUE at the database level. Flows pre-check both
  for friendly messages, but the constraint is what decides concurrent
  registrations: exactly one INSERT wins, the loser gets DuplicateKey.

Atomicity:
  Every state transition is a single conditional UPDATE. consume_code() and
  consume_token() only match rows that are still unverified and still hold the
  submitted value, so a code can be consumed at most once even under
  concurrent submission. There is no in-process locking.

Timestamps:
  ISO 8601 UTC strings with fixed microsecond precision. Fixed width means
  SQL string comparison orders them correctly (used for expiry checks).

Layer rule: no imports from api/, web/, identity/, notify/ or applications/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import PROFILE_FIELDS, UserRecord
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_students = Table(
    "students",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("student_no", String(128), nullable=False),  # join key, immutable
    Column("email", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="student"),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("verification_code", String(12)),
    Column("verification_token", String(128)),
    Column("code_expires_at", String(40)),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("middle_initial", String(10)),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("course", String(100)),
    Column("year_level", String(20)),
    Column("created_at", String(40), nullable=False),
    Column("verified_at", String(40)),
    Column("last_login_at", String(40)),
    UniqueConstraint("student_no", name="uq_students_student_no"),
    UniqueConstraint("email", name="uq_students_email"),
)

_CLEARED_VERIFICATION = {"verification_code": None, "verification_token": None, "code_expires_at": None}


class DuplicateKey(Exception):
    """Raised by insert() when a UNIQUE constraint rejects the row.

    `field` is "email", "student_no", or "unknown" when the driver message
    does not say which constraint failed.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"duplicate value for {field}")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _duplicate_field(exc: IntegrityError) -> str:
    # SQLite: "UNIQUE constraint failed: students.email"
    # PostgreSQL: 'duplicate key value violates unique constraint "uq_students_email"'
    message = str(exc.orig)
    if "student_no" in message:
        return "student_no"
    if "email" in message:
        return "email"
    return "unknown"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for UserRecord entities.

    Usage:
        store = UserStore()
        store.insert(UserRecord(student_no="2024-0001", email="a@x.com", hashed_password=hash_password("pw")))
        user = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and "mode=memory" not in db_url and ":memory:" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_students)).scalar()
        return result or 0

    def find_by_email(self, email: str) -> UserRecord | None:
        """Look up an account by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_students.select().where(_students.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_student_no(self, student_no: str) -> UserRecord | None:
        """Look up an account by join key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_students.select().where(_students.c.student_no == student_no)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[UserRecord]:
        """Return all accounts ordered by creation time. Operator use only."""
        with self.engine.connect() as conn:
            rows = conn.execute(_students.select().order_by(_students.c.created_at)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, record: UserRecord) -> None:
        """Insert a new account.

        Raises DuplicateKey if the email or student_no already exists. This is
        the authoritative uniqueness check; caller pre-checks only exist to
        produce field-specific messages without a round trip through here.
        """
        created_at = record.created_at or to_iso(utc_now())
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _students.insert().values(
                        student_no=record.student_no,
                        email=record.email,
                        hashed_password=record.hashed_password,
                        role=record.role,
                        is_verified=1 if record.is_verified else 0,
                        verification_code=record.verification_code,
                        verification_token=record.verification_token,
                        code_expires_at=record.code_expires_at,
                        first_name=record.first_name,
                        middle_initial=record.middle_initial,
                        last_name=record.last_name,
                        course=record.course,
                        year_level=record.year_level,
                        created_at=created_at,
                        verified_at=record.verified_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKey(_duplicate_field(exc)) from exc
        record.created_at = created_at

    def update_verification(self, email: str, code: str, token: str, expires_at: datetime) -> bool:
        """Arm a fresh code/token pair, replacing any prior one in the same UPDATE.

        Only matches unverified rows, so a verified account can never be
        re-armed. Returns False if the account is missing or already verified.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _students.update()
                .where((_students.c.email == email) & (_students.c.is_verified == 0))
                .values(verification_code=code, verification_token=token, code_expires_at=to_iso(expires_at))
            )
            conn.commit()
        return result.rowcount > 0

    def consume_code(self, email: str, code: str, now: datetime) -> bool:
        """Atomically verify the account if `code` is the live, unexpired code.

        Returns True only for the single call that performed the transition.
        """
        return self._consume(email, _students.c.verification_code == code, now)

    def consume_token(self, email: str, token: str, now: datetime) -> bool:
        """Same as consume_code() but matched against the link token."""
        return self._consume(email, _students.c.verification_token == token, now)

    def _consume(self, email: str, match, now: datetime) -> bool:
        now_iso = to_iso(now)
        with self.engine.connect() as conn:
            result = conn.execute(
                _students.update()
                .where(
                    (_students.c.email == email)
                    & (_students.c.is_verified == 0)
                    & match
                    & or_(_students.c.code_expires_at.is_(None), _students.c.code_expires_at >= now_iso)
                )
                .values(is_verified=1, verified_at=now_iso, **_CLEARED_VERIFICATION)
            )
            conn.commit()
        return result.rowcount > 0

    def purge_expired_code(self, email: str, now: datetime) -> bool:
        """Clear an expired code/token so the stale value cannot be replayed later."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _students.update()
                .where(
                    (_students.c.email == email)
                    & (_students.c.is_verified == 0)
                    & (_students.c.code_expires_at < to_iso(now))
                )
                .values(**_CLEARED_VERIFICATION)
            )
            conn.commit()
        return result.rowcount > 0

    def mark_verified(self, email: str, now: datetime | None = None) -> bool:
        """Set verified and clear code/token/expiry in one UPDATE.

        verified_at is only stamped on the first transition; calling this on an
        already-verified account changes nothing and returns False.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _students.update()
                .where((_students.c.email == email) & (_students.c.is_verified == 0))
                .values(is_verified=1, verified_at=to_iso(now or utc_now()), **_CLEARED_VERIFICATION)
            )
            conn.commit()
        return result.rowcount > 0

    def update_profile(self, student_no: str, /, **fields) -> bool:
        """Update profile fields only. Auth state and the join key are not writable here.

        Raises ValueError on any field outside PROFILE_FIELDS. Returns True if
        a row was updated.
        """
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Not profile fields: {sorted(unknown)!r}")
        if not fields:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(_students.update().where(_students.c.student_no == student_no).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, student_no: str) -> None:
        """Stamp the current UTC timestamp as last_login_at."""
        with self.engine.connect() as conn:
            conn.execute(
                _students.update().where(_students.c.student_no == student_no).values(last_login_at=to_iso(utc_now()))
            )
            conn.commit()

    def delete_by_email(self, email: str) -> bool:
        """Permanently delete an account. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_students.delete().where(_students.c.email == email))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        student_no=row.student_no,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        is_verified=bool(row.is_verified),
        verification_code=row.verification_code,
        verification_token=row.verification_token,
        code_expires_at=row.code_expires_at,
        first_name=row.first_name,
        middle_initial=row.middle_initial,
        last_name=row.last_name,
        course=row.course,
        year_level=row.year_level,
        created_at=row.created_at,
        verified_at=row.verified_at,
        last_login_at=row.last_login_at,
    )
