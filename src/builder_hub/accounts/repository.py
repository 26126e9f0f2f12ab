"""Persistence for registered AWS accounts.

Rows never leave this module: every read returns a detached
``AwsAccountRecord`` and every write takes one. Nothing is stored until
``save`` is called.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, Integer, String, select
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker

from ..core.database import Base
from .models import AwsAccountRecord, AwsAccountStatus, now_utc


class AwsAccountRow(Base):
    __tablename__ = "aws_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(12), nullable=False, unique=True, index=True)
    account_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role_arn: Mapped[str] = mapped_column(String(2048), nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(1224), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AwsAccountStatus.PENDING.value, index=True)
    last_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: AwsAccountRow) -> AwsAccountRecord:
    return AwsAccountRecord(
        id=row.id,
        account_id=row.account_id,
        account_name=row.account_name,
        role_arn=row.role_arn,
        external_id=row.external_id,
        description=row.description,
        status=AwsAccountStatus(row.status),
        last_verified_at=_as_utc(row.last_verified_at),
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _copy_into(row: AwsAccountRow, record: AwsAccountRecord) -> None:
    row.account_id = record.account_id
    row.account_name = record.account_name
    row.role_arn = record.role_arn
    row.external_id = record.external_id
    row.description = record.description
    row.status = record.status.value
    row.last_verified_at = record.last_verified_at
    row.created_at = record.created_at
    row.updated_at = record.updated_at


class AwsAccountRepository:
    """Stores ``AwsAccountRecord`` values in the ``aws_accounts`` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, pk: int) -> Optional[AwsAccountRecord]:
        with self._session_factory() as session:
            row = session.get(AwsAccountRow, pk)
            return _to_record(row) if row else None

    def get_by_account_id(self, account_id: str) -> Optional[AwsAccountRecord]:
        with self._session_factory() as session:
            row = session.scalars(
                select(AwsAccountRow).where(AwsAccountRow.account_id == account_id)
            ).first()
            return _to_record(row) if row else None

    def exists_by_account_id(self, account_id: str) -> bool:
        return self.get_by_account_id(account_id) is not None

    def list_all(self) -> List[AwsAccountRecord]:
        with self._session_factory() as session:
            rows = session.scalars(select(AwsAccountRow).order_by(AwsAccountRow.id)).all()
            return [_to_record(row) for row in rows]

    def list_by_status(self, status: AwsAccountStatus) -> List[AwsAccountRecord]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(AwsAccountRow)
                .where(AwsAccountRow.status == status.value)
                .order_by(AwsAccountRow.id)
            ).all()
            return [_to_record(row) for row in rows]

    def save(self, record: AwsAccountRecord) -> AwsAccountRecord:
        """Insert or update a record and return the stored copy.

        ``updated_at`` is stamped on every save; a new record also gets its
        surrogate ``id`` assigned on the returned copy and on ``record``.
        """
        record.updated_at = now_utc()
        with self._session_factory() as session:
            row = session.get(AwsAccountRow, record.id) if record.id is not None else None
            if row is None:
                row = AwsAccountRow()
                session.add(row)
            _copy_into(row, record)
            session.commit()
            record.id = row.id
            return _to_record(row)

    def delete(self, pk: int) -> bool:
        with self._session_factory() as session:
            row = session.get(AwsAccountRow, pk)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True
