"""
SQL consent storage
SQLAlchemy-backed persistence keyed by signed tokens, with reporting helpers
"""

import json
from contextlib import contextmanager
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, Iterator, List, Optional
import structlog
from sqlalchemy import create_engine, event, func, Column, Integer, String, DateTime, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from ..constants import StorageDefaults
from ..crypto.hash import constant_time_equals
from ..consent.models import ConsentRecord, parse_record
from ..exceptions import StorageBackendError
from .base import TokenSigner

logger = structlog.get_logger(__name__)

Base = declarative_base()


class ConsentRowDB(Base):
    """SQLAlchemy model for stored consent records"""
    __tablename__ = StorageDefaults.SQL_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(255), nullable=False, unique=True, index=True)
    token_hash = Column(String(64), nullable=False)
    consent_id = Column(String(64), nullable=False, index=True)
    user_identifier = Column(String(255), index=True)

    accepted_categories = Column(Text, nullable=False)  # JSON list
    rejected_categories = Column(Text, nullable=False)  # JSON list
    consent_method = Column(String(64))

    ip_address = Column(String(64))
    user_agent = Column(Text)
    page_url = Column(Text)
    referrer = Column(Text)

    consent_metadata = Column("metadata", Text)  # JSON string
    previous_consent = Column(Text)  # JSON string

    timestamp = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


def _naive_utc(value: datetime) -> datetime:
    return value.astimezone(UTC).replace(tzinfo=None)


def _loads(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except (json.JSONDecodeError, RecursionError):
        logger.warning("Invalid JSON column in consent row")
        return default


class SqlConsentStorage:
    """Database storage adapter for consent records"""

    self_contained = False
    backend_name = "sql"

    def __init__(
        self,
        database_url: Optional[str] = None,
        secret: Optional[str] = None,
        token_length: int = StorageDefaults.TOKEN_LENGTH_BYTES,
    ):
        self.database_url = database_url or StorageDefaults.DATABASE_URL
        self.signer = TokenSigner(secret, token_length)
        self.engine = create_engine(self.database_url)

        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_wal)

        self.SessionLocal = sessionmaker(bind=self.engine)

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.error("Failed to initialise consent table", error=str(e))
            raise StorageBackendError("initialise", self.backend_name, reason=str(e)) from e

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with self.SessionLocal() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Consent storage operation failed", operation=operation, error=str(e))
            raise StorageBackendError(operation, self.backend_name, reason=str(e)) from e

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _apply(self, row: ConsentRowDB, record: ConsentRecord) -> None:
        data = record.model_dump(mode="json", include={"metadata", "previous_consent"})
        row.consent_id = record.consent_id
        row.user_identifier = record.user_identifier
        row.accepted_categories = json.dumps(record.accepted_categories)
        row.rejected_categories = json.dumps(record.rejected_categories)
        row.consent_method = record.consent_method
        row.ip_address = record.ip_address
        row.user_agent = record.user_agent
        row.page_url = record.page_url
        row.referrer = record.referrer
        row.consent_metadata = json.dumps(data["metadata"])
        row.previous_consent = json.dumps(data["previous_consent"]) if data["previous_consent"] else None
        row.timestamp = _naive_utc(record.timestamp)

    def _row_data(self, row: ConsentRowDB) -> Dict[str, Any]:
        return {
            "consent_id": row.consent_id,
            "user_identifier": row.user_identifier,
            "accepted_categories": _loads(row.accepted_categories, []),
            "rejected_categories": _loads(row.rejected_categories, []),
            "consent_method": row.consent_method or "banner",
            "ip_address": row.ip_address or "",
            "user_agent": row.user_agent or "",
            "page_url": row.page_url or "",
            "referrer": row.referrer or "",
            "metadata": _loads(row.consent_metadata, {}),
            "previous_consent": _loads(row.previous_consent, None),
            "timestamp": row.timestamp or row.created_at,
        }

    def _from_row(self, row: Optional[ConsentRowDB]) -> Optional[ConsentRecord]:
        if row is None:
            return None
        return parse_record(self._row_data(row))

    # ------------------------------------------------------------------
    # Storage contract
    # ------------------------------------------------------------------

    def store(self, record: ConsentRecord) -> str:
        token = self.generate_token()
        now = _naive_utc(datetime.now(UTC))
        with self._session("store") as session:
            row = ConsentRowDB(
                token=token,
                token_hash=self.signer.hash_token(token),
                created_at=now,
                updated_at=now,
            )
            self._apply(row, record)
            session.add(row)
            session.commit()

        logger.info("Stored consent record", consent_id=record.consent_id,
                    method=record.consent_method)
        return token

    def retrieve(self, token: str) -> Optional[ConsentRecord]:
        if not self.signer.verify(token):
            return None
        with self._session("retrieve") as session:
            row = session.query(ConsentRowDB).filter_by(token=token).first()
            if row is None:
                return None
            if not constant_time_equals(row.token_hash, self.signer.hash_token(token)):
                logger.warning("Consent row failed token hash check", consent_id=row.consent_id)
                return None
            return self._from_row(row)

    def delete(self, token: str) -> bool:
        with self._session("delete") as session:
            deleted = session.query(ConsentRowDB).filter_by(token=token).delete()
            session.commit()
        return deleted > 0

    def exists(self, token: str) -> bool:
        with self._session("exists") as session:
            return session.query(ConsentRowDB.id).filter_by(token=token).first() is not None

    def update(self, token: str, record: ConsentRecord) -> bool:
        with self._session("update") as session:
            row = session.query(ConsentRowDB).filter_by(token=token).first()
            if row is None:
                logger.warning("Consent row not found for update", consent_id=record.consent_id)
                return False
            self._apply(row, record)
            row.updated_at = _naive_utc(datetime.now(UTC))
            session.commit()

        logger.info("Updated consent record", consent_id=record.consent_id)
        return True

    def generate_token(self) -> str:
        return self.signer.generate()

    # ------------------------------------------------------------------
    # Queries and maintenance
    # ------------------------------------------------------------------

    def find_by_user_identifier(self, user_identifier: str) -> Optional[ConsentRecord]:
        """Latest record stored for an account reference"""
        with self._session("find_by_user_identifier") as session:
            row = (session.query(ConsentRowDB)
                   .filter_by(user_identifier=user_identifier)
                   .order_by(ConsentRowDB.created_at.desc(), ConsentRowDB.id.desc())
                   .first())
            return self._from_row(row)

    def find_by_consent_id(self, consent_id: str) -> Optional[ConsentRecord]:
        with self._session("find_by_consent_id") as session:
            row = (session.query(ConsentRowDB)
                   .filter_by(consent_id=consent_id)
                   .order_by(ConsentRowDB.created_at.desc(), ConsentRowDB.id.desc())
                   .first())
            return self._from_row(row)

    def list_records(self, limit: int = 100, offset: int = 0) -> List[ConsentRecord]:
        with self._session("list_records") as session:
            rows = (session.query(ConsentRowDB)
                    .order_by(ConsentRowDB.created_at.desc(), ConsentRowDB.id.desc())
                    .limit(limit)
                    .offset(offset)
                    .all())
            records = [self._from_row(row) for row in rows]
        return [record for record in records if record is not None]

    def count(self) -> int:
        with self._session("count") as session:
            return session.query(func.count(ConsentRowDB.id)).scalar() or 0

    def statistics(self, days: int = 30) -> Dict[str, Any]:
        """
        Aggregate consent activity.

        Returns:
            ``{"total": int, "by_method": {method: n}, "by_date": {YYYY-MM-DD: n}}``
            where by_date covers the last ``days`` days.
        """
        since = _naive_utc(datetime.now(UTC) - timedelta(days=days))
        day = func.date(ConsentRowDB.created_at)

        with self._session("statistics") as session:
            total = session.query(func.count(ConsentRowDB.id)).scalar() or 0
            by_method = (session.query(ConsentRowDB.consent_method, func.count(ConsentRowDB.id))
                         .group_by(ConsentRowDB.consent_method)
                         .all())
            by_date = (session.query(day, func.count(ConsentRowDB.id))
                       .filter(ConsentRowDB.created_at >= since)
                       .group_by(day)
                       .order_by(day)
                       .all())

        return {
            "total": total,
            "by_method": {method or "unknown": count for method, count in by_method},
            "by_date": {str(date): count for date, count in by_date},
        }

    def cleanup(self, days_old: int = 365) -> int:
        """Delete rows created more than ``days_old`` days ago"""
        cutoff = _naive_utc(datetime.now(UTC) - timedelta(days=days_old))
        with self._session("cleanup") as session:
            removed = session.query(ConsentRowDB).filter(ConsentRowDB.created_at < cutoff).delete()
            session.commit()

        if removed:
            logger.info("Cleaned up consent rows", removed=removed, days_old=days_old)
        return removed

    def export_all(self) -> List[Dict[str, Any]]:
        """Every stored row as a dict, without token material"""
        with self._session("export_all") as session:
            rows = session.query(ConsentRowDB).order_by(ConsentRowDB.created_at, ConsentRowDB.id).all()
            exported = []
            for row in rows:
                data = self._row_data(row)
                data["id"] = row.id
                data["timestamp"] = row.timestamp.isoformat() if row.timestamp else None
                data["created_at"] = row.created_at.isoformat()
                data["updated_at"] = row.updated_at.isoformat()
                exported.append(data)
        return exported


def _enable_wal(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()
