"""
Database Handler Module.

SQLite implementation of ``PersistenceGateway``.

Features:
    - Automatic schema creation (invoices + extraction metadata)
    - Connection per operation, writes serialized by a lock
    - Soft delete through an ``is_deleted`` flag
    - Case-insensitive partial search on party name

Author: ML Engineering Team
"""

import sqlite3
import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union
from uuid import UUID

from invoice_pipeline.records import (
    ExtractionMetadataRecord,
    ExtractionStatus,
    InvoiceRecord,
    InvoiceStatus,
)
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import ensure_directory
from invoice_pipeline.utils.exceptions import (
    DatabaseError,
    ExtractionNotFoundError,
    InvoiceNotFoundError,
)
from .gateway import PersistenceGateway

# Initialize module logger
logger = get_logger(__name__)

INVOICE_TABLE = "invoices"
EXTRACTION_TABLE = "extraction_metadata"

INVOICE_COLUMNS = (
    "invoice_key", "invoice_number", "amount", "party_name", "party_address",
    "currency", "status", "source_file_name", "created_at", "updated_at", "is_deleted",
)
EXTRACTION_COLUMNS = (
    "extraction_key", "invoice_key", "source_file_name", "extraction_timestamp",
    "status", "confidence_score", "engine_identifier", "raw_extraction_payload",
    "error_message", "created_at", "is_deleted",
)

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {INVOICE_TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_key TEXT NOT NULL UNIQUE,
    invoice_number TEXT NOT NULL,
    amount TEXT NOT NULL,
    party_name TEXT NOT NULL,
    party_address TEXT,
    currency TEXT NOT NULL DEFAULT 'USD',
    status TEXT NOT NULL,
    source_file_name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    is_deleted INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_invoice_number ON {INVOICE_TABLE} (invoice_number);
CREATE INDEX IF NOT EXISTS idx_invoice_status ON {INVOICE_TABLE} (status);

CREATE TABLE IF NOT EXISTS {EXTRACTION_TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    extraction_key TEXT NOT NULL UNIQUE,
    invoice_key TEXT REFERENCES {INVOICE_TABLE} (invoice_key),
    source_file_name TEXT NOT NULL,
    extraction_timestamp TEXT NOT NULL,
    status TEXT NOT NULL,
    confidence_score REAL,
    engine_identifier TEXT,
    raw_extraction_payload TEXT,
    error_message TEXT,
    created_at TEXT NOT NULL,
    is_deleted INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_extraction_invoice ON {EXTRACTION_TABLE} (invoice_key);
CREATE INDEX IF NOT EXISTS idx_extraction_status ON {EXTRACTION_TABLE} (status);
"""


def _escape_like(text: str) -> str:
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _uuid_or_none(value: Optional[str]) -> Optional[UUID]:
    return UUID(value) if value else None


class SqlitePersistenceGateway(PersistenceGateway):
    """
    Stores invoice and extraction records in a SQLite database.

    Attributes:
        db_path: Path to the SQLite database file

    Example:
        >>> db = SqlitePersistenceGateway("outputs/invoice_pipeline.db")
        >>> db.save_invoice(record)
        >>> db.search_invoices_by_party_name("acme")
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        """
        Initialize the gateway and create tables if needed.

        Args:
            db_path: Path to database file.
        """
        self.db_path = Path(db_path)
        self._write_lock = threading.Lock()

        ensure_directory(self.db_path.parent)
        self._create_tables()

        logger.info(f"SqlitePersistenceGateway initialized (db: {self.db_path})")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_tables(self) -> None:
        try:
            conn = self._connect()
            try:
                conn.executescript(SCHEMA)
                conn.commit()
            finally:
                conn.close()
            logger.debug("Database tables created/verified")
        except sqlite3.Error as e:
            raise DatabaseError("create tables", str(e)) from e

    def _write(self, operation: str, sql: str, params: Sequence[Any]) -> int:
        """Run one write statement under the lock; return rows affected."""
        with self._write_lock:
            try:
                conn = self._connect()
                try:
                    cursor = conn.execute(sql, params)
                    conn.commit()
                    return cursor.rowcount
                finally:
                    conn.close()
            except sqlite3.Error as e:
                logger.error(f"{operation} failed: {e}")
                raise DatabaseError(operation, str(e)) from e

    def _query(self, operation: str, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            conn = self._connect()
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"{operation} failed: {e}")
            raise DatabaseError(operation, str(e)) from e

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _invoice_values(record: InvoiceRecord) -> tuple:
        return (
            str(record.invoice_key),
            record.invoice_number,
            str(record.amount),
            record.party_name,
            record.party_address,
            record.currency,
            record.status.value,
            record.source_file_name,
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
            1 if record.is_deleted else 0,
        )

    @staticmethod
    def _row_to_invoice(row: sqlite3.Row) -> InvoiceRecord:
        return InvoiceRecord(
            invoice_key=UUID(row["invoice_key"]),
            invoice_number=row["invoice_number"],
            amount=Decimal(row["amount"]),
            party_name=row["party_name"],
            party_address=row["party_address"],
            currency=row["currency"],
            status=InvoiceStatus(row["status"]),
            source_file_name=row["source_file_name"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            is_deleted=bool(row["is_deleted"]),
        )

    @staticmethod
    def _extraction_values(record: ExtractionMetadataRecord) -> tuple:
        return (
            str(record.extraction_key),
            str(record.invoice_key) if record.invoice_key else None,
            record.source_file_name,
            record.extraction_timestamp.isoformat(),
            record.status.value,
            record.confidence_score,
            record.engine_identifier,
            record.raw_extraction_payload,
            record.error_message,
            record.created_at.isoformat(),
            1 if record.is_deleted else 0,
        )

    @staticmethod
    def _row_to_extraction(row: sqlite3.Row) -> ExtractionMetadataRecord:
        return ExtractionMetadataRecord(
            extraction_key=UUID(row["extraction_key"]),
            invoice_key=_uuid_or_none(row["invoice_key"]),
            source_file_name=row["source_file_name"],
            extraction_timestamp=datetime.fromisoformat(row["extraction_timestamp"]),
            status=ExtractionStatus(row["status"]),
            confidence_score=row["confidence_score"],
            engine_identifier=row["engine_identifier"],
            raw_extraction_payload=row["raw_extraction_payload"],
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            is_deleted=bool(row["is_deleted"]),
        )

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def save_invoice(self, record: InvoiceRecord) -> InvoiceRecord:
        placeholders = ", ".join("?" for _ in INVOICE_COLUMNS)
        self._write(
            "save_invoice",
            f"INSERT INTO {INVOICE_TABLE} ({', '.join(INVOICE_COLUMNS)}) VALUES ({placeholders})",
            self._invoice_values(record),
        )
        logger.debug(f"Inserted invoice {record.invoice_key} ({record.invoice_number})")
        return record

    def update_invoice(self, record: InvoiceRecord) -> InvoiceRecord:
        assignments = ", ".join(f"{column} = ?" for column in INVOICE_COLUMNS[1:])
        values = self._invoice_values(record)
        updated = self._write(
            "update_invoice",
            f"UPDATE {INVOICE_TABLE} SET {assignments} WHERE invoice_key = ?",
            values[1:] + (values[0],),
        )
        if updated == 0:
            raise InvoiceNotFoundError(record.invoice_key)
        return record

    def find_invoice(self, invoice_key: UUID, include_deleted: bool = False) -> Optional[InvoiceRecord]:
        sql = f"SELECT * FROM {INVOICE_TABLE} WHERE invoice_key = ?"
        if not include_deleted:
            sql += " AND is_deleted = 0"
        rows = self._query("find_invoice", sql, (str(invoice_key),))
        return self._row_to_invoice(rows[0]) if rows else None

    def _active_invoices(self, operation: str, where: str = "", params: Sequence[Any] = ()) -> List[InvoiceRecord]:
        sql = f"SELECT * FROM {INVOICE_TABLE} WHERE is_deleted = 0"
        if where:
            sql += f" AND {where}"
        sql += " ORDER BY created_at DESC, id DESC"
        return [self._row_to_invoice(row) for row in self._query(operation, sql, params)]

    def find_all_active_invoices(self) -> List[InvoiceRecord]:
        return self._active_invoices("find_all_active_invoices")

    def find_invoice_by_number(self, invoice_number: str) -> Optional[InvoiceRecord]:
        records = self._active_invoices(
            "find_invoice_by_number", "invoice_number = ?", (invoice_number,)
        )
        return records[0] if records else None

    def search_invoices_by_party_name(self, fragment: str) -> List[InvoiceRecord]:
        pattern = f"%{_escape_like((fragment or '').lower())}%"
        return self._active_invoices(
            "search_invoices_by_party_name",
            "LOWER(party_name) LIKE ? ESCAPE '\\'",
            (pattern,),
        )

    def find_invoices_by_status(self, status: InvoiceStatus) -> List[InvoiceRecord]:
        return self._active_invoices(
            "find_invoices_by_status", "status = ?", (InvoiceStatus(status).value,)
        )

    def _set_invoice_deleted(self, invoice_key: UUID, deleted: bool) -> bool:
        updated = self._write(
            "soft_delete_invoice" if deleted else "restore_invoice",
            f"UPDATE {INVOICE_TABLE} SET is_deleted = ?, updated_at = ? "
            f"WHERE invoice_key = ? AND is_deleted = ?",
            (1 if deleted else 0, datetime.now().isoformat(), str(invoice_key), 0 if deleted else 1),
        )
        return updated > 0

    def soft_delete_invoice(self, invoice_key: UUID) -> bool:
        deleted = self._set_invoice_deleted(invoice_key, True)
        if deleted:
            logger.info(f"Soft-deleted invoice {invoice_key}")
        return deleted

    def restore_invoice(self, invoice_key: UUID) -> bool:
        restored = self._set_invoice_deleted(invoice_key, False)
        if restored:
            logger.info(f"Restored invoice {invoice_key}")
        return restored

    # -------------------------------------------------------------------------
    # Extraction metadata
    # -------------------------------------------------------------------------

    def save_extraction(self, record: ExtractionMetadataRecord) -> ExtractionMetadataRecord:
        placeholders = ", ".join("?" for _ in EXTRACTION_COLUMNS)
        self._write(
            "save_extraction",
            f"INSERT INTO {EXTRACTION_TABLE} ({', '.join(EXTRACTION_COLUMNS)}) VALUES ({placeholders})",
            self._extraction_values(record),
        )
        return record

    def update_extraction(self, record: ExtractionMetadataRecord) -> ExtractionMetadataRecord:
        assignments = ", ".join(f"{column} = ?" for column in EXTRACTION_COLUMNS[1:])
        values = self._extraction_values(record)
        updated = self._write(
            "update_extraction",
            f"UPDATE {EXTRACTION_TABLE} SET {assignments} WHERE extraction_key = ?",
            values[1:] + (values[0],),
        )
        if updated == 0:
            raise ExtractionNotFoundError(record.extraction_key)
        return record

    def find_extraction(
        self, extraction_key: UUID, include_deleted: bool = False
    ) -> Optional[ExtractionMetadataRecord]:
        sql = f"SELECT * FROM {EXTRACTION_TABLE} WHERE extraction_key = ?"
        if not include_deleted:
            sql += " AND is_deleted = 0"
        rows = self._query("find_extraction", sql, (str(extraction_key),))
        return self._row_to_extraction(rows[0]) if rows else None

    def _active_extractions(
        self, operation: str, where: str = "", params: Sequence[Any] = ()
    ) -> List[ExtractionMetadataRecord]:
        sql = f"SELECT * FROM {EXTRACTION_TABLE} WHERE is_deleted = 0"
        if where:
            sql += f" AND {where}"
        sql += " ORDER BY extraction_timestamp DESC, id DESC"
        return [self._row_to_extraction(row) for row in self._query(operation, sql, params)]

    def find_extractions_by_invoice(self, invoice_key: UUID) -> List[ExtractionMetadataRecord]:
        return self._active_extractions(
            "find_extractions_by_invoice", "invoice_key = ?", (str(invoice_key),)
        )

    def find_extractions_by_status(self, status: ExtractionStatus) -> List[ExtractionMetadataRecord]:
        return self._active_extractions(
            "find_extractions_by_status", "status = ?", (ExtractionStatus(status).value,)
        )

    def find_all_active_extractions(self) -> List[ExtractionMetadataRecord]:
        return self._active_extractions("find_all_active_extractions")

    def find_low_confidence_extractions(self, threshold: float) -> List[ExtractionMetadataRecord]:
        return self._active_extractions(
            "find_low_confidence_extractions",
            "confidence_score IS NOT NULL AND confidence_score < ?",
            (threshold,),
        )

    def soft_delete_extraction(self, extraction_key: UUID) -> bool:
        updated = self._write(
            "soft_delete_extraction",
            f"UPDATE {EXTRACTION_TABLE} SET is_deleted = 1 "
            f"WHERE extraction_key = ? AND is_deleted = 0",
            (str(extraction_key),),
        )
        return updated > 0
