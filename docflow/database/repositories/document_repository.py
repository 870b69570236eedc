import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.rows import dict_row

from docflow.database.connection import Database
from docflow.database.models import DocumentRecord, DocumentStatus
from docflow.extraction.models import ExtractionResult
from docflow.pipeline.exceptions import DocumentNotFoundError, StoreUnavailableError

_COLUMNS = """
    id, filename, source_ref, status,
    extracted_text, extraction_confidence, detected_language,
    validation_errors, created_at, updated_at
"""


@contextmanager
def _store_errors(action: str) -> Generator[None, None, None]:
    """Translate driver and pool failures into StoreUnavailableError."""
    try:
        yield
    except psycopg.Error as exc:
        raise StoreUnavailableError(f"Document store failed to {action}: {exc}") from exc


def _require_uuid(document_id: str) -> str:
    try:
        return str(uuid.UUID(str(document_id)))
    except ValueError:
        raise DocumentNotFoundError(f"Document {document_id} not found") from None


def _to_record(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=str(row["id"]),
        filename=row["filename"],
        source_ref=row["source_ref"],
        status=DocumentStatus(row["status"]),
        extracted_text=row["extracted_text"],
        extraction_confidence=row["extraction_confidence"],
        detected_language=row["detected_language"],
        validation_errors=row["validation_errors"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class DocumentRepository:
    """Database operations for the documents table.

    Every write is a single UPDATE ... RETURNING statement committed on its
    own, so readers never observe a partially applied field set.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    def create(self, filename: str, source_ref: str) -> DocumentRecord:
        """Insert a new record in the UPLOADED state."""
        with _store_errors("create document"), self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO documents (id, filename, source_ref, status)
                    VALUES (%s, %s, %s, %s)
                    RETURNING {_COLUMNS}
                    """,
                    (str(uuid.uuid4()), filename, source_ref, DocumentStatus.UPLOADED.value),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise StoreUnavailableError("Document store returned no row for insert")
        return _to_record(row)

    def find_by_id(self, document_id: str) -> DocumentRecord:
        """Find a document by ID.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
            StoreUnavailableError: if the store cannot be queried.
        """
        key = _require_uuid(document_id)
        with _store_errors(f"load document {document_id}"), self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM documents WHERE id = %s", (key,))
                row = cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _to_record(row)

    def list_all(self) -> list[DocumentRecord]:
        """Return all documents, newest first."""
        with _store_errors("list documents"), self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM documents ORDER BY created_at DESC")
                rows = cur.fetchall()
        return [_to_record(row) for row in rows]

    def mark_processing(self, document_id: str) -> DocumentRecord:
        """Enter PROCESSING. Re-applying it is a no-op apart from updated_at."""
        return self._update(
            document_id,
            """
            UPDATE documents
            SET status = %s, validation_errors = NULL, updated_at = NOW()
            WHERE id = %s
            """,
            (DocumentStatus.PROCESSING.value,),
        )

    def save_extraction(self, document_id: str, result: ExtractionResult) -> DocumentRecord:
        """Persist the extraction triple together with a provisional VALIDATED status."""
        return self._update(
            document_id,
            """
            UPDATE documents
            SET extracted_text = %s,
                extraction_confidence = %s,
                detected_language = %s,
                status = %s,
                validation_errors = NULL,
                updated_at = NOW()
            WHERE id = %s
            """,
            (result.text, result.confidence, result.language, DocumentStatus.VALIDATED.value),
        )

    def mark_validated(self, document_id: str) -> DocumentRecord:
        return self._update(
            document_id,
            """
            UPDATE documents
            SET status = %s, validation_errors = NULL, updated_at = NOW()
            WHERE id = %s
            """,
            (DocumentStatus.VALIDATED.value,),
        )

    def mark_failed(self, document_id: str, errors: str) -> DocumentRecord:
        return self._update(
            document_id,
            """
            UPDATE documents
            SET status = %s, validation_errors = %s, updated_at = NOW()
            WHERE id = %s
            """,
            (DocumentStatus.FAILED.value, errors),
        )

    def delete(self, document_id: str) -> None:
        """Remove a record. Only called out of band, never by the pipeline.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        key = _require_uuid(document_id)
        with _store_errors(f"delete document {document_id}"), self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM documents WHERE id = %s", (key,))
                deleted = cur.rowcount
            conn.commit()

        if deleted == 0:
            raise DocumentNotFoundError(f"Document {document_id} not found")

    def _update(
        self,
        document_id: str,
        statement: str,
        params: tuple[Any, ...],
    ) -> DocumentRecord:
        key = _require_uuid(document_id)
        with _store_errors(f"update document {document_id}"), self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"{statement} RETURNING {_COLUMNS}", (*params, key))
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _to_record(row)
