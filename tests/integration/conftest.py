import os
from collections.abc import Generator

import pytest

from docflow.config.settings import Settings
from docflow.database.connection import Database
from docflow.database.models import DocumentRecord
from docflow.database.repositories.document_repository import DocumentRepository

_CREATE_DOCUMENTS = """
CREATE TABLE IF NOT EXISTS documents (
    id uuid PRIMARY KEY,
    filename text NOT NULL,
    source_ref text NOT NULL,
    status text NOT NULL DEFAULT 'uploaded',
    extracted_text text,
    extraction_confidence double precision,
    detected_language varchar(5),
    validation_errors text,
    created_at timestamptz NOT NULL DEFAULT NOW(),
    updated_at timestamptz NOT NULL DEFAULT NOW()
)
"""


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "docflow_test")
    os.environ.setdefault("DB_CONNECT_TIMEOUT_SECONDS", "5")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def database(test_settings: Settings) -> Generator[Database, None, None]:
    db = Database(test_settings)
    try:
        db.open()
        with db.connection() as conn:
            conn.execute(_CREATE_DOCUMENTS)
            conn.commit()
    except Exception as e:
        db.close()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to point at one.")
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def doc_repo(database: Database) -> DocumentRepository:
    return DocumentRepository(database)


@pytest.fixture
def integration_cleanup(database: Database) -> Generator[list[str], None, None]:
    cleanup: list[str] = []
    yield cleanup
    if not cleanup:
        return
    with database.connection() as conn:
        with conn.cursor() as cur:
            for document_id in cleanup:
                cur.execute("DELETE FROM documents WHERE id = %s", (document_id,))
        conn.commit()


@pytest.fixture
def seed_document(
    doc_repo: DocumentRepository,
    integration_cleanup: list[str],
) -> DocumentRecord:
    document = doc_repo.create(filename="invoice.pdf", source_ref="invoice.pdf")
    integration_cleanup.append(document.id)
    return document
