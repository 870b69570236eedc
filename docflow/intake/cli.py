"""Operator commands for the upload side: register, retry, list and delete documents."""

import argparse
import mimetypes
import sys
from pathlib import Path

from docflow.config.settings import Settings
from docflow.database.connection import Database
from docflow.database.models import DocumentRecord
from docflow.database.repositories.document_repository import DocumentRepository
from docflow.intake.service import DocumentIntake, IntakeError
from docflow.logging.logger import Log
from docflow.messaging.channel import EventChannel, build_connection
from docflow.pipeline.exceptions import DocumentNotFoundError


def _describe(document: DocumentRecord) -> str:
    line = f"{document.id}  {document.status.value:<10}  {document.filename}"
    if document.validation_errors:
        line += f"  [{document.validation_errors}]"
    return line


def cmd_register(args: argparse.Namespace, intake: DocumentIntake, settings: Settings) -> int:
    path = Path(settings.upload_destination) / args.source_ref
    if not path.is_file():
        print(
            f"error: {args.source_ref} not found under {settings.upload_destination}",
            file=sys.stderr,
        )
        return 1
    mime_type = args.mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    document = intake.register(
        filename=args.filename or path.name,
        source_ref=args.source_ref,
        mime_type=mime_type,
        size_bytes=path.stat().st_size,
    )
    print(_describe(document))
    return 0


def cmd_retry(args: argparse.Namespace, intake: DocumentIntake, _settings: Settings) -> int:
    document = intake.retry(args.document_id)
    print(f"Processing requested again for {document.id}")
    return 0


def cmd_list(_args: argparse.Namespace, intake: DocumentIntake, _settings: Settings) -> int:
    for document in intake.list_documents():
        print(_describe(document))
    return 0


def cmd_delete(args: argparse.Namespace, intake: DocumentIntake, _settings: Settings) -> int:
    intake.delete(args.document_id)
    print(f"Deleted {args.document_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Document intake toolkit")
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="Register a stored upload and request processing")
    register.add_argument("source_ref", help="File path relative to UPLOAD_DESTINATION")
    register.add_argument("--filename", help="Original filename (defaults to the stored name)")
    register.add_argument("--mime-type", help="MIME type (guessed from the extension if omitted)")
    register.set_defaults(func=cmd_register)

    retry = sub.add_parser("retry", help="Re-request processing for a failed or stuck document")
    retry.add_argument("document_id", help="Document UUID")
    retry.set_defaults(func=cmd_retry)

    listing = sub.add_parser("list", help="List documents, newest first")
    listing.set_defaults(func=cmd_list)

    delete = sub.add_parser("delete", help="Delete a document record")
    delete.add_argument("document_id", help="Document UUID")
    delete.set_defaults(func=cmd_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse -> open pool and broker connection -> run one command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    database = Database(settings)
    database.open()
    channel = EventChannel(build_connection(settings), settings)
    try:
        intake = DocumentIntake(DocumentRepository(database), channel, settings)
        return args.func(args, intake, settings)
    except (IntakeError, DocumentNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        channel.close()
        database.close()


if __name__ == "__main__":
    raise SystemExit(main())
