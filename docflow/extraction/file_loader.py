from pathlib import Path

from docflow.extraction.exceptions import FileReadError


class FileLoader:
    """Resolves a source reference under the upload root and reads its bytes."""

    def __init__(self, files_root: Path) -> None:
        self._files_root = files_root.resolve()

    def load(self, source_ref: str) -> bytes:
        """Read document bytes from disk.

        Raises:
            FileReadError: if the reference escapes the root, is missing or unreadable.
        """
        path = self._resolve_path(source_ref)
        if not path.is_file():
            raise FileReadError(f"File not found: {path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise FileReadError(f"Cannot read {path}: {exc}") from exc

    def _resolve_path(self, source_ref: str) -> Path:
        path = (self._files_root / source_ref).resolve()
        if not path.is_relative_to(self._files_root):
            raise FileReadError(f"Source reference '{source_ref}' is outside the upload root")
        return path
