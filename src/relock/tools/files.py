"""Repository-scoped file access used by the reconciliation engine."""

from __future__ import annotations

from pathlib import Path


class LocalFiles:
    """Read and write files relative to a repository root."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def resolve(self, relative: str) -> Path:
        target = (self.root / relative).resolve()
        try:
            target.relative_to(self.root)
        except ValueError as error:
            raise ValueError(f"Path escapes repository root: {relative}") from error
        return target

    def read_bytes(self, relative: str) -> bytes | None:
        target = self.resolve(relative)
        if not target.is_file():
            return None
        return target.read_bytes()

    def read_text(self, relative: str) -> str | None:
        data = self.read_bytes(relative)
        if data is None:
            return None
        return data.decode("utf-8")

    def write(self, relative: str, data: bytes | str) -> None:
        target = self.resolve(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = data.encode("utf-8") if isinstance(data, str) else data
        with target.open("wb") as handle:
            handle.write(payload)

    def ensure_dir(self, path: Path | str) -> Path:
        directory = Path(path)
        directory.mkdir(parents=True, exist_ok=True)
        return directory


__all__ = ["LocalFiles"]
