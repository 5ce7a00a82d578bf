"""Minimal git helpers
The helpers below provide just enough structure to open a repository and
report which paths the working tree changed relative to ``HEAD``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol, Sequence, Set

import subprocess


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


@dataclass(frozen=True, slots=True)
class RepoStatus:
    """Working tree changes grouped by kind, as repo-relative POSIX paths."""

    modified: tuple[str, ...] = ()
    added: tuple[str, ...] = ()
    deleted: tuple[str, ...] = ()

    def is_modified(self, path: str) -> bool:
        return path in self.modified

    def changed(self) -> tuple[str, ...]:
        """Return modified and added paths in sorted order."""
        return tuple(sorted({*self.modified, *self.added}))


class StatusProvider(Protocol):
    """Anything able to report working tree status."""

    def status(self) -> RepoStatus: ...


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GitRepository":
        """Locate the nearest git repository starting from ``start``."""

        path = Path(start or Path.cwd()).resolve()
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                return cls(candidate)
        raise GitError(f"Unable to locate a git repository from {path}")

    @classmethod
    def initialise(cls, root: Path | str) -> "GitRepository":
        """Initialise a new git repository at ``root`` with an initial commit."""

        path = Path(root).resolve()
        path.mkdir(parents=True, exist_ok=True)
        repo = cls.__new__(cls)
        repo.root = path
        repo._run_git(["init"])
        for key, value in (("user.email", "relock@example.com"), ("user.name", "relock")):
            existing = repo._run_git(["config", "--get", key], check=False)
            if existing.returncode != 0 or not existing.stdout.strip():
                repo._run_git(["config", key, value])
        repo._run_git(["add", "."])
        repo._run_git(["commit", "--allow-empty", "-m", "Initial commit"])
        return repo

    # ------------------------------------------------------------------ git IO
    def _run_git(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        command = ["git", *args]
        try:
            process = subprocess.run(
                command,
                cwd=self.root,
                capture_output=True,
                text=False,
                check=False,
            )
        except OSError as error:
            raise GitError(f"git {' '.join(args)} could not be started: {error}") from error
        stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
        stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
        result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
        if check and result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
            raise GitError(f"git {' '.join(args)} failed: {message}")
        return result

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the repository root."""

        return self._run_git(list(args), check=check)

    # ------------------------------------------------------------- repo status
    def _status_entries(self) -> List[tuple[str, str, str | None]]:
        result = self._run_git(["status", "--porcelain", "-z", "--untracked-files=all"], check=True)
        tokens = result.stdout.split("\0")
        entries: List[tuple[str, str, str | None]] = []
        index = 0
        while index < len(tokens):
            token = tokens[index]
            index += 1
            if len(token) < 4:
                continue
            code = token[:2]
            path = token[3:]
            origin = None
            if code[0] in {"R", "C"} or code[1] in {"R", "C"}:
                # -z emits the rename source as its own token after the destination.
                origin = tokens[index] if index < len(tokens) else None
                index += 1
            entries.append((code, path, origin))
        return entries

    def status(self) -> RepoStatus:
        """Return modified, added, and deleted paths relative to ``HEAD``."""

        modified: Set[str] = set()
        added: Set[str] = set()
        deleted: Set[str] = set()
        for code, path, origin in self._status_entries():
            if code == "??" or "A" in code:
                added.add(path)
            elif "R" in code or "C" in code:
                added.add(path)
                if origin and "R" in code:
                    deleted.add(origin)
            elif "D" in code:
                deleted.add(path)
            else:
                modified.add(path)
        return RepoStatus(
            modified=tuple(sorted(modified)),
            added=tuple(sorted(added)),
            deleted=tuple(sorted(deleted)),
        )

    def commit_all(self, message: str) -> str | None:
        """Add all changes to the index and create a commit.

        Returns the new commit SHA, or ``None`` when there was nothing to commit.
        """

        self._run_git(["add", "--all"], check=True)
        commit = self._run_git(["commit", "-m", message], check=False)
        if commit.returncode != 0:
            output = commit.stderr.strip() or commit.stdout.strip() or ""
            if "nothing to commit" in output.lower() or "nothing added" in output.lower():
                return None
            raise GitError(f"git commit failed: {output}")

        rev = self._run_git(["rev-parse", "HEAD"], check=True)
        return rev.stdout.strip()


__all__ = ["GitError", "GitRepository", "RepoStatus", "StatusProvider"]
