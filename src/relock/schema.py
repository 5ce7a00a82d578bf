"""Typed records exchanged between the reconciliation engine and its callers."""

from __future__ import annotations

import base64
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=True)


def default_cache_dir() -> Path:
    """Per-user cache location, kept outside any repository being reconciled."""
    return Path.home() / ".cache" / "relock"


class BinarySource(str, Enum):
    """Where the external toolchain binaries come from."""

    DIRECT = "direct"
    DOCKER = "docker"


class HostType(str, Enum):
    """Kinds of hosts a credential can be registered for."""

    GITHUB = "github"
    GITLAB = "gitlab"
    GO = "go"


class UpdateConfig(RecordModel):
    """Per-request knobs threaded through every stage of an update."""

    cache_dir: Path = Field(default_factory=default_cache_dir)
    binary_source: BinarySource = BinarySource.DIRECT
    post_update_options: frozenset[str] = frozenset()
    compatibility: Dict[str, str] = Field(default_factory=dict)
    app_mode: bool = False

    def has_option(self, flag: str) -> bool:
        return flag in self.post_update_options


class UpdateArtifactRequest(RecordModel):
    """Manifest edit submitted for reconciliation."""

    manifest_path: str
    new_manifest_content: str
    config: UpdateConfig = Field(default_factory=UpdateConfig)


class Credentials(RecordModel):
    """Secret resolved for a single host."""

    host_type: HostType
    base_url: str
    token: Optional[str] = Field(default=None, repr=False)


class ContainerSpec(RecordModel):
    """Container isolation settings for one toolchain invocation."""

    image: str
    tag_constraint: Optional[str] = None
    volumes: tuple[str, ...] = ()
    pre_commands: tuple[str, ...] = ()


class ExecutionPlan(RecordModel):
    """Everything needed to run the toolchain; no ambient state is consulted."""

    working_dir: Path
    env: Dict[str, Optional[str]] = Field(default_factory=dict)
    container: Optional[ContainerSpec] = None


class FileWrite(RecordModel):
    """Create or replace ``path`` with ``contents``."""

    kind: Literal["write"] = "write"
    path: str
    contents: bytes

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")

    def to_dict(self) -> dict[str, Any]:
        try:
            payload = self.contents.decode("utf-8")
            encoding = "utf-8"
        except UnicodeDecodeError:
            payload = base64.b64encode(self.contents).decode("ascii")
            encoding = "base64"
        return {"kind": self.kind, "path": self.path, "encoding": encoding, "contents": payload}


class FileDelete(RecordModel):
    """Remove ``path`` from the repository."""

    kind: Literal["delete"] = "delete"
    path: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "path": self.path}


class ArtifactError(RecordModel):
    """Failure attached to a single artifact; sibling artifacts are unaffected."""

    kind: Literal["error"] = "error"
    artifact_path: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "artifact_path": self.artifact_path, "message": self.message}


FileChange = Union[FileWrite, FileDelete]
ArtifactOutcome = Union[FileWrite, FileDelete, ArtifactError]
UpdateArtifactsResult = List[ArtifactOutcome]


def result_to_dicts(result: UpdateArtifactsResult | None) -> list[dict[str, Any]] | None:
    """Return a JSON-safe representation of ``result`` (``None`` stays ``None``)."""
    if result is None:
        return None
    return [entry.to_dict() for entry in result]


__all__ = [
    "ArtifactError",
    "ArtifactOutcome",
    "BinarySource",
    "ContainerSpec",
    "Credentials",
    "ExecutionPlan",
    "FileChange",
    "FileDelete",
    "FileWrite",
    "HostType",
    "RecordModel",
    "UpdateArtifactRequest",
    "UpdateArtifactsResult",
    "UpdateConfig",
    "default_cache_dir",
    "result_to_dicts",
]
