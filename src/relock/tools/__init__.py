"""External collaborators the reconciliation engine drives."""

from .executor import ProcessExecutor, ProcessResult, SubprocessExecutor
from .files import LocalFiles
from .invoker import ToolchainError, ToolchainInvoker, ToolchainStep
from .vcs import GitError, GitRepository, RepoStatus, StatusProvider

__all__ = [
    "GitError",
    "GitRepository",
    "LocalFiles",
    "ProcessExecutor",
    "ProcessResult",
    "RepoStatus",
    "StatusProvider",
    "SubprocessExecutor",
    "ToolchainError",
    "ToolchainInvoker",
    "ToolchainStep",
]
