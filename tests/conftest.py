from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from relock.schema import ExecutionPlan  # noqa: E402
from relock.tools.executor import ProcessResult  # noqa: E402
from relock.tools.vcs import GitRepository  # noqa: E402

GO_MOD = textwrap.dedent(
    """
    module example.com/demo

    go 1.21

    require example.com/dep v1.0.0
    """
).lstrip()

GO_SUM = "example.com/dep v1.0.0 h1:aaaa=\nexample.com/dep v1.0.0/go.mod h1:bbbb=\n"

StepHandler = Callable[[Path], ProcessResult | None]


@dataclass(slots=True)
class ScriptedExecutor:
    """Executor double that records calls and runs per-step file mutations.

    Handlers are keyed by the joined argument vector (``"mod tidy"``) and
    receive the working directory; returning a :class:`ProcessResult`
    overrides the default successful outcome.
    """

    handlers: Dict[str, StepHandler] = field(default_factory=dict)
    calls: List[tuple[str, tuple[str, ...]]] = field(default_factory=list)
    plans: List[ExecutionPlan] = field(default_factory=list)

    def run(self, command: str, args: Sequence[str], plan: ExecutionPlan) -> ProcessResult:
        self.calls.append((command, tuple(args)))
        self.plans.append(plan)
        handler = self.handlers.get(" ".join(args))
        if handler is not None:
            outcome = handler(plan.working_dir)
            if outcome is not None:
                return outcome
        return ProcessResult(command=(command, *args), exit_code=0)

    @property
    def step_args(self) -> List[tuple[str, ...]]:
        return [args for _, args in self.calls]


@dataclass(slots=True)
class GoRepo:
    """Committed Go module used as the reconciliation target."""

    root: Path
    repo: GitRepository
    cache_dir: Path


@pytest.fixture()
def go_repo(tmp_path: Path) -> GoRepo:
    """Create a git repository holding a committed go.mod / go.sum pair."""

    root = tmp_path / "repo"
    root.mkdir()
    (root / "go.mod").write_text(GO_MOD, encoding="utf-8")
    (root / "go.sum").write_text(GO_SUM, encoding="utf-8")
    repo = GitRepository.initialise(root)
    return GoRepo(root=repo.root, repo=repo, cache_dir=tmp_path / "cache")


@pytest.fixture()
def scripted_executor() -> ScriptedExecutor:
    return ScriptedExecutor()
