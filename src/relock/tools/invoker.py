"""Sequential execution of toolchain steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from ..schema import ExecutionPlan, UpdateConfig
from ..toolchains import ToolchainProfile
from .executor import ProcessExecutor, ProcessResult

LOGGER = logging.getLogger(__name__)


class ToolchainError(RuntimeError):
    """Raised when a toolchain step exits non-zero.

    ``str(error)`` is the captured stderr so callers can surface it verbatim.
    """

    def __init__(self, step: str, result: ProcessResult) -> None:
        message = result.stderr.strip() or result.stdout.strip() or f"{step} exited with code {result.exit_code}"
        super().__init__(message)
        self.step = step
        self.result = result

    @property
    def exit_code(self) -> int:
        return self.result.exit_code


@dataclass(frozen=True, slots=True)
class ToolchainStep:
    """One named invocation of the toolchain command."""

    name: str
    args: tuple[str, ...]


def primary_steps(profile: ToolchainProfile, config: UpdateConfig) -> List[ToolchainStep]:
    """Fetch, followed by tidy when the tidy option is enabled."""
    steps = [ToolchainStep("fetch", profile.fetch_args)]
    if config.has_option(profile.tidy_option):
        steps.append(ToolchainStep("tidy", profile.tidy_args))
    return steps


def vendor_steps(profile: ToolchainProfile, config: UpdateConfig) -> List[ToolchainStep]:
    """Vendor population, followed by a second tidy when enabled."""
    steps = [ToolchainStep("vendor", profile.vendor_args)]
    if config.has_option(profile.tidy_option):
        steps.append(ToolchainStep("tidy", profile.tidy_args))
    return steps


@dataclass(slots=True)
class ToolchainInvoker:
    """Run steps one after another, stopping at the first failure."""

    executor: ProcessExecutor
    command: str
    plan: ExecutionPlan

    def run(self, steps: Iterable[ToolchainStep]) -> List[ProcessResult]:
        results: List[ProcessResult] = []
        for step in steps:
            LOGGER.debug("%s command: %s %s", step.name, self.command, " ".join(step.args))
            result = self.executor.run(self.command, list(step.args), self.plan)
            results.append(result)
            if not result.ok:
                raise ToolchainError(step.name, result)
        return results


__all__ = ["ToolchainError", "ToolchainInvoker", "ToolchainStep", "primary_steps", "vendor_steps"]
