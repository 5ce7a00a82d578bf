"""Process execution for toolchain invocations.

Commands are always executed from an argument vector. The only shell ever
involved is the one started inside the container to run pre-commands, and the
arguments handed to it are quoted with :func:`shlex.join`.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Protocol, Sequence

from ..environment import HostEnvironment
from ..schema import ExecutionPlan

LOGGER = logging.getLogger(__name__)

MISSING_EXECUTABLE_EXIT = 127


@dataclass(slots=True)
class ProcessResult:
    """Outcome of one external process."""

    command: tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessExecutor(Protocol):
    """Runs a single command under an :class:`ExecutionPlan`."""

    def run(self, command: str, args: Sequence[str], plan: ExecutionPlan) -> ProcessResult: ...


def merge_env(base: Mapping[str, str], extra: Mapping[str, str | None]) -> Dict[str, str]:
    """Overlay ``extra`` on ``base``; ``None`` values remove the key."""
    env: Dict[str, str] = dict(base)
    for key, value in extra.items():
        if value is None:
            env.pop(key, None)
        else:
            env[str(key)] = str(value)
    return env


def container_argv(command: str, args: Sequence[str], plan: ExecutionPlan, env_keys: Sequence[str]) -> List[str]:
    """Build the ``docker run`` argument vector for ``plan``."""
    container = plan.container
    if container is None:
        raise ValueError("Execution plan has no container settings")

    workdir = plan.working_dir.as_posix()
    argv: List[str] = ["docker", "run", "--rm"]
    volumes = [workdir, *(volume for volume in container.volumes if volume != workdir)]
    for volume in volumes:
        argv.extend(["-v", f"{volume}:{volume}"])
    for key in env_keys:
        argv.extend(["-e", key])
    argv.extend(["-w", workdir, container.image])

    script = [*container.pre_commands, shlex.join([command, *args])]
    argv.extend(["bash", "-l", "-c", " && ".join(script)])
    return argv


@dataclass(slots=True)
class SubprocessExecutor:
    """Default :class:`ProcessExecutor` backed by :func:`subprocess.run`."""

    host_env: HostEnvironment = field(default_factory=HostEnvironment)
    docker_binary: str = "docker"

    def build_argv(self, command: str, args: Sequence[str], plan: ExecutionPlan) -> List[str]:
        """Return the argument vector for ``plan``; containers get plan and proxy variables only."""
        if plan.container is None:
            return [command, *args]
        env_keys = [key for key, value in plan.env.items() if value is not None]
        env_keys.extend(key for key in self.host_env.proxy_env() if key not in plan.env)
        argv = container_argv(command, args, plan, env_keys)
        argv[0] = self.docker_binary
        return argv

    def run(self, command: str, args: Sequence[str], plan: ExecutionPlan) -> ProcessResult:
        env = merge_env(self.host_env.passthrough(), plan.env)
        argv = self.build_argv(command, args, plan)

        executable = argv[0]
        if shutil.which(executable, path=env.get("PATH")) is None:
            return ProcessResult(
                command=tuple(argv),
                exit_code=MISSING_EXECUTABLE_EXIT,
                stderr=f"Executable not available: {executable}",
            )

        LOGGER.debug("Running %s in %s", command, plan.working_dir)
        process = subprocess.run(  # noqa: S603  # argv assembled from the execution plan
            argv,
            cwd=plan.working_dir,
            env=env,
            capture_output=True,
            text=False,
            check=False,
        )
        return ProcessResult(
            command=tuple(argv),
            exit_code=process.returncode,
            stdout=process.stdout.decode("utf-8", errors="replace") if process.stdout else "",
            stderr=process.stderr.decode("utf-8", errors="replace") if process.stderr else "",
        )


__all__ = [
    "MISSING_EXECUTABLE_EXIT",
    "ProcessExecutor",
    "ProcessResult",
    "SubprocessExecutor",
    "container_argv",
    "merge_env",
]
