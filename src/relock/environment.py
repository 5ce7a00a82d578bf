"""Assemble the environment and execution plan for a toolchain run."""

from __future__ import annotations

import logging
import re
import shlex
from pathlib import Path
from typing import Dict, Mapping, Optional
from urllib.parse import quote, urlparse

from .schema import (
    BinarySource,
    ContainerSpec,
    Credentials,
    ExecutionPlan,
    RecordModel,
    UpdateConfig,
)
from .toolchains import ToolchainProfile

LOGGER = logging.getLogger(__name__)

APP_TOKEN_USER = "x-access-token"
REDACTED = "***"

# Operators whose bound is itself an allowed version; "<" and ">" are not.
_RANGE_PREFIX = re.compile(r"^\s*(?:\^|~|[<>]=|==?)\s*")
_EXACT_VERSION = re.compile(r"^v?\d+(?:\.\d+)*$")


class HostEnvironment(RecordModel):
    """The host process variables the engine is allowed to see.

    Only the fields listed here are ever read from the host; the rest of the
    process environment is never forwarded to the toolchain.
    """

    path: Optional[str] = None
    home: Optional[str] = None
    gopath: Optional[str] = None
    goproxy: Optional[str] = None
    gonosumdb: Optional[str] = None
    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None
    no_proxy: Optional[str] = None

    @classmethod
    def from_mapping(cls, environ: Mapping[str, str]) -> "HostEnvironment":
        # Proxy variables are conventionally lower-case as often as upper-case.
        values = {name: environ.get(name.upper()) or environ.get(name) or None for name in cls.model_fields}
        return cls(**values)

    def proxy_env(self) -> Dict[str, str]:
        """Return the proxy settings, keyed by their upper-case names."""
        proxies: Dict[str, str] = {}
        for name in ("http_proxy", "https_proxy", "no_proxy"):
            value = getattr(self, name)
            if value:
                proxies[name.upper()] = value
        return proxies

    def passthrough(self) -> Dict[str, str]:
        """Return the base variables forwarded to every process."""
        base: Dict[str, str] = {}
        for name in ("path", "home"):
            value = getattr(self, name)
            if value:
                base[name.upper()] = value
        base.update(self.proxy_env())
        return base


def resolve_cache_root(config: UpdateConfig, host_env: HostEnvironment) -> Path:
    """Pick the toolchain cache root: the host override, else a directory under ``cache_dir``."""
    if host_env.gopath:
        return Path(host_env.gopath).resolve()
    return (Path(config.cache_dir) / "others" / "go").resolve()


def render_userinfo(token: str, *, app_mode: bool = False) -> str:
    """Percent-encode ``token`` for use as URL userinfo."""
    if app_mode:
        return f"{APP_TOKEN_USER}:{quote(token, safe='')}"
    if ":" in token:
        user, _, password = token.partition(":")
        return f"{quote(user, safe='')}:{quote(password, safe='')}"
    return quote(token, safe="")


def insteadof_rule(base_url: str, userinfo: str) -> tuple[str, str]:
    """Return the git config ``(key, value)`` that injects ``userinfo`` into ``base_url``."""
    parsed = urlparse(base_url)
    authed = parsed._replace(netloc=f"{userinfo}@{parsed.netloc}").geturl()
    return f"url.{authed}.insteadOf", base_url


def credential_pre_command(base_url: str, userinfo: str) -> str:
    """Build the shell pre-command that rewrites fetch URLs for ``base_url``."""
    key, value = insteadof_rule(base_url, userinfo)
    return " ".join(["git", "config", "--global", shlex.quote(key), shlex.quote(value)])


def resolve_image_tag(constraint: str | None) -> str:
    """Map a compatibility constraint onto a container image tag."""
    if not constraint or not constraint.strip():
        return "latest"
    cleaned = _RANGE_PREFIX.sub("", constraint.strip())
    candidate = cleaned.split(",")[0].split()[0] if cleaned else ""
    if _EXACT_VERSION.match(candidate):
        return candidate.lstrip("v")
    return "latest"


def build_execution_plan(
    profile: ToolchainProfile,
    config: UpdateConfig,
    host_env: HostEnvironment,
    *,
    working_dir: Path,
    cache_root: Path,
    credentials: Credentials | None,
) -> ExecutionPlan:
    """Translate config and credentials into a self-contained :class:`ExecutionPlan`."""

    docker = config.binary_source == BinarySource.DOCKER
    LOGGER.debug("Building %s execution plan for %s", config.binary_source.value, working_dir)
    env: Dict[str, Optional[str]] = {
        profile.cache_env: str(cache_root),
        "GOPROXY": host_env.goproxy,
        "GONOSUMDB": host_env.gonosumdb,
        profile.native_toggle_env: "0" if docker else None,
    }

    userinfo = None
    if credentials is not None and credentials.token:
        userinfo = render_userinfo(credentials.token, app_mode=config.app_mode)

    if not docker:
        if userinfo:
            key, value = insteadof_rule(profile.rewrite_base_url, userinfo)
            env.update({"GIT_CONFIG_COUNT": "1", "GIT_CONFIG_KEY_0": key, "GIT_CONFIG_VALUE_0": value})
        return ExecutionPlan(working_dir=working_dir, env=env)

    pre_commands: tuple[str, ...] = ()
    if userinfo:
        pre_commands = (credential_pre_command(profile.rewrite_base_url, userinfo),)
    constraint = config.compatibility.get(profile.name)
    container = ContainerSpec(
        image=f"{profile.image}:{resolve_image_tag(constraint)}",
        tag_constraint=constraint,
        volumes=(str(cache_root),),
        pre_commands=pre_commands,
    )
    return ExecutionPlan(working_dir=working_dir, env=env, container=container)


def redact_plan(plan: ExecutionPlan, credentials: Credentials | None) -> dict[str, object]:
    """Return ``plan`` as a mapping with every occurrence of the token masked."""
    payload = plan.model_dump(mode="json")
    token = credentials.token if credentials else None
    if not token:
        return payload
    needles = {token, quote(token, safe="")}
    if ":" in token:
        needles.add(quote(token.partition(":")[2], safe=""))
    needles.discard("")

    def _scrub(value: object) -> object:
        if isinstance(value, str):
            for needle in needles:
                value = value.replace(needle, REDACTED)
            return value
        if isinstance(value, dict):
            return {key: _scrub(item) for key, item in value.items()}
        if isinstance(value, list):
            return [_scrub(item) for item in value]
        return value

    return _scrub(payload)  # type: ignore[return-value]


__all__ = [
    "HostEnvironment",
    "build_execution_plan",
    "credential_pre_command",
    "insteadof_rule",
    "redact_plan",
    "render_userinfo",
    "resolve_cache_root",
    "resolve_image_tag",
]
