"""Artifact reconciliation for an edited dependency manifest.

:class:`ArtifactUpdater` writes the requested manifest, drives the toolchain to
refresh the lockfile (and the vendor tree, when one is committed), and reports
the resulting working tree changes as an ordered list of file operations. All
failures become a single :class:`~relock.schema.ArtifactError` for the lockfile.
"""

from __future__ import annotations

import logging
import posixpath
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List

from .credentials import HostRuleStore
from .environment import HostEnvironment, build_execution_plan, resolve_cache_root
from .masking import mask_local_replaces, unmask_local_replaces
from .reconcile import lockfile_changed, vendor_changes
from .schema import (
    ArtifactError,
    ArtifactOutcome,
    Credentials,
    ExecutionPlan,
    FileWrite,
    UpdateArtifactRequest,
    UpdateArtifactsResult,
    UpdateConfig,
)
from .toolchains import GO_MODULES, ToolchainProfile
from .tools.executor import ProcessExecutor
from .tools.files import LocalFiles
from .tools.invoker import ToolchainInvoker, primary_steps, vendor_steps
from .tools.vcs import StatusProvider

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ArtifactUpdater:
    """Single-shot reconciliation of one manifest against the toolchain output."""

    files: LocalFiles
    status_provider: StatusProvider
    executor: ProcessExecutor
    host_rules: HostRuleStore = field(default_factory=HostRuleStore)
    host_env: HostEnvironment = field(default_factory=HostEnvironment)
    profile: ToolchainProfile = GO_MODULES

    def prepare_plan(self, manifest_path: str, config: UpdateConfig) -> tuple[ExecutionPlan, Credentials | None]:
        """Resolve credentials and the cache root, then build the execution plan."""

        cache_root = resolve_cache_root(config, self.host_env)
        if cache_root == self.files.root or self.files.root in cache_root.parents:
            raise ValueError(f"Cache directory {cache_root} lies inside the repository {self.files.root}")
        cache_root = self.files.ensure_dir(cache_root)
        credentials = self.host_rules.find(
            self.profile.credential_host_type,
            self.profile.credential_lookup_url,
        )
        working_dir = self.files.resolve(posixpath.dirname(manifest_path) or ".")
        plan = build_execution_plan(
            self.profile,
            config,
            self.host_env,
            working_dir=working_dir,
            cache_root=cache_root,
            credentials=credentials,
        )
        return plan, credentials

    @contextmanager
    def _masked_manifest(self, manifest_path: str, content: str) -> Iterator[None]:
        masked = mask_local_replaces(content)
        if masked != content:
            LOGGER.debug("Masked local replace directives in %s", manifest_path)
        self.files.write(manifest_path, masked)
        try:
            yield
        finally:
            current = self.files.read_text(manifest_path)
            if current is not None:
                restored = unmask_local_replaces(current)
                if restored != current:
                    self.files.write(manifest_path, restored)

    def update_artifacts(self, request: UpdateArtifactRequest) -> UpdateArtifactsResult | None:
        """Reconcile ``request`` and return file operations, an error, or ``None``.

        ``None`` means there is nothing to do: either no lockfile is committed
        next to the manifest, or the toolchain left the lockfile unchanged.
        """

        manifest_path = request.manifest_path
        lockfile_path = self.profile.lockfile_for(manifest_path)
        LOGGER.debug("%s.update_artifacts(%s)", self.profile.name, manifest_path)

        try:
            return self._reconcile(request, lockfile_path)
        except Exception as error:  # noqa: BLE001  # every failure is reported as an artifact error
            LOGGER.warning("Failed to update %s: %s", lockfile_path, error)
            return [ArtifactError(artifact_path=lockfile_path, message=str(error))]

    def _reconcile(self, request: UpdateArtifactRequest, lockfile_path: str) -> UpdateArtifactsResult | None:
        manifest_path = request.manifest_path
        previous_lockfile = self.files.read_bytes(lockfile_path)
        if not previous_lockfile:
            LOGGER.debug("No %s found", lockfile_path)
            return None

        vendor_root = self.profile.vendor_root(manifest_path)
        vendoring = self.files.read_bytes(self.profile.vendor_marker_path(manifest_path)) is not None

        plan, _ = self.prepare_plan(manifest_path, request.config)
        invoker = ToolchainInvoker(self.executor, self.profile.command, plan)

        results: List[ArtifactOutcome] = []
        with self._masked_manifest(manifest_path, request.new_manifest_content):
            invoker.run(primary_steps(self.profile, request.config))
            status = self.status_provider.status()
            lockfile_contents = lockfile_changed(status, lockfile_path, self.files, previous_lockfile)
            if lockfile_contents is None:
                return None
            LOGGER.debug("Returning updated %s", lockfile_path)
            results.append(FileWrite(path=lockfile_path, contents=lockfile_contents))

            if vendoring:
                invoker.run(vendor_steps(self.profile, request.config))
                results.extend(vendor_changes(self.status_provider.status(), vendor_root, self.files))

        final_manifest = self.files.read_text(manifest_path)
        if final_manifest is not None and final_manifest != request.new_manifest_content:
            LOGGER.debug("Found updated %s after %s update", manifest_path, lockfile_path)
            results.append(FileWrite(path=manifest_path, contents=final_manifest.encode("utf-8")))
        return results


def update_artifacts(
    request: UpdateArtifactRequest,
    *,
    files: LocalFiles,
    status_provider: StatusProvider,
    executor: ProcessExecutor,
    host_rules: HostRuleStore | None = None,
    host_env: HostEnvironment | None = None,
    profile: ToolchainProfile = GO_MODULES,
) -> UpdateArtifactsResult | None:
    """Functional wrapper around :meth:`ArtifactUpdater.update_artifacts`."""

    updater = ArtifactUpdater(
        files=files,
        status_provider=status_provider,
        executor=executor,
        host_rules=host_rules or HostRuleStore(),
        host_env=host_env or HostEnvironment(),
        profile=profile,
    )
    return updater.update_artifacts(request)


__all__ = ["ArtifactUpdater", "update_artifacts"]
