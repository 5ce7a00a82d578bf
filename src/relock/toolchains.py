"""Per-ecosystem constants describing how a package toolchain is driven."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

from .schema import HostType


@dataclass(frozen=True, slots=True)
class ToolchainProfile:
    """Static description of one package-management toolchain."""

    name: str
    command: str
    manifest_suffix: str
    lockfile_suffix: str
    fetch_args: tuple[str, ...]
    tidy_args: tuple[str, ...]
    vendor_args: tuple[str, ...]
    tidy_option: str
    vendor_dir: str
    vendor_marker: str
    image: str
    credential_host_type: HostType
    credential_lookup_url: str
    rewrite_base_url: str
    cache_env: str
    native_toggle_env: str

    def lockfile_for(self, manifest_path: str) -> str:
        """Derive the lockfile path by swapping the manifest suffix."""
        if manifest_path.endswith(self.manifest_suffix):
            return manifest_path[: -len(self.manifest_suffix)] + self.lockfile_suffix
        return manifest_path + self.lockfile_suffix

    def vendor_root(self, manifest_path: str) -> str:
        """Return the vendor directory prefix (with trailing slash) for ``manifest_path``."""
        base = posixpath.dirname(manifest_path)
        return posixpath.join(base, self.vendor_dir.rstrip("/")) + "/"

    def vendor_marker_path(self, manifest_path: str) -> str:
        return self.vendor_root(manifest_path) + self.vendor_marker


GO_MODULES = ToolchainProfile(
    name="go",
    command="go",
    manifest_suffix=".mod",
    lockfile_suffix=".sum",
    fetch_args=("get", "-d", "./..."),
    tidy_args=("mod", "tidy"),
    vendor_args=("mod", "vendor"),
    tidy_option="gomodTidy",
    vendor_dir="vendor",
    vendor_marker="modules.txt",
    image="renovate/go",
    credential_host_type=HostType.GITHUB,
    credential_lookup_url="https://api.github.com/",
    rewrite_base_url="https://github.com/",
    cache_env="GOPATH",
    native_toggle_env="CGO_ENABLED",
)


__all__ = ["GO_MODULES", "ToolchainProfile"]
