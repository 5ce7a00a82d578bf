"""CLI commands for reconciling lockfiles after a manifest edit."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

import typer

from .config import DEFAULT_CONFIG_NAME, ConfigError, EngineSettings, load_settings, write_default_config
from .engine import ArtifactUpdater
from .environment import HostEnvironment, redact_plan
from .masking import mask_local_replaces, unmask_local_replaces
from .schema import ArtifactError, UpdateArtifactRequest, result_to_dicts
from .tools.executor import SubprocessExecutor
from .tools.files import LocalFiles
from .tools.vcs import GitError, GitRepository

APP_HELP = "Regenerate lockfiles and vendored dependencies after a manifest edit."

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load(config: Optional[str]) -> EngineSettings:
    if config is not None and not Path(config).exists():
        raise typer.BadParameter(f"Config file not found: {config}")
    candidate = config if config is not None else DEFAULT_CONFIG_NAME
    try:
        return load_settings(candidate)
    except ConfigError as error:
        typer.echo(f"Failed to load config: {error}", err=True)
        raise typer.Exit(code=1) from error


def _build_updater(repo_root: str, settings: EngineSettings) -> ArtifactUpdater:
    try:
        repo = GitRepository(repo_root)
    except GitError as error:
        typer.echo(f"Failed to open repository at {repo_root}: {error}", err=True)
        raise typer.Exit(code=1)
    host_env = HostEnvironment.from_mapping(os.environ)
    return ArtifactUpdater(
        files=LocalFiles(repo.root),
        status_provider=repo,
        executor=SubprocessExecutor(host_env=host_env),
        host_rules=settings.host_rules,
        host_env=host_env,
    )


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def update(
    manifest: str = typer.Argument(..., help="Manifest path relative to the repository root."),
    content: Path = typer.Option(..., "--content", help="File holding the new manifest content."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the relock configuration file."),
    repo_root: str = typer.Option(".", "--repo-root", help="Repository root."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Run the toolchain for MANIFEST and print the resulting file operations."""

    _configure_logging(verbose)
    settings = _load(config)
    if not content.is_file():
        raise typer.BadParameter(f"Content file not found: {content}")

    updater = _build_updater(repo_root, settings)
    request = UpdateArtifactRequest(
        manifest_path=Path(manifest).as_posix(),
        new_manifest_content=content.read_bytes().decode("utf-8"),
        config=settings.update,
    )
    result = updater.update_artifacts(request)
    _echo_json(result_to_dicts(result))
    if result and any(isinstance(entry, ArtifactError) for entry in result):
        raise typer.Exit(code=1)


@app.command()
def plan(
    manifest: str = typer.Argument(..., help="Manifest path relative to the repository root."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the relock configuration file."),
    repo_root: str = typer.Option(".", "--repo-root", help="Repository root."),
) -> None:
    """Print the execution plan that would be used for MANIFEST, with secrets redacted."""

    settings = _load(config)
    updater = _build_updater(repo_root, settings)
    execution_plan, credentials = updater.prepare_plan(Path(manifest).as_posix(), settings.update)
    _echo_json(redact_plan(execution_plan, credentials))


@app.command()
def mask(path: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Print PATH with local replace directives masked."""

    typer.echo(mask_local_replaces(path.read_bytes().decode("utf-8")), nl=False)


@app.command()
def unmask(path: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Print PATH with masked replace directives restored."""

    typer.echo(unmask_local_replaces(path.read_bytes().decode("utf-8")), nl=False)


@app.command()
def init(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Where to write the configuration."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a default configuration file."""

    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Config already exists: {config_path}")
        raise typer.Exit(code=1)
    write_default_config(config_path)
    typer.echo(f"Wrote {config_path}")


if __name__ == "__main__":
    app()
