from __future__ import annotations

import textwrap
from pathlib import Path

from conftest import GO_MOD, GO_SUM, GoRepo, ScriptedExecutor
from relock.credentials import HostRule, HostRuleStore
from relock.engine import ArtifactUpdater, update_artifacts
from relock.masking import MASK_MARKER
from relock.schema import (
    ArtifactError,
    BinarySource,
    FileDelete,
    FileWrite,
    HostType,
    UpdateArtifactRequest,
    UpdateConfig,
)
from relock.tools.executor import ProcessResult
from relock.tools.files import LocalFiles
from relock.tools.vcs import GitError, GitRepository, RepoStatus

NEW_SUM = GO_SUM + "example.com/dep v1.1.0 h1:cccc=\nexample.com/dep v1.1.0/go.mod h1:dddd=\n"
BUMPED_MOD = GO_MOD.replace("v1.0.0", "v1.1.0")


def _updater(go_repo: GoRepo, executor: ScriptedExecutor, **kwargs) -> ArtifactUpdater:
    return ArtifactUpdater(
        files=LocalFiles(go_repo.root),
        status_provider=go_repo.repo,
        executor=executor,
        **kwargs,
    )


def _request(go_repo: GoRepo, content: str, *, manifest: str = "go.mod", **config) -> UpdateArtifactRequest:
    return UpdateArtifactRequest(
        manifest_path=manifest,
        new_manifest_content=content,
        config=UpdateConfig(cache_dir=go_repo.cache_dir, **config),
    )


def _write_sum(contents: str):
    def handler(workdir: Path) -> None:
        (workdir / "go.sum").write_text(contents, encoding="utf-8")

    return handler


def test_missing_lockfile_returns_none_without_running_toolchain(
    go_repo: GoRepo, scripted_executor: ScriptedExecutor
) -> None:
    (go_repo.root / "go.sum").unlink()
    go_repo.repo.commit_all("drop go.sum")

    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, GO_MOD))

    assert result is None
    assert scripted_executor.calls == []


def test_unchanged_lockfile_returns_none(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, BUMPED_MOD))

    assert result is None
    assert scripted_executor.step_args == [("get", "-d", "./...")]
    assert (go_repo.root / "go.mod").read_text(encoding="utf-8") == BUMPED_MOD


def test_lockfile_rewritten_with_identical_content_is_no_change(
    go_repo: GoRepo, scripted_executor: ScriptedExecutor
) -> None:
    scripted_executor.handlers["get -d ./..."] = _write_sum(GO_SUM)

    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, BUMPED_MOD))

    assert result is None


def test_updated_lockfile_is_returned(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    scripted_executor.handlers["get -d ./..."] = _write_sum(NEW_SUM)

    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, BUMPED_MOD))

    assert result == [FileWrite(path="go.sum", contents=NEW_SUM.encode("utf-8"))]


def test_toolchain_manifest_edits_are_appended_last(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    final_mod = BUMPED_MOD + "\nrequire example.com/extra v0.2.0 // indirect\n"

    def fetch(workdir: Path) -> None:
        (workdir / "go.sum").write_text(NEW_SUM, encoding="utf-8")
        (workdir / "go.mod").write_text(final_mod, encoding="utf-8")

    scripted_executor.handlers["get -d ./..."] = fetch

    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, BUMPED_MOD))

    assert result is not None
    assert [entry.path for entry in result] == ["go.sum", "go.mod"]
    assert isinstance(result[-1], FileWrite)
    assert result[-1].text == final_mod
    assert result[-1].text != BUMPED_MOD


def test_failed_invocation_yields_single_artifact_error(
    go_repo: GoRepo, scripted_executor: ScriptedExecutor
) -> None:
    def fetch(workdir: Path) -> ProcessResult:
        (workdir / "go.sum").write_text(NEW_SUM, encoding="utf-8")
        return ProcessResult(command=("go",), exit_code=1, stderr="checksum mismatch\n")

    scripted_executor.handlers["get -d ./..."] = fetch

    result = _updater(go_repo, scripted_executor).update_artifacts(
        _request(go_repo, BUMPED_MOD, post_update_options=frozenset({"gomodTidy"}))
    )

    assert result == [ArtifactError(artifact_path="go.sum", message="checksum mismatch")]
    assert scripted_executor.step_args == [("get", "-d", "./...")]


def test_status_failure_yields_artifact_error(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    class BrokenStatus:
        def status(self) -> RepoStatus:
            raise GitError("git status failed: index locked")

    updater = ArtifactUpdater(
        files=LocalFiles(go_repo.root),
        status_provider=BrokenStatus(),
        executor=scripted_executor,
    )

    result = updater.update_artifacts(_request(go_repo, BUMPED_MOD))

    assert result == [ArtifactError(artifact_path="go.sum", message="git status failed: index locked")]


def test_tidy_runs_only_when_enabled(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    updater = _updater(go_repo, scripted_executor)

    updater.update_artifacts(_request(go_repo, BUMPED_MOD))
    assert ("mod", "tidy") not in scripted_executor.step_args

    scripted_executor.calls.clear()
    updater.update_artifacts(_request(go_repo, BUMPED_MOD, post_update_options=frozenset({"gomodTidy"})))
    assert scripted_executor.step_args == [("get", "-d", "./..."), ("mod", "tidy")]


def test_local_replace_is_masked_during_run_and_restored(
    go_repo: GoRepo, scripted_executor: ScriptedExecutor
) -> None:
    content = BUMPED_MOD + "\nreplace example.com/sibling => ../sibling\n"
    seen: list[str] = []

    def fetch(workdir: Path) -> None:
        seen.append((workdir / "go.mod").read_text(encoding="utf-8"))
        (workdir / "go.sum").write_text(NEW_SUM, encoding="utf-8")

    scripted_executor.handlers["get -d ./..."] = fetch

    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, content))

    assert f"{MASK_MARKER}replace example.com/sibling => ../sibling" in seen[0]
    assert (go_repo.root / "go.mod").read_text(encoding="utf-8") == content
    assert result == [FileWrite(path="go.sum", contents=NEW_SUM.encode("utf-8"))]


def test_masked_manifest_is_restored_after_failure(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    content = BUMPED_MOD + "\nreplace example.com/sibling => ../sibling\n"
    scripted_executor.handlers["get -d ./..."] = lambda _: ProcessResult(command=("go",), exit_code=1, stderr="boom")

    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, content))

    assert result == [ArtifactError(artifact_path="go.sum", message="boom")]
    assert (go_repo.root / "go.mod").read_text(encoding="utf-8") == content


def _commit_vendor_tree(go_repo: GoRepo) -> None:
    vendor = go_repo.root / "vendor"
    (vendor / "example.com" / "dep").mkdir(parents=True)
    (vendor / "example.com" / "old").mkdir(parents=True)
    (vendor / "modules.txt").write_text("# example.com/dep v1.0.0\nexample.com/dep\n", encoding="utf-8")
    (vendor / "example.com" / "dep" / "dep.go").write_text("package dep\n", encoding="utf-8")
    (vendor / "example.com" / "old" / "old.go").write_text("package old\n", encoding="utf-8")
    go_repo.repo.commit_all("vendor dependencies")


def test_vendor_tree_changes_follow_the_lockfile(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    _commit_vendor_tree(go_repo)
    scripted_executor.handlers["get -d ./..."] = _write_sum(NEW_SUM)

    def vendor(workdir: Path) -> None:
        (workdir / "vendor" / "modules.txt").write_text(
            "# example.com/dep v1.1.0\nexample.com/dep\n", encoding="utf-8"
        )
        (workdir / "vendor" / "example.com" / "dep" / "extra.go").write_text("package dep\n", encoding="utf-8")
        (workdir / "vendor" / "example.com" / "old" / "old.go").unlink()
        (workdir / "notes.txt").write_text("not vendored\n", encoding="utf-8")

    scripted_executor.handlers["mod vendor"] = vendor

    result = _updater(go_repo, scripted_executor).update_artifacts(
        _request(go_repo, BUMPED_MOD, post_update_options=frozenset({"gomodTidy"}))
    )

    assert scripted_executor.step_args == [
        ("get", "-d", "./..."),
        ("mod", "tidy"),
        ("mod", "vendor"),
        ("mod", "tidy"),
    ]
    assert result == [
        FileWrite(path="go.sum", contents=NEW_SUM.encode("utf-8")),
        FileWrite(path="vendor/example.com/dep/extra.go", contents=b"package dep\n"),
        FileWrite(path="vendor/modules.txt", contents=b"# example.com/dep v1.1.0\nexample.com/dep\n"),
        FileDelete(path="vendor/example.com/old/old.go"),
    ]


def test_vendor_step_skipped_without_marker(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    scripted_executor.handlers["get -d ./..."] = _write_sum(NEW_SUM)

    _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, BUMPED_MOD))

    assert ("mod", "vendor") not in scripted_executor.step_args


def test_vendor_failure_discards_partial_changes(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    _commit_vendor_tree(go_repo)
    scripted_executor.handlers["get -d ./..."] = _write_sum(NEW_SUM)
    scripted_executor.handlers["mod vendor"] = lambda _: ProcessResult(
        command=("go",), exit_code=1, stderr="go: inconsistent vendoring"
    )

    result = _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, BUMPED_MOD))

    assert result == [ArtifactError(artifact_path="go.sum", message="go: inconsistent vendoring")]


def test_nested_manifest_runs_in_its_directory(tmp_path: Path, scripted_executor: ScriptedExecutor) -> None:
    root = tmp_path / "mono"
    (root / "svc").mkdir(parents=True)
    (root / "svc" / "go.mod").write_text(GO_MOD, encoding="utf-8")
    (root / "svc" / "go.sum").write_text(GO_SUM, encoding="utf-8")
    repo = GitRepository.initialise(root)
    scripted_executor.handlers["get -d ./..."] = _write_sum(NEW_SUM)

    result = update_artifacts(
        UpdateArtifactRequest(
            manifest_path="svc/go.mod",
            new_manifest_content=BUMPED_MOD,
            config=UpdateConfig(cache_dir=tmp_path / "cache"),
        ),
        files=LocalFiles(repo.root),
        status_provider=repo,
        executor=scripted_executor,
    )

    assert scripted_executor.plans[0].working_dir == repo.root / "svc"
    assert result == [FileWrite(path="svc/go.sum", contents=NEW_SUM.encode("utf-8"))]


def test_rerun_on_reconciled_repository_is_empty(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    scripted_executor.handlers["get -d ./..."] = _write_sum(NEW_SUM)
    updater = _updater(go_repo, scripted_executor)

    first = updater.update_artifacts(_request(go_repo, BUMPED_MOD))
    assert first is not None
    go_repo.repo.commit_all("apply update")

    assert updater.update_artifacts(_request(go_repo, BUMPED_MOD)) is None


def test_credentials_reach_the_execution_plan(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    rules = HostRuleStore([HostRule(host_type=HostType.GITHUB, token="s3cret")])
    updater = _updater(go_repo, scripted_executor, host_rules=rules)

    updater.update_artifacts(_request(go_repo, BUMPED_MOD, binary_source=BinarySource.DOCKER))

    plan = scripted_executor.plans[0]
    assert plan.container is not None
    assert plan.env["CGO_ENABLED"] == "0"
    assert plan.env["GOPATH"] == str((go_repo.cache_dir / "others" / "go").resolve())
    assert len(plan.container.pre_commands) == 1
    assert "s3cret@github.com" in plan.container.pre_commands[0]
    assert (go_repo.cache_dir / "others" / "go").is_dir()


def test_manifest_written_even_when_content_is_new(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    content = textwrap.dedent(
        """
        module example.com/demo

        go 1.22
        """
    ).lstrip()

    _updater(go_repo, scripted_executor).update_artifacts(_request(go_repo, content))

    assert (go_repo.root / "go.mod").read_text(encoding="utf-8") == content


def test_cache_inside_repository_is_rejected(go_repo: GoRepo, scripted_executor: ScriptedExecutor) -> None:
    request = UpdateArtifactRequest(
        manifest_path="go.mod",
        new_manifest_content=BUMPED_MOD,
        config=UpdateConfig(cache_dir=go_repo.root / ".cache" / "relock"),
    )

    result = _updater(go_repo, scripted_executor).update_artifacts(request)

    assert result is not None and len(result) == 1
    assert isinstance(result[0], ArtifactError)
    assert "lies inside the repository" in result[0].message
    assert scripted_executor.calls == []
    assert not (go_repo.root / ".cache").exists()
    assert go_repo.repo.status() == RepoStatus()
