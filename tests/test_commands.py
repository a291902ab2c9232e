"""Tests for the command layer behind the CLI."""

from __future__ import annotations

import pytest

from shadow_sync.commands import (
    ExitCode,
    add_file,
    add_repository,
    apply_sync,
    exit_code_for,
    find_target_repo,
    init_workspace,
    plan_sync,
    remove_file,
    remove_repository,
    repository_status,
    set_repository_enabled,
)
from shadow_sync.exceptions import ConfigError, NotInitializedError, SyncIOError
from shadow_sync.registry import Registry, Repository, Scope, load_registry, save_registry
from shadow_sync.sync.models import (
    ApplyMode,
    ApplyReport,
    ApplyResult,
    SkippedRepository,
    SyncKind,
)
from shadow_sync.vcs_exclude import BEGIN_MARKER

TS = "2026-01-01T00:00:00+00:00"


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


class TestInitWorkspace:
    def test_creates_manifest_and_working_dir(self, workspace):
        workspace.working_dir.rmdir()

        result = init_workspace(workspace)

        assert result.created
        assert workspace.is_initialized
        assert workspace.working_dir.is_dir()
        assert load_registry(workspace.manifest_path).repositories == []

    def test_registers_scoped_repositories(self, workspace, repo_dirs):
        result = init_workspace(
            workspace,
            user=str(repo_dirs[Scope.USER]),
            project=str(repo_dirs[Scope.PROJECT]),
        )

        assert [(r.id, r.scope) for r in result.added] == [
            ("user-user-repo", Scope.USER),
            ("project-project-repo", Scope.PROJECT),
        ]
        saved = load_registry(workspace.manifest_path)
        assert [r.id for r in saved.repositories] == ["user-user-repo", "project-project-repo"]

    def test_existing_manifest_untouched(self, workspace, make_registry, repo_dirs):
        make_registry(Scope.TEAM)
        result = init_workspace(workspace, user=str(repo_dirs[Scope.USER]))
        assert not result.created
        assert [r.id for r in load_registry(workspace.manifest_path).repositories] == ["team-repo"]

    def test_missing_repository_path(self, workspace, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            init_workspace(workspace, team=str(tmp_path / "nowhere"))
        assert not workspace.is_initialized

    def test_writes_ignore_block_inside_git(self, workspace):
        (workspace.project_root / ".git").mkdir()
        init_workspace(workspace)
        exclude = workspace.project_root / ".git" / "info" / "exclude"
        assert "/knowledge/" in exclude.read_text()


# ---------------------------------------------------------------------------
# repo add / remove / enable
# ---------------------------------------------------------------------------


class TestRepositoryCommands:
    def test_add_requires_init(self, workspace, repo_dirs):
        with pytest.raises(NotInitializedError):
            add_repository(workspace, Scope.TEAM, str(repo_dirs[Scope.TEAM]))

    def test_add_with_explicit_id_and_description(self, workspace, make_registry, repo_dirs):
        make_registry()
        repo = add_repository(
            workspace, Scope.TEAM, str(repo_dirs[Scope.TEAM]), repo_id="shared", description="Team docs"
        )
        assert repo.id == "shared"
        assert load_registry(workspace.manifest_path).get("shared").description == "Team docs"

    def test_relative_path_stored_as_given(self, workspace, make_registry):
        make_registry()
        (workspace.project_root.parent / "sibling").mkdir()

        repo = add_repository(workspace, Scope.PROJECT, "../sibling")

        assert repo.path == "../sibling"
        assert repo.id == "project-sibling"

    def test_generated_ids_do_not_collide(self, workspace, make_registry, repo_dirs):
        make_registry()
        first = add_repository(workspace, Scope.TEAM, str(repo_dirs[Scope.TEAM]))
        second = add_repository(workspace, Scope.TEAM, str(repo_dirs[Scope.TEAM]))
        assert (first.id, second.id) == ("team-team-repo", "team-team-repo-2")

    def test_duplicate_id(self, workspace, make_registry, repo_dirs):
        make_registry(Scope.TEAM)
        with pytest.raises(ConfigError, match="already exists"):
            add_repository(workspace, Scope.TEAM, str(repo_dirs[Scope.TEAM]), repo_id="team-repo")

    def test_invalid_id(self, workspace, make_registry, repo_dirs):
        make_registry()
        with pytest.raises(ConfigError, match="may only contain"):
            add_repository(workspace, Scope.TEAM, str(repo_dirs[Scope.TEAM]), repo_id="bad id")

    def test_file_path_rejected(self, workspace, make_registry, tmp_path):
        make_registry()
        f = tmp_path / "file.txt"
        f.write_text("x")
        with pytest.raises(ConfigError, match="not a directory"):
            add_repository(workspace, Scope.USER, str(f))

    def test_remove_leaves_files(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.TEAM)
        doc = write(repo_dirs[Scope.TEAM] / "knowledge" / "a.md", "x")

        removed = remove_repository(workspace, "team-repo")

        assert removed.id == "team-repo"
        assert load_registry(workspace.manifest_path).repositories == []
        assert doc.exists()

    def test_disable_and_enable(self, workspace, make_registry):
        make_registry(Scope.TEAM)
        assert not set_repository_enabled(workspace, "team-repo", False).enabled
        assert not load_registry(workspace.manifest_path).get("team-repo").enabled
        assert set_repository_enabled(workspace, "team-repo", True).enabled

    def test_enable_unknown(self, workspace, make_registry):
        make_registry()
        with pytest.raises(ConfigError, match="not found"):
            set_repository_enabled(workspace, "ghost", True)


class TestFindTargetRepo:
    registry = Registry(
        repositories=[
            Repository(id="t1", path="/t1", scope=Scope.TEAM, enabled=False),
            Repository(id="t2", path="/t2", scope=Scope.TEAM),
        ]
    )

    def test_by_scope_skips_disabled(self):
        assert find_target_repo(self.registry, scope=Scope.TEAM).id == "t2"

    def test_by_disabled_id(self):
        with pytest.raises(ConfigError, match="disabled"):
            find_target_repo(self.registry, repo_id="t1")

    def test_no_scope_match(self):
        with pytest.raises(ConfigError, match="No enabled project"):
            find_target_repo(self.registry, scope=Scope.PROJECT)

    def test_selector_required(self):
        with pytest.raises(ConfigError, match="--repo or --context"):
            find_target_repo(self.registry)


# ---------------------------------------------------------------------------
# sync / status
# ---------------------------------------------------------------------------


class TestSyncCommands:
    def test_plan_and_apply(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.TEAM, Scope.PROJECT)
        write(repo_dirs[Scope.TEAM] / "CLAUDE.md", "rules")
        write(workspace.working_dir / "mine.md", "draft")

        registry, plan = plan_sync(workspace)
        report = apply_sync(workspace, registry, plan, ApplyMode.AUTO)

        assert (workspace.project_root / "CLAUDE.md").read_text() == "rules"
        assert (repo_dirs[Scope.PROJECT] / "knowledge" / "mine.md").read_text() == "draft"
        assert exit_code_for(report) == ExitCode.SUCCESS

    def test_broken_exclude_block_keeps_report(
        self, workspace, make_registry, repo_dirs, write
    ):
        make_registry(Scope.TEAM)
        write(repo_dirs[Scope.TEAM] / "knowledge" / "a.md", "a")
        info = workspace.project_root / ".git" / "info"
        info.mkdir(parents=True)
        (info / "exclude").write_text(f"{BEGIN_MARKER}\n/stale\n")

        registry, plan = plan_sync(workspace)
        report = apply_sync(workspace, registry, plan, ApplyMode.AUTO)

        assert (workspace.working_dir / "a.md").read_text() == "a"
        assert [r.relative_path for r in report.pulled] == ["knowledge/a.md"]
        assert len(report.followup_errors) == 1
        assert "missing" in report.followup_errors[0]
        assert exit_code_for(report) == ExitCode.PARTIAL

    def test_plan_limited_to_scope(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.USER, Scope.TEAM)
        write(repo_dirs[Scope.USER] / "knowledge" / "u.md", "u")
        write(repo_dirs[Scope.TEAM] / "knowledge" / "t.md", "t")

        _, plan = plan_sync(workspace, scope=Scope.TEAM)
        assert [op.relative_path for op in plan.pulls] == ["knowledge/t.md"]

    def test_plan_unknown_repo(self, workspace, make_registry):
        make_registry()
        with pytest.raises(ConfigError, match="not found"):
            plan_sync(workspace, repo_id="ghost")


class TestExitCodeFor:
    def _report(self, results, **kwargs):
        return ApplyReport(mode=ApplyMode.FORCE, results=results, started_at=TS, completed_at=TS, **kwargs)

    def test_success(self):
        assert exit_code_for(self._report([])) == ExitCode.SUCCESS

    def test_unresolved_conflicts(self):
        report = self._report(
            [ApplyResult(relative_path="a", kind=SyncKind.CONFLICT, repository_id="p", success=True)]
        )
        assert exit_code_for(report) == ExitCode.CONFLICTS

    def test_partial_wins_over_conflicts(self):
        report = self._report(
            [
                ApplyResult(relative_path="a", kind=SyncKind.CONFLICT, repository_id="p", success=True),
                ApplyResult(relative_path="b", kind=SyncKind.PUSH, repository_id="p", success=False, error="x"),
            ]
        )
        assert exit_code_for(report) == ExitCode.PARTIAL

    def test_skipped_repository_is_partial(self):
        report = self._report(
            [], skipped_repositories=[SkippedRepository(repository_id="x", path="/x", reason="r")]
        )
        assert exit_code_for(report) == ExitCode.PARTIAL


class TestRepositoryStatus:
    def test_counts_and_reachability(self, workspace, repo_dirs, write, tmp_path):
        registry = Registry(
            repositories=[
                Repository(id="proj", path=str(repo_dirs[Scope.PROJECT]), scope=Scope.PROJECT),
                Repository(id="gone", path=str(tmp_path / "gone"), scope=Scope.TEAM),
                Repository(id="off", path=str(repo_dirs[Scope.USER]), scope=Scope.USER, enabled=False),
            ]
        )
        save_registry(workspace.manifest_path, registry)
        write(repo_dirs[Scope.PROJECT] / "knowledge" / "a.md", "a")
        write(repo_dirs[Scope.PROJECT] / "CLAUDE.md", "c")
        write(workspace.working_dir / "new.md", "n")

        statuses, plan = repository_status(workspace)

        by_id = {s.repository_id: s for s in statuses}
        assert by_id["proj"].reachable
        assert by_id["proj"].file_count == 2
        assert by_id["proj"].pending == 3
        assert not by_id["gone"].reachable
        assert by_id["gone"].file_count is None
        assert not by_id["off"].enabled
        assert by_id["off"].pending is None
        assert plan.is_partial

    def test_status_is_read_only(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.TEAM)
        write(repo_dirs[Scope.TEAM] / "knowledge" / "a.md", "a")

        repository_status(workspace)
        assert not (workspace.working_dir / "a.md").exists()


# ---------------------------------------------------------------------------
# file add / remove
# ---------------------------------------------------------------------------


class TestAddFile:
    def test_copies_into_repository(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.TEAM)
        local = write(workspace.working_dir / "plans" / "a.md", "plan", seconds=7)

        result = add_file(workspace, str(local), scope=Scope.TEAM)

        dest = repo_dirs[Scope.TEAM] / "knowledge" / "plans" / "a.md"
        assert result.destination == dest
        assert result.relative_path == "knowledge/plans/a.md"
        assert not result.already_registered
        assert dest.read_text() == "plan"
        assert dest.stat().st_mtime_ns == local.stat().st_mtime_ns

    def test_identical_copy_already_registered(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.PROJECT)
        local = write(workspace.working_dir / "a.md", "same")
        write(repo_dirs[Scope.PROJECT] / "knowledge" / "a.md", "same")

        assert add_file(workspace, str(local), repo_id="project-repo").already_registered

    def test_file_outside_working_dir_allowed(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.USER)
        local = write(workspace.project_root / "CLAUDE.md", "rules")

        add_file(workspace, str(local), repo_id="user-repo")
        assert (repo_dirs[Scope.USER] / "CLAUDE.md").read_text() == "rules"

    def test_excluded_path_rejected(self, workspace, make_registry, write):
        make_registry(Scope.TEAM, sync_exclude=["drafts"])
        local = write(workspace.working_dir / "drafts" / "a.md", "x")
        with pytest.raises(ConfigError, match="sync_exclude"):
            add_file(workspace, str(local), scope=Scope.TEAM)

    def test_missing_local_file(self, workspace, make_registry):
        make_registry(Scope.TEAM)
        with pytest.raises(ConfigError, match="File not found"):
            add_file(workspace, str(workspace.working_dir / "nope.md"), scope=Scope.TEAM)

    def test_unreachable_target(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.TEAM)
        repo_dirs[Scope.TEAM].rmdir()
        local = write(workspace.working_dir / "a.md", "x")
        with pytest.raises(SyncIOError, match="unreachable"):
            add_file(workspace, str(local), scope=Scope.TEAM)


class TestRemoveFile:
    def test_removes_from_every_holder_and_prunes(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.TEAM, Scope.PROJECT)
        write(repo_dirs[Scope.TEAM] / "knowledge" / "old" / "a.md", "x")
        write(repo_dirs[Scope.PROJECT] / "knowledge" / "old" / "a.md", "x")
        local = write(workspace.working_dir / "old" / "a.md", "x")

        result = remove_file(workspace, str(local))

        assert result.removed_from == ["team-repo", "project-repo"]
        assert not (repo_dirs[Scope.TEAM] / "knowledge").exists()
        assert repo_dirs[Scope.TEAM].is_dir()
        assert local.exists()
        assert not result.deleted_local

    def test_delete_local(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.PROJECT)
        write(repo_dirs[Scope.PROJECT] / "knowledge" / "a.md", "x")
        local = write(workspace.working_dir / "a.md", "x")

        result = remove_file(workspace, str(local), delete_local=True)
        assert result.deleted_local
        assert not local.exists()

    def test_local_copy_not_required(self, workspace, make_registry, repo_dirs, write):
        make_registry(Scope.PROJECT)
        write(repo_dirs[Scope.PROJECT] / "knowledge" / "gone.md", "x")

        result = remove_file(workspace, str(workspace.working_dir / "gone.md"))
        assert result.removed_from == ["project-repo"]

    def test_not_registered(self, workspace, make_registry, write):
        make_registry(Scope.PROJECT)
        local = write(workspace.working_dir / "a.md", "x")
        with pytest.raises(ConfigError, match="not registered"):
            remove_file(workspace, str(local))
