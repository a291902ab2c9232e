"""Command-line entry point for shadow-sync.

All command output goes to stdout; log records and error messages go to
stderr.  Exit codes:

    0  success
    1  general failure (configuration, I/O, worktree linking)
    2  project not initialized
    3  partial success (skipped repositories or per-file errors)
    4  conflicts remain unresolved
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from shadow_sync import __version__, commands
from shadow_sync.commands import ExitCode
from shadow_sync.config import load_config
from shadow_sync.config_loader import load_settings
from shadow_sync.config_schema import Settings, build_settings
from shadow_sync.exceptions import (
    ConflictsRemainError,
    NotInitializedError,
    ShadowSyncError,
)
from shadow_sync.library import list_documents, search_documents
from shadow_sync.logger import setup_logging
from shadow_sync.registry import Scope, load_registry
from shadow_sync.sync.models import ApplyMode, Resolution, SyncOperation
from shadow_sync.sync.reporter import (
    format_apply_report,
    format_conflict_diff,
    format_plan_preview,
    format_status,
    plan_to_json,
    report_to_json,
)
from shadow_sync.sync.resolver import PromptResolver
from shadow_sync.workspace import Workspace, find_project_root, open_workspace
from shadow_sync.worktree import inherit

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def _ask(question: str) -> str:
    try:
        return input(question).strip()
    except EOFError:
        return ""


def _confirm(question: str) -> bool:
    return _ask(f"{question} [y/N] ").lower() in ("y", "yes")


def prompt_conflict(
    operation: SyncOperation, local_path: Path, remote_path: Path
) -> Resolution:
    """Show a diff and ask which side wins."""
    print(format_conflict_diff(operation, local_path, remote_path))
    print()
    while True:
        answer = _ask("[l]ocal / [r]emote / [s]kip? ").lower()
        if answer in ("l", "local"):
            return Resolution.LOCAL
        if answer in ("r", "remote"):
            return Resolution.REMOTE
        if answer in ("s", "skip", ""):
            return Resolution.SKIP


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    user, team, project = args.user, args.team, args.project
    if args.interactive and not ws.is_initialized:
        user = user or _ask("User repository path (blank to skip): ") or None
        team = team or _ask("Team repository path (blank to skip): ") or None
        project = (
            project or _ask("Project repository path (blank to skip): ") or None
        )

    result = commands.init_workspace(ws, user=user, team=team, project=project)
    if not result.created:
        print(f"Already initialized: {ws.manifest_path}")
        return ExitCode.SUCCESS
    print(f"Initialized {ws.manifest_path}")
    for repo in result.added:
        print(f"  added {repo.id} [{repo.scope.value}] {repo.path}")
    print(f"Working copy: {ws.working_dir}")
    return ExitCode.SUCCESS


def cmd_repo_add(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    repo = commands.add_repository(
        ws,
        Scope.parse(args.scope),
        args.path,
        repo_id=args.id,
        description=args.description,
    )
    print(f"Added repository {repo.id} [{repo.scope.value}] {repo.path}")
    return ExitCode.SUCCESS


def cmd_repo_remove(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    repo = commands.remove_repository(ws, args.id)
    print(f"Removed repository {repo.id}")
    return ExitCode.SUCCESS


def cmd_repo_enable(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    repo = commands.set_repository_enabled(ws, args.id, args.enabled)
    print(f"Repository {repo.id} {'enabled' if repo.enabled else 'disabled'}")
    return ExitCode.SUCCESS


def cmd_repo_list(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    registry = load_registry(ws.manifest_path)
    if not registry.repositories:
        print("No repositories registered.")
        return ExitCode.SUCCESS
    for repo in registry.repositories:
        flag = "" if repo.enabled else " (disabled)"
        print(f"{repo.id} [{repo.scope.value}] {repo.path}{flag}")
    return ExitCode.SUCCESS


def cmd_repo_show(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    registry = load_registry(ws.manifest_path)
    repo = registry.get(args.id)
    print(f"ID:          {repo.id}")
    print(f"Scope:       {repo.scope.value}")
    print(f"Path:        {repo.path}")
    print(f"Resolved:    {ws.resolve_repository_path(repo.path)}")
    print(f"Kind:        {repo.kind}")
    print(f"Enabled:     {'yes' if repo.enabled else 'no'}")
    if repo.description:
        print(f"Description: {repo.description}")
    return ExitCode.SUCCESS


def cmd_sync(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    scope = Scope.parse(args.context) if args.context else None
    registry, plan = commands.plan_sync(ws, scope=scope, repo_id=args.repo)

    if args.json and args.dry_run:
        print(json.dumps(plan_to_json(plan), indent=2))
        return ExitCode.PARTIAL if plan.is_partial else ExitCode.SUCCESS
    if not args.json:
        print(format_plan_preview(plan, verbose=args.verbose))

    interactive = not (args.apply or args.force) and sys.stdin.isatty()
    if args.dry_run or not (args.apply or args.force or interactive):
        if not args.dry_run and not args.json:
            print("\nDry run. Use --apply to make these changes.")
        return ExitCode.PARTIAL if plan.is_partial else ExitCode.SUCCESS

    if not plan.pending:
        return ExitCode.PARTIAL if plan.is_partial else ExitCode.SUCCESS

    resolver = None
    if args.force:
        mode = ApplyMode.FORCE
    elif args.apply:
        mode = ApplyMode.AUTO
    else:
        mode = ApplyMode.INTERACTIVE
        resolver = PromptResolver(prompt_conflict)
        if settings.sync.confirm and not _confirm("\nApply these changes?"):
            print("Aborted.")
            if plan.is_partial:
                return ExitCode.PARTIAL
            return ExitCode.CONFLICTS if plan.conflicts else ExitCode.SUCCESS

    report = commands.apply_sync(ws, registry, plan, mode, resolver)
    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print()
        print(format_apply_report(report))
    return commands.exit_code_for(report)


def cmd_inherit(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    result = inherit(ws.project_root, ws.working_dir_name, force=args.force)
    if result.already_linked:
        print(f"Already linked: {result.link_path} -> {result.target}")
    else:
        print(f"Linked {result.link_path} -> {result.target}")
    return ExitCode.SUCCESS


def cmd_status(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    statuses, plan = commands.repository_status(ws)
    print(format_status(statuses, plan))
    return ExitCode.PARTIAL if plan.is_partial else ExitCode.SUCCESS


def cmd_file_add(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    scope = Scope.parse(args.context) if args.context else None
    result = commands.add_file(ws, args.path, repo_id=args.repo, scope=scope)
    if result.already_registered:
        print(f"{result.relative_path} is already registered in {result.repository_id}")
    else:
        print(f"Added {result.relative_path} to {result.repository_id}")
    return ExitCode.SUCCESS


def cmd_file_remove(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    result = commands.remove_file(ws, args.path, delete_local=args.delete_local)
    print(
        f"Removed {result.relative_path} from {', '.join(result.removed_from)}"
    )
    if result.deleted_local:
        print(f"Deleted local copy {result.relative_path}")
    return ExitCode.SUCCESS


def cmd_search(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    registry = load_registry(ws.manifest_path)
    matches = search_documents(ws, registry, args.query)
    for match in matches:
        print(f"{match.relative_path}:{match.line_number}: {match.text}")
    if not matches:
        print(f"No matches for '{args.query}'")
    return ExitCode.SUCCESS


def cmd_list(args: argparse.Namespace, ws: Workspace, settings: Settings) -> int:
    registry = load_registry(ws.manifest_path)
    groups = list_documents(ws, registry)
    total = 0
    for group, paths in groups.items():
        print(f"{group}/")
        for path in paths:
            print(f"  {path}")
        total += len(paths)
    print(f"\nTotal: {total} documents")
    return ExitCode.SUCCESS


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadow-sync",
        description="Synchronize a local knowledge directory with user, team and project shadow repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Set up a project with a personal and a shared repository
  shadow-sync init --user ~/notes --project ../project-docs

  # Preview what a sync would do
  shadow-sync sync --dry-run --verbose

  # Apply, resolving same-second conflicts by nanosecond timestamp
  shadow-sync sync --apply --force

  # Only sync the team repositories
  shadow-sync sync --apply --context team

  # Share the parent checkout's registry inside a git worktree
  shadow-sync inherit
        """,
    )
    parser.add_argument(
        "--root",
        help="Project root (takes precedence over SHADOW_SYNC_ROOT; default: discovered from the current directory)",
    )
    parser.add_argument(
        "--working-dir",
        help="Working-copy directory relative to the project root (default: knowledge)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also append log records to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"shadow-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    p = sub.add_parser("init", help="Create the repository registry")
    p.add_argument("--user", metavar="PATH", help="Register a user repository")
    p.add_argument("--team", metavar="PATH", help="Register a team repository")
    p.add_argument("--project", metavar="PATH", help="Register a project repository")
    p.add_argument(
        "-i", "--interactive", action="store_true", help="Prompt for repository paths"
    )
    p.set_defaults(handler=cmd_init)

    repo = sub.add_parser("repo", help="Manage registered repositories")
    repo_sub = repo.add_subparsers(dest="repo_command", metavar="<action>", required=True)

    p = repo_sub.add_parser("add", help="Register a repository")
    p.add_argument("scope", help="user, team, or project")
    p.add_argument("path", help="Repository directory (relative paths resolve against the project root)")
    p.add_argument("--id", help="Repository id (default: <scope>-<directory name>)")
    p.add_argument("--description", help="Free-text description")
    p.set_defaults(handler=cmd_repo_add)

    p = repo_sub.add_parser("remove", help="Unregister a repository")
    p.add_argument("id")
    p.set_defaults(handler=cmd_repo_remove)

    p = repo_sub.add_parser("list", help="List registered repositories")
    p.set_defaults(handler=cmd_repo_list)

    p = repo_sub.add_parser("show", help="Show one repository")
    p.add_argument("id")
    p.set_defaults(handler=cmd_repo_show)

    p = repo_sub.add_parser("enable", help="Enable a repository")
    p.add_argument("id")
    p.set_defaults(handler=cmd_repo_enable, enabled=True)

    p = repo_sub.add_parser("disable", help="Disable a repository without removing it")
    p.add_argument("id")
    p.set_defaults(handler=cmd_repo_enable, enabled=False)

    p = sub.add_parser("sync", help="Plan and apply a sync")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--apply", action="store_true", help="Apply without prompting")
    mode.add_argument("--dry-run", action="store_true", help="Only show the plan")
    p.add_argument("--verbose", "-v", action="store_true", help="Show unchanged and shadowed files")
    p.add_argument(
        "--force",
        action="store_true",
        help="Resolve conflicts by nanosecond timestamp (implies --apply)",
    )
    p.add_argument("--context", help="Only sync repositories of this scope")
    p.add_argument("--repo", help="Only sync this repository")
    p.add_argument("--json", action="store_true", help="Print JSON instead of text")
    p.set_defaults(handler=cmd_sync)

    p = sub.add_parser("inherit", help="Link a git worktree to its parent's registry")
    p.add_argument("--force", action="store_true", help="Replace an existing .shadow_sync")
    p.set_defaults(handler=cmd_inherit)

    p = sub.add_parser("status", help="Show repository and sync status")
    p.set_defaults(handler=cmd_status)

    file_parser = sub.add_parser("file", help="Register or unregister single files")
    file_sub = file_parser.add_subparsers(dest="file_command", metavar="<action>", required=True)

    p = file_sub.add_parser("add", help="Copy a local file into a repository")
    p.add_argument("path")
    target = p.add_mutually_exclusive_group()
    target.add_argument("--repo", help="Target repository id")
    target.add_argument("--context", help="First enabled repository of this scope")
    p.set_defaults(handler=cmd_file_add)

    p = file_sub.add_parser("remove", help="Remove a file from every repository holding it")
    p.add_argument("path")
    p.add_argument("--delete-local", action="store_true", help="Also delete the local copy")
    p.set_defaults(handler=cmd_file_remove)

    p = sub.add_parser("search", help="Search working-copy documents")
    p.add_argument("query")
    p.set_defaults(handler=cmd_search)

    p = sub.add_parser("list", help="List working-copy documents")
    p.set_defaults(handler=cmd_list)

    return parser


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run one command and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "handler", None) is None:
        parser.print_help()
        return ExitCode.FAILURE

    load_dotenv()

    try:
        root_hint = args.root or os.getenv("SHADOW_SYNC_ROOT")
        if root_hint:
            project_root = Path(root_hint).expanduser().resolve()
        else:
            project_root = find_project_root(Path.cwd())
        settings = build_settings(load_settings(project_root))
    except (yaml.YAMLError, OSError, ValueError) as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return ExitCode.FAILURE

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or settings.logging.file,
        debug_format=args.log_format or settings.logging.format,
        level=settings.logging.level,
    )

    try:
        config = load_config(
            root=str(project_root),
            working_dir=args.working_dir,
            debug=args.debug,
            yaml_fallbacks=settings.sync.model_dump(),
        )
        if config.debug and not args.debug:
            logging.getLogger().setLevel(logging.DEBUG)
        ws = open_workspace(config.project_root, config.working_dir)
        logger.debug("Workspace: %s", ws)
        return int(args.handler(args, ws, settings))
    except NotInitializedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return ExitCode.NOT_INITIALIZED
    except ConflictsRemainError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return ExitCode.CONFLICTS
    except (ShadowSyncError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return ExitCode.FAILURE
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return ExitCode.FAILURE


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
