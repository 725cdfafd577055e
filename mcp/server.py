#!/usr/bin/env python3
"""MCP server exposing skill sync operations as structured tools."""

from __future__ import annotations

import argparse
import io
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

SCRIPT_DIR = Path(__file__).resolve().parent.parent / "scripts"
sys.path.insert(0, str(SCRIPT_DIR))

import sync_agent_skills as sync  # noqa: E402
from mcp.server.fastmcp import FastMCP  # noqa: E402

mcp = FastMCP(
    "ai-skill-sync",
    instructions="Sync AI agent skills from one source directory into Cursor, Codex, Claude Code, and other tools.",
)

# Tools that write to targets or config.json run one at a time.
_write_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_args(**kwargs: Any) -> argparse.Namespace:
    defaults = {
        "dry_run": False,
        "verbose": False,
        "only": None,
        "yes": True,
        "force": False,
        "no_backup": False,
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


@contextmanager
def _capture_output():
    old_out, old_err = sys.stdout, sys.stderr
    sys.stdout = buf_out = io.StringIO()
    sys.stderr = buf_err = io.StringIO()
    try:
        yield buf_out, buf_err
    finally:
        sys.stdout, sys.stderr = old_out, old_err


def _run_cmd(fn, args: argparse.Namespace) -> dict[str, Any]:
    with _capture_output() as (out, err):
        try:
            fn(args)
        except SystemExit as e:
            return {
                "success": False,
                "error": err.getvalue().strip() or out.getvalue().strip() or f"exit code {e.code}",
            }
    return {
        "success": True,
        "output": out.getvalue().strip(),
    }


def _load() -> tuple[dict[str, Any], dict[str, sync.Target]]:
    """Read config.json and its targets; SystemExit and ConfigError propagate."""
    with _capture_output() as (out, _):
        try:
            config = sync.read_config()
        except SystemExit:
            raise sync.ConfigError(out.getvalue().strip())
    return config, sync.load_targets(config)


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------


@mcp.tool()
def skill_status() -> dict[str, Any]:
    """Return the source directory, discovered skills, and per-target state."""
    try:
        config, _ = _load()
        return {"success": True, **sync.status_report(config)}
    except sync.SyncError as exc:
        return {"success": False, "error": str(exc)}


@mcp.tool()
def skill_diff(only: Optional[str] = None) -> dict[str, Any]:
    """List what the next sync would add, modify, or remove in each target.

    Args:
        only: Restrict to a single target (e.g. "cursor").
    """
    try:
        config, targets = _load()
        targets = sync.select_targets(targets, only)
    except sync.SyncError as exc:
        return {"success": False, "error": str(exc)}
    source = sync.source_dir(config)
    skills = sync.discover_skills(source)
    return {
        "success": True,
        "targets": {
            name: [sync.to_jsonable(item) for item in sync.diff_target(name, t, source, skills)]
            for name, t in targets.items()
        },
    }


@mcp.tool()
def skill_collisions() -> dict[str, Any]:
    """Report skills that share a SKILL.md name, globally and per filtered target."""
    try:
        config, targets = _load()
    except sync.SyncError as exc:
        return {"success": False, "error": str(exc)}
    skills = sync.discover_skills(sync.source_dir(config))
    report = sync.check_name_collisions_for_targets(skills, targets)
    return {"success": True, **sync.to_jsonable(report)}


# ---------------------------------------------------------------------------
# Sync and config tools
# ---------------------------------------------------------------------------


@mcp.tool()
def skill_sync(only: Optional[str] = None, dry_run: bool = False,
               force: bool = False) -> dict[str, Any]:
    """Reconcile every target with the source directory.

    Args:
        only: Restrict sync to a single target (e.g. "cursor", "codex").
        dry_run: Preview changes without writing files.
        force: In copy mode, replace unmanaged local copies and rewrite unchanged ones.
    """
    args = _mock_args(only=only, dry_run=dry_run, force=force)
    with _write_lock:
        try:
            config, _ = _load()
        except sync.SyncError as exc:
            return {"success": False, "error": str(exc)}
        with _capture_output() as (out, _):
            try:
                reports = sync.sync_all(config, args)
            except sync.SyncError as exc:
                return {"success": False, "error": str(exc)}
    failed = [r.name for r in reports.values() if r.error]
    return {
        "success": not failed,
        "targets": {name: sync.to_jsonable(r) for name, r in reports.items()},
        "output": out.getvalue().strip(),
    }


@mcp.tool()
def skill_collect(target: str, dry_run: bool = False, force: bool = False) -> dict[str, Any]:
    """Copy skills that exist only in a target back into the source directory.

    Args:
        target: Target name to collect from.
        dry_run: Preview without copying.
        force: Overwrite skills that already exist in the source.
    """
    args = _mock_args(target=target, dry_run=dry_run, force=force)
    with _write_lock:
        return _run_cmd(sync.cmd_collect, args)


@mcp.tool()
def skill_add_target(name: str, path: str, mode: Optional[str] = None,
                     include: str = "", exclude: str = "") -> dict[str, Any]:
    """Add or replace a target in config.json.

    Args:
        name: Target name (e.g. "cursor").
        path: Skills directory of the agent.
        mode: One of "symlink", "merge", "copy". Defaults to the config's mode.
        include: Comma-separated include globs matched against flat skill names.
        exclude: Comma-separated exclude globs.
    """
    if mode is not None and mode not in sync.MODES:
        return {"success": False, "error": f"unknown mode '{mode}'"}
    args = _mock_args(name=name, path=path, mode=mode, include=include, exclude=exclude)
    with _write_lock:
        return _run_cmd(sync.cmd_add_target, args)


@mcp.tool()
def skill_remove_target(name: str) -> dict[str, Any]:
    """Remove a target from config.json. Files in the target are left untouched.

    Args:
        name: Target name to remove.
    """
    args = _mock_args(name=name)
    with _write_lock:
        return _run_cmd(sync.cmd_remove_target, args)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    mcp.run(transport="stdio")
