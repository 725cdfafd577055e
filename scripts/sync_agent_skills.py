#!/usr/bin/env python3
"""Sync AI agent skills from a canonical source directory to multiple agent targets."""

from __future__ import annotations

import argparse
import fnmatch
import hashlib
import json
import os
import re
import shutil
import stat
import subprocess
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

# ---------------------------------------------------------------------------
# Terminal colors (respects NO_COLOR and non-TTY)
# ---------------------------------------------------------------------------

_USE_COLOR = (
    sys.stdout.isatty()
    and os.environ.get("NO_COLOR") is None
    and os.environ.get("TERM") != "dumb"
)


def _ansi(code: str) -> str:
    return f"\033[{code}m" if _USE_COLOR else ""


class C:
    """ANSI escape sequences, empty strings when color is disabled."""
    RESET = _ansi("0")
    BOLD = _ansi("1")
    DIM = _ansi("2")
    RED = _ansi("31")
    GREEN = _ansi("32")
    YELLOW = _ansi("33")
    BLUE = _ansi("34")
    MAGENTA = _ansi("35")
    CYAN = _ansi("36")
    BOLD_RED = _ansi("1;31")
    BOLD_GREEN = _ansi("1;32")
    BOLD_YELLOW = _ansi("1;33")
    BOLD_CYAN = _ansi("1;36")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CONFIG_DIR = Path.home() / ".skill-sync"
CONFIG_PATH = CONFIG_DIR / "config.json"
SKILLS_DIR = CONFIG_DIR / "skills"
BACKUPS_DIR = CONFIG_DIR / "backups"

SKILL_FILE = "SKILL.md"
MANIFEST_FILE = ".skill-sync-manifest.json"
FLAT_SEPARATOR = "__"
VCS_DIR = ".git"

MODES = ("symlink", "merge", "copy")
DEFAULT_MODE = "merge"

BACKUP_TS_FORMAT = "%Y%m%dT%H%M%S%fZ"
BACKUP_MAX_COUNT = 10
BACKUP_MAX_AGE_DAYS = 30
BACKUP_MAX_SIZE_MB = 500

KNOWN_AGENTS: dict[str, dict[str, Any]] = {
    "cursor": {
        "label": "Cursor",
        "skills_dir": Path.home() / ".cursor" / "skills",
    },
    "codex": {
        "label": "Codex",
        "skills_dir": Path.home() / ".codex" / "skills",
    },
    "claude": {
        "label": "Claude Code",
        "skills_dir": Path.home() / ".claude" / "skills",
    },
    "gemini": {
        "label": "Gemini CLI",
        "skills_dir": Path.home() / ".gemini" / "skills",
    },
    "antigravity": {
        "label": "Antigravity",
        "skills_dir": Path.home() / ".gemini" / "antigravity" / "skills",
    },
}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SyncError(RuntimeError):
    """Raised when a target cannot be reconciled."""


class ConflictError(SyncError):
    """A target link points somewhere other than the source directory."""

    def __init__(self, path: Path, destination: str) -> None:
        super().__init__(
            f"target is symlink to different location: {path} -> {destination}"
        )
        self.path = path
        self.destination = destination


class ConfigError(SyncError):
    """Raised when config.json holds an invalid target definition."""


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


class TargetStatus(str, Enum):
    UNKNOWN = "unknown"
    NOT_EXIST = "not exist"
    LINKED = "linked"
    HAS_FILES = "has files"
    CONFLICT = "conflict"
    BROKEN = "broken"
    MERGED = "merged"
    COPIED = "copied"


@dataclass
class DiscoveredSkill:
    source_path: Path
    rel_path: str
    flat_name: str
    is_in_repo: bool = False
    targets: Optional[list[str]] = None


@dataclass
class Target:
    path: Path
    mode: str = DEFAULT_MODE
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


@dataclass
class Manifest:
    managed: dict[str, str] = field(default_factory=dict)
    updated_at: str = ""


@dataclass
class SymlinkResult:
    previous: TargetStatus
    status: TargetStatus
    action: str = "none"


@dataclass
class MergeResult:
    linked: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class CopyResult:
    copied: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class PruneResult:
    removed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class NameCollision:
    name: str
    flat_names: list[str]


@dataclass
class TargetCollision:
    target_name: str
    name: str
    flat_names: list[str]


@dataclass
class CollisionReport:
    global_collisions: list[NameCollision] = field(default_factory=list)
    per_target: list[TargetCollision] = field(default_factory=list)


@dataclass
class TargetReport:
    name: str
    mode: str
    result: Any = None
    prune: Optional[PruneResult] = None
    error: Optional[str] = None


@dataclass
class DiffItem:
    action: str
    name: str
    detail: str


@dataclass
class LocalSkill:
    name: str
    path: Path
    size: int = 0


@dataclass
class CollectResult:
    collected: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def to_jsonable(value: Any) -> Any:
    """Convert result dataclasses (with Paths and enums) to plain JSON types."""
    if hasattr(value, "__dataclass_fields__"):
        value = asdict(value)
    return json.loads(json.dumps(value, default=str))


# ---------------------------------------------------------------------------
# CLI setup
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sync_agent_skills.py",
        description="Sync AI agent skills from one source directory to many agent targets.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Preview changes without writing")
    parser.add_argument("--verbose", action="store_true", help="Detailed output")
    parser.add_argument("--only", metavar="TARGET", help="Sync a single target")
    parser.add_argument("--yes", action="store_true", help="Skip confirmation prompts")
    parser.add_argument("--no-backup", action="store_true",
                        help="Do not back up target directories before sync")
    parser.set_defaults(force=False)

    sub = parser.add_subparsers(dest="command")

    init_p = sub.add_parser("init", help="Create config.json and detect agent targets")
    init_p.add_argument("--source", help="Source skills directory (default ~/.skill-sync/skills)")
    init_p.add_argument("--targets", default="",
                        help="Comma-separated agents to configure (default: detected)")
    init_p.add_argument("--mode", choices=MODES, help="Default sync mode")

    sync_p = sub.add_parser("sync", help="Reconcile every target with the source")
    sync_p.add_argument("--force", action="store_true",
                        help="Take ownership of unmanaged local copies in copy mode")

    sub.add_parser("status", help="Show source and target state")
    sub.add_parser("diff", help="Show what the next sync would change")
    sub.add_parser("check", help="Report skills sharing the same display name")

    col_p = sub.add_parser("collect", help="Copy local-only skills from a target into the source")
    col_p.add_argument("target", help="Target name")
    col_p.add_argument("--force", action="store_true",
                       help="Overwrite skills that already exist in the source")

    add_p = sub.add_parser("add-target", help="Add or update a target")
    add_p.add_argument("name", help="Target name")
    add_p.add_argument("path", help="Target skills directory")
    add_p.add_argument("--mode", choices=MODES, help="Sync mode for this target")
    add_p.add_argument("--include", default="", help="Comma-separated include globs")
    add_p.add_argument("--exclude", default="", help="Comma-separated exclude globs")

    rm_p = sub.add_parser("remove-target", help="Remove a target from config.json")
    rm_p.add_argument("name", help="Target name")

    return parser


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------


def section_header(title: str) -> None:
    width = 50
    rule = "─" * max(1, width - len(title) - 5)
    print(f"\n{C.BOLD_CYAN}─── {title} {rule}{C.RESET}")


def summary_line(label: str, count: int, detail: str = "") -> None:
    extra = f"  {C.DIM}({detail}){C.RESET}" if detail else ""
    print(f"  {label:15s} {C.BOLD}{count}{C.RESET}{extra}")


def log(msg: str) -> None:
    print(f"  {msg}")


def log_verbose(msg: str, args: argparse.Namespace) -> None:
    if args.verbose:
        print(f"  {C.DIM}[verbose] {msg}{C.RESET}")


def log_dry_run(msg: str) -> None:
    log(f"{C.MAGENTA}[dry-run]{C.RESET} {msg}")


def warn(msg: str) -> None:
    log(f"{C.BOLD_YELLOW}Warning:{C.RESET} {msg}")


def fail(msg: str) -> None:
    print(f"{C.BOLD_RED}Error:{C.RESET} {msg}")
    sys.exit(1)


def confirm(prompt: str, default: bool = True) -> bool:
    suffix = f"{C.BOLD}[Y/n]{C.RESET}" if default else f"{C.BOLD}[y/N]{C.RESET}"
    answer = input(f"{prompt} {suffix} ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def write_file(path: Path, content: str, args: argparse.Namespace) -> None:
    if args.dry_run:
        log_verbose(f"{C.MAGENTA}[dry-run]{C.RESET} Would write {path} ({len(content)} bytes)", args)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    log_verbose(f"{C.GREEN}Wrote{C.RESET} {path}", args)


# ---------------------------------------------------------------------------
# Frontmatter parser (minimal YAML subset for SKILL.md)
# ---------------------------------------------------------------------------


def _scalar(val: str) -> Any:
    if val.lower() in ("true", "false"):
        return val.lower() == "true"
    if len(val) >= 2 and val[0] == val[-1] and val[0] in ("'", '"'):
        return val[1:-1]
    return val


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Parse key: value YAML frontmatter between --- delimiters.

    Supports scalars, inline lists (``key: [a, b]``) and block lists
    (``key:`` followed by ``- item`` lines). Returns (metadata, body);
    without frontmatter, returns ({}, text).
    """
    if not text.startswith("---"):
        return {}, text
    end = text.find("\n---", 3)
    if end == -1:
        return {}, text
    fm_block = text[3:end].strip()
    body = text[end + 4:].lstrip("\n")
    meta: dict[str, Any] = {}
    list_key: Optional[str] = None
    for line in fm_block.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if list_key and line.startswith("- "):
            meta[list_key].append(_scalar(line[2:].strip()))
            continue
        list_key = None
        m = re.match(r"^([\w-]+)\s*:\s*(.*)$", line)
        if not m:
            continue
        key, val = m.group(1), m.group(2).strip()
        if not val:
            meta[key] = []
            list_key = key
        elif val.startswith("[") and val.endswith("]"):
            meta[key] = [_scalar(v.strip()) for v in val[1:-1].split(",") if v.strip()]
        else:
            meta[key] = _scalar(val)
    return meta, body


def _read_skill_meta(skill_dir: Path) -> dict[str, Any]:
    try:
        text = (skill_dir / SKILL_FILE).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return {}
    meta, _ = parse_frontmatter(text)
    return meta


def parse_skill_name(skill_dir: Path) -> str:
    """Display name declared in SKILL.md, or "" when absent."""
    name = _read_skill_meta(skill_dir).get("name", "")
    return name if isinstance(name, str) else ""


def _skill_targets(meta: dict[str, Any]) -> Optional[list[str]]:
    raw = meta.get("targets")
    if isinstance(raw, str) and raw:
        return [raw]
    if isinstance(raw, list):
        names = [str(t) for t in raw if str(t)]
        return names or None
    return None


# ---------------------------------------------------------------------------
# Discovery and filters
# ---------------------------------------------------------------------------


def flat_name_for(rel_path: str) -> str:
    return rel_path.replace("/", FLAT_SEPARATOR)


def is_tracked_repo_dir(name: str) -> bool:
    return name.startswith("_")


def discover_skills(source: Path) -> list[DiscoveredSkill]:
    """Find every directory under source that holds a SKILL.md file."""
    source = Path(os.path.abspath(source))
    skills: list[DiscoveredSkill] = []
    if not source.is_dir():
        return skills
    for dirpath, dirnames, filenames in os.walk(source):
        dirnames[:] = sorted(d for d in dirnames if d != VCS_DIR)
        if SKILL_FILE not in filenames:
            continue
        skill_dir = Path(dirpath)
        if skill_dir == source:
            continue
        rel_path = skill_dir.relative_to(source).as_posix()
        skills.append(DiscoveredSkill(
            source_path=skill_dir,
            rel_path=rel_path,
            flat_name=flat_name_for(rel_path),
            is_in_repo=is_tracked_repo_dir(rel_path.split("/")[0]),
            targets=_skill_targets(_read_skill_meta(skill_dir)),
        ))
    return skills


def should_sync(flat_name: str, include: list[str], exclude: list[str]) -> bool:
    if include and not any(fnmatch.fnmatchcase(flat_name, p) for p in include):
        return False
    return not any(fnmatch.fnmatchcase(flat_name, p) for p in exclude)


def filter_skills(skills: list[DiscoveredSkill], include: list[str],
                  exclude: list[str]) -> list[DiscoveredSkill]:
    return [s for s in skills if should_sync(s.flat_name, include, exclude)]


def skills_for_target(skills: list[DiscoveredSkill], name: str,
                      target: Target) -> list[DiscoveredSkill]:
    """Skills a target manages: its filters, then each skill's own targets list."""
    selected = filter_skills(skills, target.include, target.exclude)
    return [s for s in selected if s.targets is None or name in s.targets]


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


def is_link(path: Path) -> bool:
    """True for symlinks and, on Windows, directory junctions."""
    if os.path.islink(path):
        return True
    is_junction = getattr(os.path, "isjunction", None)
    return bool(is_junction and is_junction(path))


def resolve_link_target(path: Path) -> Path:
    """Absolute destination of a link, without following further links."""
    raw = os.readlink(path)
    if raw.startswith("\\\\?\\"):
        raw = raw[4:]
    dest = Path(raw)
    if not dest.is_absolute():
        dest = Path(path).parent / dest
    return Path(os.path.normpath(dest))


def _norm(path: Any) -> str:
    return os.path.normcase(os.path.normpath(os.path.abspath(path)))


def paths_equal(a: Any, b: Any) -> bool:
    return _norm(a) == _norm(b)


def path_within(path: Any, root: Any) -> bool:
    return _norm(path).startswith(_norm(root).rstrip(os.sep) + os.sep)


def create_link(link_path: Path, source: Path) -> None:
    """Create a directory junction on Windows, a symlink elsewhere."""
    if os.name == "nt":
        proc = subprocess.run(
            ["cmd", "/c", "mklink", "/J", str(link_path), os.path.abspath(source)],
            capture_output=True,
        )
        if proc.returncode == 0:
            return
    os.symlink(source, link_path, target_is_directory=True)


def remove_link(path: Path) -> None:
    if os.name == "nt" and os.path.isdir(path):
        os.rmdir(path)
    else:
        os.unlink(path)


# ---------------------------------------------------------------------------
# Status detection
# ---------------------------------------------------------------------------


def check_status(target_path: Path, source: Path) -> TargetStatus:
    """Classify a target (or a single skill slot) against its expected source."""
    try:
        info = os.lstat(target_path)
    except FileNotFoundError:
        return TargetStatus.NOT_EXIST
    except OSError:
        return TargetStatus.UNKNOWN

    if is_link(target_path):
        try:
            dest = resolve_link_target(target_path)
        except OSError:
            return TargetStatus.UNKNOWN
        if paths_equal(dest, source):
            if not os.path.exists(target_path):
                return TargetStatus.BROKEN
            return TargetStatus.LINKED
        return TargetStatus.CONFLICT

    if stat.S_ISDIR(info.st_mode):
        return TargetStatus.HAS_FILES
    return TargetStatus.UNKNOWN


def check_status_merge(target_path: Path, source: Path) -> tuple[TargetStatus, int, int]:
    """Status of a merge-mode target plus (linked, local) entry counts."""
    status = check_status(target_path, source)
    if status is not TargetStatus.HAS_FILES:
        return status, 0, 0

    linked = local = 0
    for entry in target_path.iterdir():
        if entry.name.startswith("."):
            continue
        if is_link(entry):
            try:
                dest = resolve_link_target(entry)
            except OSError:
                local += 1
                continue
            if path_within(dest, source) or paths_equal(dest, source):
                linked += 1
                continue
        local += 1

    if linked:
        return TargetStatus.MERGED, linked, local
    return TargetStatus.HAS_FILES, 0, local


def check_status_copy(target_path: Path) -> tuple[TargetStatus, int, int]:
    """Status of a copy-mode target plus (managed, local) entry counts."""
    try:
        info = os.lstat(target_path)
    except FileNotFoundError:
        return TargetStatus.NOT_EXIST, 0, 0
    except OSError:
        return TargetStatus.UNKNOWN, 0, 0
    if is_link(target_path):
        return TargetStatus.LINKED, 0, 0
    if not stat.S_ISDIR(info.st_mode):
        return TargetStatus.UNKNOWN, 0, 0

    manifest = read_manifest(target_path)
    local = sum(
        1 for entry in target_path.iterdir()
        if not entry.name.startswith(".")
        and entry.is_dir()
        and not is_link(entry)
        and entry.name not in manifest.managed
    )
    if manifest.managed:
        return TargetStatus.COPIED, len(manifest.managed), local
    return TargetStatus.HAS_FILES, 0, local


# ---------------------------------------------------------------------------
# Copy-mode manifest and content checksum
# ---------------------------------------------------------------------------


def read_manifest(target_path: Path) -> Manifest:
    """Read a target's manifest. Missing or corrupt files yield an empty one."""
    try:
        data = json.loads((target_path / MANIFEST_FILE).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return Manifest()
    if not isinstance(data, dict):
        return Manifest()
    managed = data.get("managed")
    if not isinstance(managed, dict):
        managed = {}
    return Manifest(
        managed={str(k): str(v) for k, v in managed.items()},
        updated_at=str(data.get("updated_at") or ""),
    )


def write_manifest(target_path: Path, manifest: Manifest) -> None:
    manifest.updated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    data = {"managed": dict(sorted(manifest.managed.items())), "updated_at": manifest.updated_at}
    (target_path / MANIFEST_FILE).write_text(json.dumps(data, indent=2) + "\n")


def remove_manifest(target_path: Path) -> None:
    (target_path / MANIFEST_FILE).unlink(missing_ok=True)


def _raise(err: OSError) -> None:
    raise err


def dir_checksum(path: Path) -> str:
    """SHA-256 over sorted (relative path, content) pairs, ignoring .git."""
    entries: list[tuple[str, bytes]] = []
    for dirpath, dirnames, filenames in os.walk(path, onerror=_raise):
        dirnames[:] = [d for d in dirnames if d != VCS_DIR]
        for fname in filenames:
            full = Path(dirpath) / fname
            rel = full.relative_to(path).as_posix()
            entries.append((rel, full.read_bytes()))
    entries.sort(key=lambda e: e[0])

    digest = hashlib.sha256()
    for rel, content in entries:
        digest.update(rel.encode("utf-8"))
        digest.update(b"\0")
        digest.update(content)
        digest.update(b"\0")
    return digest.hexdigest()


def dir_size(path: Path) -> int:
    total = 0
    for dirpath, _, filenames in os.walk(path):
        for fname in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, fname)).st_size
            except OSError:
                continue
    return total


# ---------------------------------------------------------------------------
# Symlink mode (whole-directory link)
# ---------------------------------------------------------------------------


def merge_directories(src: Path, dst: Path, args: argparse.Namespace) -> None:
    """Copy files from src into dst, never overwriting an existing path."""
    for dirpath, dirnames, filenames in os.walk(src):
        rel = Path(dirpath).relative_to(src)
        (dst / rel).mkdir(parents=True, exist_ok=True)
        # Links to directories are copied as links, not descended into.
        for name in [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]:
            dirnames.remove(name)
            filenames.append(name)
        for fname in filenames:
            dest = dst / rel / fname
            if os.path.lexists(dest):
                log_verbose(f"skip (exists): {(rel / fname).as_posix()}", args)
                continue
            shutil.copy2(os.path.join(dirpath, fname), dest, follow_symlinks=False)


def migrate_to_source(target_path: Path, source: Path, args: argparse.Namespace) -> None:
    """Move a target's existing files into the source directory."""
    source.parent.mkdir(parents=True, exist_ok=True)
    if source.exists():
        merge_directories(target_path, source, args)
        shutil.rmtree(target_path)
        return
    try:
        os.rename(target_path, source)
    except OSError:
        # Cross-device move
        shutil.copytree(target_path, source, symlinks=True)
        shutil.rmtree(target_path)


def reconcile_symlink(target: Target, source: Path, skills: list[DiscoveredSkill],
                      args: argparse.Namespace) -> SymlinkResult:
    """Converge a target to a single link pointing at the source directory."""
    path = target.path
    if not args.dry_run and not is_link(path) and path.is_dir():
        remove_manifest(path)

    status = check_status(path, source)
    if status is TargetStatus.LINKED:
        log_verbose(f"{path} already linked", args)
        return SymlinkResult(previous=status, status=status)

    if status is TargetStatus.CONFLICT:
        try:
            dest = str(resolve_link_target(path))
        except OSError:
            dest = "(unable to resolve target)"
        raise ConflictError(path, dest)

    actions = {
        TargetStatus.NOT_EXIST: ("created", f"Would create symlink: {path} -> {source}"),
        TargetStatus.HAS_FILES: ("migrated", f"Would migrate files from {path} to {source}, then create symlink"),
        TargetStatus.BROKEN: ("relinked", f"Would remove broken symlink and recreate: {path}"),
    }
    if status not in actions:
        raise SyncError(f"unknown target status for {path}: {status.value}")
    action, preview = actions[status]
    if args.dry_run:
        log_dry_run(preview)
        return SymlinkResult(previous=status, status=status, action=action)

    try:
        if status is TargetStatus.HAS_FILES:
            migrate_to_source(path, source, args)
        elif status is TargetStatus.BROKEN:
            remove_link(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        create_link(path, source)
    except OSError as exc:
        raise SyncError(f"failed to link {path}: {exc}") from exc
    log_verbose(f"Symlinked {path} -> {source}", args)
    return SymlinkResult(previous=status, status=TargetStatus.LINKED, action=action)


# ---------------------------------------------------------------------------
# Merge mode (one link per skill, local skills preserved)
# ---------------------------------------------------------------------------


def _prepare_skill_dir(target: Target, mode: str, args: argparse.Namespace) -> bool:
    """Turn a whole-directory link into a real directory. Returns True if the
    target was (or, in a dry run, would be) converted."""
    converting = is_link(target.path)
    if converting:
        if args.dry_run:
            log_dry_run(f"Would convert from symlink mode to {mode} mode: {target.path}")
        else:
            try:
                remove_link(target.path)
            except OSError as exc:
                raise SyncError(f"failed to remove symlink for {mode} conversion: {exc}") from exc
    if not args.dry_run:
        try:
            target.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SyncError(f"failed to create target directory {target.path}: {exc}") from exc
    return converting


def reconcile_merge(target: Target, source: Path, skills: list[DiscoveredSkill],
                    args: argparse.Namespace) -> MergeResult:
    result = MergeResult()
    converting = _prepare_skill_dir(target, "merge", args)
    if not args.dry_run:
        remove_manifest(target.path)

    for skill in skills:
        slot = target.path / skill.flat_name
        try:
            exists = not converting and os.path.lexists(slot)
            if not exists:
                if args.dry_run:
                    log_dry_run(f"Would create link: {slot} -> {skill.source_path}")
                else:
                    create_link(slot, skill.source_path)
                    log_verbose(f"Linked {skill.flat_name}", args)
                result.linked.append(skill.flat_name)
            elif is_link(slot):
                if paths_equal(resolve_link_target(slot), skill.source_path):
                    result.linked.append(skill.flat_name)
                    continue
                if args.dry_run:
                    log_dry_run(f"Would fix symlink: {skill.flat_name}")
                else:
                    remove_link(slot)
                    create_link(slot, skill.source_path)
                    log_verbose(f"Relinked {skill.flat_name}", args)
                result.updated.append(skill.flat_name)
            else:
                log_verbose(f"Skipping {slot} (not a symlink, preserving)", args)
                result.skipped.append(skill.flat_name)
        except OSError as exc:
            raise SyncError(f"failed to link {skill.flat_name}: {exc}") from exc

    return result


def prune_orphan_links(target: Target, source: Path, skills: list[DiscoveredSkill],
                       args: argparse.Namespace) -> PruneResult:
    """Remove slot links into the source whose skill is gone or filtered out.

    Real directories and links pointing outside the source are never touched.
    """
    result = PruneResult()
    if is_link(target.path) or not target.path.is_dir():
        return result
    valid = {s.flat_name for s in skills}

    for entry in sorted(target.path.iterdir()):
        name = entry.name
        if name.startswith(".") or name in valid or not is_link(entry):
            continue
        try:
            dest = resolve_link_target(entry)
        except OSError:
            result.warnings.append(f"{name}: unable to resolve link target, kept")
            continue
        if not path_within(dest, source):
            log_verbose(f"Keeping {name} (links outside source: {dest})", args)
            continue
        if args.dry_run:
            log_dry_run(f"Would remove orphan symlink: {entry}")
        else:
            try:
                remove_link(entry)
            except OSError as exc:
                result.warnings.append(f"{name}: failed to remove: {exc}")
                continue
            log_verbose(f"{C.YELLOW}Removed{C.RESET} orphan link {name}", args)
        result.removed.append(name)

    return result


# ---------------------------------------------------------------------------
# Copy mode (checksummed copies tracked by a manifest)
# ---------------------------------------------------------------------------


def remove_entry(path: Path) -> None:
    """Remove a slot whatever it holds: link, directory, or plain file."""
    if is_link(path):
        remove_link(path)
    elif path.is_dir():
        shutil.rmtree(path)
    elif os.path.lexists(path):
        path.unlink()


def _copy_skill(skill: DiscoveredSkill, slot: Path, manifest: Manifest, checksum: str) -> None:
    try:
        shutil.copytree(skill.source_path, slot)
    except OSError as exc:
        # A partial copy without a manifest key would look like local content.
        if skill.flat_name not in manifest.managed:
            shutil.rmtree(slot, ignore_errors=True)
        raise SyncError(f"failed to copy skill {skill.flat_name}: {exc}") from exc
    manifest.managed[skill.flat_name] = checksum


def reconcile_copy(target: Target, source: Path, skills: list[DiscoveredSkill],
                   args: argparse.Namespace) -> CopyResult:
    """Converge per-skill copies, recording each one in the target's manifest.

    The manifest is saved even when a skill fails, so copies finished earlier
    in the pass stay owned.
    """
    result = CopyResult()
    converting = _prepare_skill_dir(target, "copy", args)
    manifest = Manifest() if converting else read_manifest(target.path)

    try:
        for skill in skills:
            flat = skill.flat_name
            slot = target.path / flat
            try:
                checksum = dir_checksum(skill.source_path)
            except OSError as exc:
                raise SyncError(f"failed to checksum source skill {flat}: {exc}") from exc

            exists = not converting and os.path.lexists(slot)
            if exists and is_link(slot):
                # Leftover from merge or symlink mode
                if args.dry_run:
                    log_dry_run(f"Would replace symlink with copy: {flat}")
                else:
                    try:
                        remove_link(slot)
                    except OSError as exc:
                        raise SyncError(f"failed to remove link {flat}: {exc}") from exc
                exists = False

            if exists:
                owned = manifest.managed.get(flat)
                if owned is None and not args.force:
                    log_verbose(f"Skipping {slot} (unmanaged local copy, preserving)", args)
                    result.skipped.append(flat)
                    continue
                if owned == checksum and not args.force:
                    result.skipped.append(flat)
                    continue
                if args.dry_run:
                    log_dry_run(f"Would update copy: {flat}")
                else:
                    try:
                        remove_entry(slot)
                    except OSError as exc:
                        raise SyncError(f"failed to remove old copy {flat}: {exc}") from exc
                    _copy_skill(skill, slot, manifest, checksum)
                    log_verbose(f"Updated {flat}", args)
                result.updated.append(flat)
                continue

            if args.dry_run:
                log_dry_run(f"Would copy: {skill.source_path} -> {slot}")
            else:
                _copy_skill(skill, slot, manifest, checksum)
                log_verbose(f"Copied {flat}", args)
            result.copied.append(flat)
    finally:
        if not args.dry_run:
            try:
                write_manifest(target.path, manifest)
            except OSError as exc:
                raise SyncError(f"failed to write manifest: {exc}") from exc
    return result


def prune_orphan_copies(target: Target, source: Path, skills: list[DiscoveredSkill],
                        args: argparse.Namespace) -> PruneResult:
    """Delete manifest-owned copies whose skill is gone or filtered out."""
    result = PruneResult()
    manifest = read_manifest(target.path)
    valid = {s.flat_name for s in skills}

    for flat in sorted(manifest.managed):
        if flat in valid:
            continue
        entry = target.path / flat
        if args.dry_run:
            log_dry_run(f"Would remove orphan copy: {entry}")
        else:
            try:
                remove_entry(entry)
            except OSError as exc:
                result.warnings.append(f"{flat}: failed to remove: {exc}")
                continue
            del manifest.managed[flat]
            log_verbose(f"{C.YELLOW}Removed{C.RESET} orphan copy {flat}", args)
        result.removed.append(flat)

    if not args.dry_run and result.removed:
        write_manifest(target.path, manifest)
    return result


# ---------------------------------------------------------------------------
# Name collisions
# ---------------------------------------------------------------------------


def check_name_collisions(skills: list[DiscoveredSkill],
                          names: Optional[dict[str, str]] = None) -> list[NameCollision]:
    """Group skills by SKILL.md display name; report names used more than once."""
    groups: dict[str, list[str]] = {}
    for skill in skills:
        if names is not None:
            name = names.get(skill.flat_name, "")
        else:
            name = parse_skill_name(skill.source_path)
        if not name:
            continue
        groups.setdefault(name, []).append(skill.flat_name)
    return [NameCollision(name=n, flat_names=f) for n, f in groups.items() if len(f) > 1]


def check_name_collisions_for_targets(skills: list[DiscoveredSkill],
                                      targets: dict[str, Target]) -> CollisionReport:
    """Global collisions first, then per filtered target.

    Symlink targets and targets without filters are skipped: the first has no
    per-skill entries, the second mirrors the global set.
    """
    names = {s.flat_name: parse_skill_name(s.source_path) for s in skills}
    report = CollisionReport(global_collisions=check_name_collisions(skills, names))
    for target_name, target in targets.items():
        if target.mode == "symlink":
            continue
        if not target.include and not target.exclude:
            continue
        filtered = filter_skills(skills, target.include, target.exclude)
        for collision in check_name_collisions(filtered, names):
            report.per_target.append(TargetCollision(
                target_name=target_name,
                name=collision.name,
                flat_names=collision.flat_names,
            ))
    return report


def report_collisions(report: CollisionReport) -> None:
    if not report.global_collisions:
        return
    if report.per_target:
        section_header("Name conflicts detected")
        for tc in report.per_target:
            warn(f"target '{tc.target_name}': skill name '{tc.name}' is defined in multiple places:")
            for flat in tc.flat_names:
                log(f"  - {flat}")
        log(f"{C.DIM}Rename one in SKILL.md or adjust include/exclude filters{C.RESET}")
    else:
        section_header("Duplicate skill names")
        log(f"{C.DIM}Duplicate skill names exist but are isolated by target filters:{C.RESET}")
        for c in report.global_collisions:
            log(f"  '{c.name}' ({len(c.flat_names)} definitions)")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def read_config() -> dict[str, Any]:
    if not CONFIG_PATH.exists():
        fail(f"{CONFIG_PATH} not found. Run 'init' first.")
    try:
        data = json.loads(CONFIG_PATH.read_text())
    except ValueError as exc:
        fail(f"{CONFIG_PATH} is not valid JSON: {exc}")
    if not isinstance(data, dict):
        fail(f"{CONFIG_PATH} must contain a JSON object")
    return data


def write_config(data: dict[str, Any], args: argparse.Namespace) -> None:
    data["updated"] = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    write_file(CONFIG_PATH, content, args)


def _expand(path: str) -> Path:
    return Path(os.path.abspath(os.path.expanduser(path)))


def source_dir(config: dict[str, Any]) -> Path:
    return _expand(config.get("source") or str(SKILLS_DIR))


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return split_csv(value)
    if isinstance(value, list):
        return [str(v) for v in value if str(v)]
    return []


def load_targets(config: dict[str, Any]) -> dict[str, Target]:
    default_mode = config.get("mode") or DEFAULT_MODE
    if default_mode not in MODES:
        raise ConfigError(f"unknown default mode '{default_mode}'")
    targets: dict[str, Target] = {}
    for name, raw in (config.get("targets") or {}).items():
        if not isinstance(raw, dict) or not raw.get("path"):
            raise ConfigError(f"target '{name}' has no path")
        mode = raw.get("mode") or default_mode
        if mode not in MODES:
            raise ConfigError(f"target '{name}': unknown mode '{mode}'")
        targets[name] = Target(
            path=_expand(raw["path"]),
            mode=mode,
            include=_as_str_list(raw.get("include")),
            exclude=_as_str_list(raw.get("exclude")),
        )
    return targets


def select_targets(targets: dict[str, Target], only: Optional[str]) -> dict[str, Target]:
    if not only:
        return targets
    if only not in targets:
        raise ConfigError(f"unknown target '{only}'. Options: {', '.join(targets) or '(none)'}")
    return {only: targets[only]}


def detect_agents() -> list[str]:
    """Known agents whose tool directory exists on this machine."""
    return [name for name, info in KNOWN_AGENTS.items() if info["skills_dir"].parent.exists()]


# ---------------------------------------------------------------------------
# Backup system
# ---------------------------------------------------------------------------


def init_backup(command: str) -> Path:
    """Create a timestamped backup directory for this session."""
    BACKUPS_DIR.mkdir(parents=True, exist_ok=True)
    while True:
        ts = datetime.now(timezone.utc).strftime(BACKUP_TS_FORMAT)
        backup_dir = BACKUPS_DIR / ts
        try:
            backup_dir.mkdir()
            break
        except FileExistsError:
            continue
    meta = {"created": ts, "command": command}
    (backup_dir / "meta.json").write_text(json.dumps(meta, indent=2) + "\n")
    return backup_dir


def backup_targets(targets: dict[str, Target], args: argparse.Namespace) -> Optional[Path]:
    """Copy each real target directory (links kept as links) into a new backup."""
    existing = {n: t for n, t in targets.items() if t.path.is_dir() and not is_link(t.path)}
    if not existing:
        return None
    if args.dry_run:
        for name in existing:
            log_verbose(f"{C.MAGENTA}[dry-run]{C.RESET} Would back up target {name}", args)
        return None
    backup_dir = init_backup("sync")
    for name, target in existing.items():
        dest = backup_dir / "targets" / name
        try:
            shutil.copytree(target.path, dest, symlinks=True)
        except OSError as exc:
            warn(f"failed to back up {name}: {exc}")
            continue
        log_verbose(f"{C.BLUE}Backed up{C.RESET} {name} -> {dest}", args)

    removed = cleanup_backups()
    if removed:
        log_verbose(f"Removed {removed} old backup(s)", args)
    return backup_dir


def list_backups() -> list[Path]:
    """Backup directories, newest first."""
    if not BACKUPS_DIR.exists():
        return []
    return sorted(
        (d for d in BACKUPS_DIR.iterdir() if d.is_dir() and (d / "meta.json").exists()),
        reverse=True,
    )


def latest_backup() -> Optional[Path]:
    """Return the most recent backup directory, or None."""
    backups = list_backups()
    return backups[0] if backups else None


def _backup_age_days(backup_dir: Path) -> float:
    try:
        created = datetime.strptime(backup_dir.name, BACKUP_TS_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        created = datetime.fromtimestamp((backup_dir / "meta.json").stat().st_mtime, timezone.utc)
    return (datetime.now(timezone.utc) - created).total_seconds() / 86400


def cleanup_backups(max_count: int = BACKUP_MAX_COUNT, max_age_days: int = BACKUP_MAX_AGE_DAYS,
                    max_size_mb: int = BACKUP_MAX_SIZE_MB) -> int:
    """Delete backups beyond the retention limits. A limit of 0 disables it.

    The newest backup is always kept. Returns the number of backups removed.
    """
    removed = 0
    total_size = 0
    for i, backup_dir in enumerate(list_backups()):
        total_size += dir_size(backup_dir)
        if i == 0:
            continue
        expired = (
            (max_count and i >= max_count)
            or (max_age_days and _backup_age_days(backup_dir) > max_age_days)
            or (max_size_mb and total_size > max_size_mb * 1024 * 1024)
        )
        if not expired:
            continue
        try:
            shutil.rmtree(backup_dir)
        except OSError as exc:
            warn(f"failed to remove old backup {backup_dir.name}: {exc}")
            continue
        removed += 1
    return removed


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


RECONCILERS: dict[str, Callable[..., Any]] = {
    "symlink": reconcile_symlink,
    "merge": reconcile_merge,
    "copy": reconcile_copy,
}

PRUNERS: dict[str, Callable[..., PruneResult]] = {
    "merge": prune_orphan_links,
    "copy": prune_orphan_copies,
}


def sync_target(name: str, target: Target, source: Path, skills: list[DiscoveredSkill],
                args: argparse.Namespace) -> TargetReport:
    """Reconcile one target, then prune its orphans. Raises SyncError."""
    reconcile = RECONCILERS.get(target.mode)
    if reconcile is None:
        raise SyncError(f"unknown sync mode '{target.mode}'")
    source = Path(os.path.abspath(source))
    managed = [] if target.mode == "symlink" else skills_for_target(skills, name, target)

    report = TargetReport(name=name, mode=target.mode)
    report.result = reconcile(target, source, managed, args)

    prune = PRUNERS.get(target.mode)
    if prune is not None:
        try:
            report.prune = prune(target, source, managed, args)
        except (OSError, SyncError) as exc:
            report.prune = PruneResult(warnings=[f"prune failed: {exc}"])
    return report


def print_target_report(report: TargetReport, target: Target) -> None:
    name = report.name
    if report.error:
        log(f"{C.BOLD_RED}✗ {name}:{C.RESET} {report.error}")
        return

    result = report.result
    pruned = len(report.prune.removed) if report.prune else 0
    if isinstance(result, SymlinkResult):
        messages = {
            "none": "already linked",
            "created": "symlink created",
            "migrated": "files migrated to source, symlink created",
            "relinked": "broken symlink fixed",
        }
        detail = messages.get(result.action, result.status.value)
    elif isinstance(result, MergeResult):
        detail = (f"merged ({len(result.linked)} linked, {len(result.skipped)} local, "
                  f"{len(result.updated)} updated, {pruned} pruned)")
    else:
        detail = (f"copied ({len(result.copied)} new, {len(result.skipped)} skipped, "
                  f"{len(result.updated)} updated, {pruned} pruned)")
    log(f"{C.GREEN}✓ {name}:{C.RESET} {detail}")

    if target.mode != "symlink":
        if target.include:
            log(f"  {C.DIM}include: {', '.join(target.include)}{C.RESET}")
        if target.exclude:
            log(f"  {C.DIM}exclude: {', '.join(target.exclude)}{C.RESET}")
    if report.prune:
        for warning in report.prune.warnings:
            warn(warning)


def sync_all(config: dict[str, Any], args: argparse.Namespace) -> dict[str, TargetReport]:
    """Reconcile every configured target independently.

    A failing target is recorded in its report and does not stop the others.
    """
    source = source_dir(config)
    if not source.is_dir():
        raise SyncError(f"source directory does not exist: {source}")
    targets = select_targets(load_targets(config), args.only)
    skills = discover_skills(source)

    report_collisions(check_name_collisions_for_targets(skills, targets))

    if not args.dry_run and not args.no_backup:
        backup_targets(targets, args)

    section_header(f"Syncing {len(skills)} skills")
    if args.dry_run:
        warn("dry run mode - no changes will be made")

    reports: dict[str, TargetReport] = {}
    for name, target in targets.items():
        try:
            report = sync_target(name, target, source, skills, args)
        except (OSError, SyncError) as exc:
            report = TargetReport(name=name, mode=target.mode, error=str(exc))
        reports[name] = report
        print_target_report(report, target)
    return reports


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


def _slot_entries(target_path: Path) -> list[Path]:
    return sorted(e for e in target_path.iterdir() if not e.name.startswith("."))


def _diff_merge(target_path: Path, source: Path,
                wanted: dict[str, DiscoveredSkill]) -> list[DiffItem]:
    items: list[DiffItem] = []
    for flat, skill in sorted(wanted.items()):
        slot = target_path / flat
        if not os.path.lexists(slot):
            items.append(DiffItem("add", flat, "missing"))
        elif not is_link(slot):
            items.append(DiffItem("modify", flat, "local copy (preserved)"))
        else:
            try:
                ok = paths_equal(resolve_link_target(slot), skill.source_path)
            except OSError:
                ok = False
            if not ok:
                items.append(DiffItem("modify", flat, "link points elsewhere"))

    for entry in _slot_entries(target_path):
        if entry.name in wanted:
            continue
        if not is_link(entry):
            items.append(DiffItem("keep", entry.name, "local only (preserved)"))
            continue
        try:
            dest = resolve_link_target(entry)
        except OSError:
            continue
        if path_within(dest, source):
            items.append(DiffItem("remove", entry.name, "orphan (will be pruned)"))
    return items


def _diff_copy(target_path: Path, wanted: dict[str, DiscoveredSkill]) -> list[DiffItem]:
    items: list[DiffItem] = []
    manifest = read_manifest(target_path)
    for flat, skill in sorted(wanted.items()):
        slot = target_path / flat
        if not os.path.lexists(slot):
            items.append(DiffItem("add", flat, "missing"))
        elif is_link(slot):
            items.append(DiffItem("modify", flat, "link (will be replaced by copy)"))
        elif flat not in manifest.managed:
            items.append(DiffItem("modify", flat, "local copy (sync --force to replace)"))
        else:
            try:
                checksum = dir_checksum(skill.source_path)
            except OSError as exc:
                items.append(DiffItem("modify", flat, f"checksum failed: {exc}"))
                continue
            if checksum != manifest.managed[flat]:
                items.append(DiffItem("modify", flat, "content changed"))

    for flat in sorted(manifest.managed):
        if flat not in wanted:
            items.append(DiffItem("remove", flat, "orphan (will be pruned)"))

    for entry in _slot_entries(target_path):
        name = entry.name
        if name in wanted or name in manifest.managed:
            continue
        if entry.is_dir() and not is_link(entry):
            items.append(DiffItem("keep", name, "local only (preserved)"))
    return items


def diff_target(name: str, target: Target, source: Path,
                skills: list[DiscoveredSkill]) -> list[DiffItem]:
    """What the next sync of this target would change, without touching it."""
    if target.mode == "symlink":
        status = check_status(target.path, source)
        if status is TargetStatus.LINKED:
            return []
        return [DiffItem("modify", target.path.name, f"target {status.value}")]

    wanted = {s.flat_name: s for s in skills_for_target(skills, name, target)}
    if not os.path.lexists(target.path) or is_link(target.path):
        return [DiffItem("add", flat, "missing") for flat in sorted(wanted)]
    if target.mode == "copy":
        return _diff_copy(target.path, wanted)
    return _diff_merge(target.path, source, wanted)


# ---------------------------------------------------------------------------
# Collect (local target skills back into source)
# ---------------------------------------------------------------------------


def find_local_skills(target_path: Path) -> list[LocalSkill]:
    """Real directories in a target that the engine did not create."""
    if not target_path.is_dir() or is_link(target_path):
        return []
    manifest = read_manifest(target_path)
    skills: list[LocalSkill] = []
    for entry in _slot_entries(target_path):
        if is_link(entry) or not entry.is_dir() or entry.name in manifest.managed:
            continue
        skills.append(LocalSkill(name=entry.name, path=entry, size=dir_size(entry)))
    return skills


def collect_skills(local_skills: list[LocalSkill], source: Path,
                   args: argparse.Namespace) -> CollectResult:
    """Copy local skills into the source directory."""
    result = CollectResult()
    if not args.dry_run:
        source.mkdir(parents=True, exist_ok=True)
    for skill in local_skills:
        dest = source / skill.name
        if dest.exists() and not args.force:
            log_verbose(f"Skill '{skill.name}' already exists in source, skipping", args)
            result.skipped.append(skill.name)
            continue
        if args.dry_run:
            log_dry_run(f"Would collect skill {skill.name}")
            result.collected.append(skill.name)
            continue
        try:
            if dest.exists():
                shutil.rmtree(dest)
            shutil.copytree(skill.path, dest)
        except OSError as exc:
            result.failed[skill.name] = str(exc)
            continue
        log(f"{C.GREEN}Collected skill:{C.RESET} {skill.name}")
        result.collected.append(skill.name)
    return result


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def target_status(target: Target, source: Path) -> dict[str, Any]:
    if target.mode == "symlink":
        status = check_status(target.path, source)
        return {"status": status.value, "detail": ""}
    if target.mode == "copy":
        status, managed, local = check_status_copy(target.path)
        return {"status": status.value, "detail": f"{managed} managed, {local} local"}
    status, linked, local = check_status_merge(target.path, source)
    return {"status": status.value, "detail": f"{linked} linked, {local} local"}


def status_report(config: dict[str, Any]) -> dict[str, Any]:
    source = source_dir(config)
    skills = discover_skills(source)
    targets = load_targets(config)
    return {
        "source": str(source),
        "skills": [s.flat_name for s in skills],
        "tracked_repo_skills": sum(1 for s in skills if s.is_in_repo),
        "targets": {
            name: {
                "path": str(t.path),
                "mode": t.mode,
                "include": t.include,
                "exclude": t.exclude,
                **target_status(t, source),
            }
            for name, t in targets.items()
        },
        "last_updated": config.get("updated", "never"),
        "last_backup": (latest_backup() or Path("none")).name,
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace) -> None:
    print(f"\n{C.BOLD_CYAN}=== AI Agent Skills - First-Time Setup ==={C.RESET}\n")
    if CONFIG_PATH.exists():
        warn(f"{CONFIG_PATH} already exists and will be overwritten.")
        if not args.yes and not confirm("  Proceed?"):
            print(f"  {C.DIM}Aborted.{C.RESET}")
            return

    source = _expand(args.source) if args.source else SKILLS_DIR
    mode = args.mode or DEFAULT_MODE
    names = split_csv(args.targets) if args.targets else detect_agents()
    unknown = [n for n in names if n not in KNOWN_AGENTS]
    if unknown:
        fail(f"unknown agent(s): {', '.join(unknown)}. Options: {', '.join(KNOWN_AGENTS)}")

    config: dict[str, Any] = {
        "version": "1.0",
        "source": str(source),
        "mode": mode,
        "targets": {
            name: {
                "path": str(KNOWN_AGENTS[name]["skills_dir"]),
                "mode": mode,
                "include": [],
                "exclude": [],
            }
            for name in names
        },
    }
    if args.dry_run:
        log_dry_run(f"Would create source directory {source}")
    else:
        source.mkdir(parents=True, exist_ok=True)
    write_config(config, args)

    section_header("Setup")
    log(f"Source  -> {C.GREEN}{source}{C.RESET}")
    log(f"Mode    -> {C.GREEN}{mode}{C.RESET}")
    log(f"Targets -> {C.GREEN}{', '.join(names) or '(none)'}{C.RESET}")
    print(f"\n  Run {C.BOLD}sync{C.RESET} to link skills into each target.\n")


def cmd_sync(args: argparse.Namespace) -> dict[str, TargetReport]:
    config = read_config()
    try:
        reports = sync_all(config, args)
    except SyncError as exc:
        fail(str(exc))

    failed = [r.name for r in reports.values() if r.error]
    section_header("Summary")
    dry = f" {C.MAGENTA}(dry-run){C.RESET}" if args.dry_run else ""
    print(f"  {C.BOLD}{len(reports) - len(failed)}{C.RESET} of {len(reports)} targets synced.{dry}")
    print()
    if failed:
        fail(f"some targets failed to sync: {', '.join(failed)}")
    return reports


def cmd_status(args: argparse.Namespace) -> None:
    config = read_config()
    try:
        report = status_report(config)
    except ConfigError as exc:
        fail(str(exc))

    section_header("Source")
    log(f"{report['source']}")
    summary_line("Skills", len(report["skills"]),
                 f"{report['tracked_repo_skills']} in tracked repos")

    section_header(f"Targets ({len(report['targets'])})")
    if not report["targets"]:
        print(f"  {C.DIM}(none){C.RESET}")
    for name, info in report["targets"].items():
        color = C.GREEN if info["status"] in ("linked", "merged", "copied") else C.YELLOW
        detail = f"  {C.DIM}({info['detail']}){C.RESET}" if info["detail"] else ""
        print(f"  {C.BOLD}{name:15s}{C.RESET} {info['mode']:8s} {color}{info['status']:10s}{C.RESET}{detail}")
        log_verbose(f"{name}: {info['path']}", args)

    section_header("Last Updated")
    print(f"  {report['last_updated']}  {C.DIM}(last backup: {report['last_backup']}){C.RESET}")
    print()


DIFF_MARKERS = {
    "add": f"{C.GREEN}+",
    "modify": f"{C.YELLOW}~",
    "remove": f"{C.RED}-",
    "keep": f"{C.DIM}=",
}


def cmd_diff(args: argparse.Namespace) -> None:
    config = read_config()
    source = source_dir(config)
    try:
        targets = select_targets(load_targets(config), args.only)
    except ConfigError as exc:
        fail(str(exc))
    skills = discover_skills(source)

    for name, target in targets.items():
        section_header(f"{name} ({target.mode})")
        items = diff_target(name, target, source, skills)
        if not items:
            log(f"{C.GREEN}Fully synced{C.RESET}")
            continue
        for item in items:
            log(f"{DIFF_MARKERS[item.action]} {item.name}{C.RESET}  {C.DIM}{item.detail}{C.RESET}")
    print()


def cmd_check(args: argparse.Namespace) -> None:
    config = read_config()
    try:
        targets = load_targets(config)
    except ConfigError as exc:
        fail(str(exc))
    skills = discover_skills(source_dir(config))
    report = check_name_collisions_for_targets(skills, targets)

    section_header(f"Global collisions ({len(report.global_collisions)})")
    for c in report.global_collisions:
        log(f"'{c.name}': {', '.join(c.flat_names)}")
    section_header(f"Per-target collisions ({len(report.per_target)})")
    for tc in report.per_target:
        log(f"{tc.target_name}: '{tc.name}': {', '.join(tc.flat_names)}")
    print()


def cmd_collect(args: argparse.Namespace) -> None:
    config = read_config()
    try:
        targets = load_targets(config)
    except ConfigError as exc:
        fail(str(exc))
    if args.target not in targets:
        fail(f"unknown target '{args.target}'. Options: {', '.join(targets) or '(none)'}")

    local = find_local_skills(targets[args.target].path)
    section_header(f"Local skills in {args.target} ({len(local)})")
    if not local:
        print(f"  {C.DIM}(none){C.RESET}\n")
        return
    for skill in local:
        log(f"{skill.name:30s} {C.DIM}{skill.size} bytes{C.RESET}")

    result = collect_skills(local, source_dir(config), args)
    section_header("Summary")
    summary_line("Collected", len(result.collected))
    summary_line("Skipped", len(result.skipped), "already in source")
    for name, error in result.failed.items():
        warn(f"{name}: {error}")
    if result.collected and not args.dry_run:
        print(f"\n  Remove the local copies from the target and run {C.BOLD}sync{C.RESET} to link them.")
    print()


def cmd_add_target(args: argparse.Namespace) -> None:
    config = read_config()
    entry = {
        "path": str(_expand(args.path)),
        "mode": args.mode or config.get("mode") or DEFAULT_MODE,
        "include": split_csv(args.include),
        "exclude": split_csv(args.exclude),
    }
    config.setdefault("targets", {})[args.name] = entry
    write_config(config, args)
    log(f"{C.GREEN}Target '{args.name}' saved:{C.RESET} {entry['path']} ({entry['mode']})")


def cmd_remove_target(args: argparse.Namespace) -> None:
    config = read_config()
    targets = config.get("targets") or {}
    if args.name not in targets:
        fail(f"unknown target '{args.name}'")
    del targets[args.name]
    write_config(config, args)
    log(f"{C.YELLOW}Target '{args.name}' removed.{C.RESET} Files in the target directory were left untouched.")


COMMANDS: dict[str, Callable[[argparse.Namespace], Any]] = {
    "init": cmd_init,
    "sync": cmd_sync,
    "status": cmd_status,
    "diff": cmd_diff,
    "check": cmd_check,
    "collect": cmd_collect,
    "add-target": cmd_add_target,
    "remove-target": cmd_remove_target,
}


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    try:
        COMMANDS[args.command](args)
    except SyncError as exc:
        fail(str(exc))


if __name__ == "__main__":
    main()
