"""Source discovery for analysis runs.

Walks the project tree once, applying built-in directory exclusions, config
``exclude`` globs and the patterns of ``.claudeignore``, and hands the engine
relative POSIX paths. Also resolves the changed-file set for
``--changes-only`` through git.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from cmsaudit.core import CMSAUDIT_DIR_NAME, IGNORE_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 1_000_000
_BINARY_SNIFF_BYTES = 8192

DEFAULT_EXCLUDED_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".vs",
        ".idea",
        ".next",
        ".nuxt",
        ".turbo",
        ".cache",
        "node_modules",
        "bin",
        "obj",
        "dist",
        "__pycache__",
        CMSAUDIT_DIR_NAME,
    }
)

SENSITIVE_FILE_PATTERNS: tuple[str, ...] = (
    "**/.env",
    "**/.env.*",
    "**/*.pfx",
    "**/*.p12",
    "**/*.pem",
    "**/*.key",
    "**/secrets.json",
    "**/*.publishsettings",
)


class ChangesUnavailableError(RuntimeError):
    """Raised when --changes-only cannot ask git for the changed files."""


# ---------------------------------------------------------------------------
# Glob matching
# ---------------------------------------------------------------------------

_glob_cache: dict[str, re.Pattern[str]] = {}


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    compiled = _glob_cache.get(pattern)
    if compiled is not None:
        return compiled
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif c == "*":
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(c))
            i += 1
    compiled = re.compile("".join(out) + r"\Z", re.IGNORECASE)
    _glob_cache[pattern] = compiled
    return compiled


def glob_match(path: str, pattern: str) -> bool:
    """Match a relative POSIX path against a glob. ``**`` spans directories; case-insensitive."""
    return _glob_to_regex(pattern).match(path) is not None


def match_any(path: str, patterns: Iterable[str]) -> bool:
    return any(glob_match(path, p) for p in patterns)


# ---------------------------------------------------------------------------
# .claudeignore
# ---------------------------------------------------------------------------


class IgnoreRules:
    """The gitignore subset understood in .claudeignore.

    Supports comments, blank lines, trailing ``/`` for directory-only
    patterns, leading ``/`` anchors and ``*``/``**`` globs. Negation is not
    supported and such lines are skipped.
    """

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self.dir_patterns: list[str] = []
        self.patterns: list[str] = []
        for raw in lines:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("!"):
                logger.debug("Negated ignore pattern not supported, skipping: %s", line)
                continue
            dir_only = line.endswith("/")
            line = line.rstrip("/")
            if not line:
                continue
            anchored = line.startswith("/") or "/" in line
            line = line.lstrip("/")
            glob = line if anchored else f"**/{line}"
            if dir_only:
                self.dir_patterns.append(glob)
            else:
                self.patterns.append(glob)

    @classmethod
    def from_file(cls, path: Path) -> IgnoreRules:
        if not path.is_file():
            return cls()
        try:
            return cls(path.read_text(encoding="utf-8").splitlines())
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s, ignoring it: %s", path, exc)
            return cls()

    def ignores_dir(self, rel: str) -> bool:
        return match_any(rel, self.dir_patterns) or match_any(rel, self.patterns)

    def ignores_file(self, rel: str) -> bool:
        return match_any(rel, self.patterns)

    def __bool__(self) -> bool:
        return bool(self.dir_patterns or self.patterns)


# ---------------------------------------------------------------------------
# SourceTree
# ---------------------------------------------------------------------------


class SourceTree:
    """Files of one project, enumerated once and read lazily.

    Paths are relative to *root* in POSIX form. In safe mode, secret stores
    (``.env``, certificates, keys) are never listed, so nothing reads them.
    """

    def __init__(
        self,
        root: Path,
        *,
        exclude: Iterable[str] = (),
        use_ignore_file: bool = True,
        safe_mode: bool = False,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self.root = root.resolve()
        self.exclude = tuple(exclude)
        self.safe_mode = safe_mode
        self.max_bytes = max_bytes
        self.ignore = IgnoreRules.from_file(self.root / IGNORE_FILENAME) if use_ignore_file else IgnoreRules()
        self.skipped: Counter[str] = Counter()
        self._paths: list[str] | None = None
        self._text_cache: dict[str, str | None] = {}

    def _excluded(self, rel: str, *, is_dir: bool) -> bool:
        if self.exclude and (match_any(rel, self.exclude) or (is_dir and match_any(rel + "/", self.exclude))):
            return True
        if is_dir:
            return self.ignore.ignores_dir(rel)
        return self.ignore.ignores_file(rel)

    def all_files(self) -> list[str]:
        """Every analyzable file, sorted."""
        if self._paths is not None:
            return self._paths
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            base = Path(dirpath)
            rel_dir = base.relative_to(self.root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            kept_dirs = []
            for d in sorted(dirnames):
                rel = f"{rel_dir}/{d}" if rel_dir else d
                if d in DEFAULT_EXCLUDED_DIRS or self._excluded(rel, is_dir=True):
                    self.skipped["ignored"] += 1
                    continue
                kept_dirs.append(d)
            dirnames[:] = kept_dirs
            for name in filenames:
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if self._excluded(rel, is_dir=False):
                    self.skipped["ignored"] += 1
                    continue
                if self.safe_mode and match_any(rel, SENSITIVE_FILE_PATTERNS):
                    self.skipped["sensitive"] += 1
                    continue
                try:
                    size = (base / name).stat().st_size
                except OSError:
                    self.skipped["unreadable"] += 1
                    continue
                if size > self.max_bytes:
                    self.skipped["too_large"] += 1
                    continue
                found.append(rel)
        found.sort()
        self._paths = found
        logger.debug("Enumerated %d files under %s (skipped: %s)", len(found), self.root, dict(self.skipped))
        return found

    def files(self, globs: Iterable[str], exclude_globs: Iterable[str] = ()) -> list[str]:
        globs = tuple(globs)
        exclude_globs = tuple(exclude_globs)
        return [p for p in self.all_files() if match_any(p, globs) and not match_any(p, exclude_globs)]

    def read_text(self, rel: str) -> str | None:
        """Decoded file text, or None for binary/unreadable files."""
        if rel in self._text_cache:
            return self._text_cache[rel]
        text: str | None
        try:
            data = (self.root / rel).read_bytes()
        except OSError as exc:
            logger.debug("Could not read %s: %s", rel, exc)
            self.skipped["unreadable"] += 1
            text = None
        else:
            if b"\x00" in data[:_BINARY_SNIFF_BYTES]:
                self.skipped["binary"] += 1
                text = None
            else:
                text = data.decode("utf-8-sig", errors="replace")
        self._text_cache[rel] = text
        return text


# ---------------------------------------------------------------------------
# Changed files (git)
# ---------------------------------------------------------------------------


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
        timeout=30,
    )
    return result.stdout


def changed_files(root: Path, base: str = "HEAD") -> set[str]:
    """Files changed against *base* plus untracked files, relative to *root*.

    Raises ChangesUnavailableError when git is missing, *root* is not inside
    a repository, or *base* does not resolve.
    """
    if shutil.which("git") is None:
        msg = "git is not installed; --changes-only needs git"
        raise ChangesUnavailableError(msg)
    root = root.resolve()
    try:
        top = Path(_git(root, "rev-parse", "--show-toplevel").strip()).resolve()
        diff = _git(root, "diff", "--name-only", "--diff-filter=ACMR", base, "--")
        untracked = _git(root, "ls-files", "--others", "--exclude-standard", "--full-name")
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or str(exc)
        msg = f"Could not list changed files against '{base}': {detail}"
        raise ChangesUnavailableError(msg) from exc
    except (OSError, subprocess.TimeoutExpired) as exc:
        msg = f"Could not run git: {exc}"
        raise ChangesUnavailableError(msg) from exc

    result: set[str] = set()
    for line in [*diff.splitlines(), *untracked.splitlines()]:
        line = line.strip()
        if not line:
            continue
        absolute = (top / line).resolve()
        try:
            result.add(absolute.relative_to(root).as_posix())
        except ValueError:
            continue  # outside the analyzed subtree
    logger.info("Changes-only: %d changed file(s) against %s", len(result), base)
    return result
