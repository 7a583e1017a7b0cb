"""
Ignore Rules - Decide which paths are excluded from a scan.

The ignore file (``.codewardignore`` by default) holds one glob pattern per
line.  ``#`` starts a comment line, a leading ``!`` re-includes a path and a
trailing ``/`` scopes the pattern to a directory tree anchored at the project
root.  Rules are evaluated in file order and the first matching rule decides.

Functions:
    parse_ignore_line: Turn one raw line into an IgnoreRule (or None)

Classes:
    IgnoreSet: Ordered, immutable collection of rules
    IgnoreMatcher: Applies an IgnoreSet to a path
"""

import logging
import os
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Union

from codeward.exceptions import IgnoreFileError
from codeward.models import IgnoreRule

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def parse_ignore_line(line: str) -> Optional[IgnoreRule]:
    """Parse one ignore-file line; blank lines and comments give ``None``."""
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    negated = text.startswith("!")
    if negated:
        text = text[1:]

    directory_scoped = text.endswith("/")
    if directory_scoped:
        text = text.rstrip("/")

    if not text:
        return None
    return IgnoreRule(pattern=text, negated=negated, directory_scoped=directory_scoped)


class IgnoreSet:
    """Ordered sequence of ignore rules, loaded once per run."""

    def __init__(self, rules: Iterable[IgnoreRule] = ()):
        self._rules: Tuple[IgnoreRule, ...] = tuple(rules)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "IgnoreSet":
        return cls(rule for rule in map(parse_ignore_line, lines) if rule is not None)

    @classmethod
    def read(cls, path: PathLike) -> "IgnoreSet":
        """Read an ignore file, raising IgnoreFileError if it is unusable."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IgnoreFileError(f"Cannot read ignore file {path}: {e}") from e
        return cls.from_lines(text.splitlines())

    @classmethod
    def load(cls, path: PathLike) -> "IgnoreSet":
        """Load an ignore file, falling back to an empty set.

        A missing file is the normal case and is silent.  A file that exists
        but cannot be read or decoded is logged as a warning.
        """
        if not Path(path).exists():
            logger.debug("No ignore file at %s", path)
            return cls()
        try:
            ignore_set = cls.read(path)
        except IgnoreFileError as e:
            logger.warning(f"⚠️  {e}; continuing without ignore rules")
            return cls()
        logger.debug("Loaded %d ignore rules from %s", len(ignore_set), path)
        return ignore_set

    @property
    def rules(self) -> Tuple[IgnoreRule, ...]:
        return self._rules

    def __iter__(self) -> Iterator[IgnoreRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __bool__(self) -> bool:
        return bool(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IgnoreSet):
            return NotImplemented
        return self._rules == other._rules

    def __hash__(self) -> int:
        return hash(self._rules)

    def __repr__(self) -> str:
        return f"IgnoreSet({list(self._rules)!r})"


def _glob_match(path: str, pattern: str) -> bool:
    """Shell-style match where wildcards never cross ``/``."""
    path_parts = path.split("/")
    pattern_parts = pattern.split("/")
    if len(path_parts) != len(pattern_parts):
        return False
    return all(fnmatchcase(p, pat) for p, pat in zip(path_parts, pattern_parts))


class IgnoreMatcher:
    """Decide whether a path is excluded by an IgnoreSet.

    Paths are compared in project-root-relative POSIX form.  The project root
    defaults to the current working directory at match time.
    """

    def __init__(self, project_root: Optional[PathLike] = None):
        self.project_root = project_root

    def relative_path(self, path: PathLike) -> str:
        root = os.path.abspath(self.project_root if self.project_root is not None else os.getcwd())
        absolute = os.path.abspath(path)
        try:
            rel = os.path.relpath(absolute, root)
        except ValueError:
            # different drive on Windows
            rel = absolute
        return Path(rel).as_posix() if rel != "." else ""

    def rule_matches(self, rule: IgnoreRule, rel_path: str) -> bool:
        if rule.directory_scoped:
            prefix = rule.pattern.strip("/")
            return rel_path == prefix or rel_path.startswith(prefix + "/")

        pattern = rule.pattern.lstrip("/")
        basename = rel_path.rsplit("/", 1)[-1]
        return _glob_match(rel_path, pattern) or fnmatchcase(basename, pattern)

    def matches(self, path: PathLike, ignore_set: IgnoreSet, force_include: bool = False) -> bool:
        """Return True when *path* must be excluded from the scan."""
        if force_include:
            return False

        rel_path = self.relative_path(path)
        for rule in ignore_set:
            if self.rule_matches(rule, rel_path):
                return not rule.negated
        return False


__all__ = ["parse_ignore_line", "IgnoreSet", "IgnoreMatcher"]
