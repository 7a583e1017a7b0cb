"""
Path Collector - Resolve user-supplied paths into the set of files to scan.

Files are kept when their extension is one of ``config.source_extensions`` and
the ignore matcher does not exclude them.  Directories are walked recursively,
skipping hidden entries the way shell globbing does.
"""

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Set, Union

from codeward.ignore_rules import IgnoreMatcher, IgnoreSet
from codeward.models import ScanTarget

if TYPE_CHECKING:
    from codeward.config_loader import ScanConfig

logger = logging.getLogger(__name__)


def to_scan_target(raw: Union[str, os.PathLike, ScanTarget]) -> ScanTarget:
    if isinstance(raw, ScanTarget):
        return raw
    return ScanTarget(raw=str(raw), absolute=os.path.abspath(raw))


class PathCollector:
    """Builds the deduplicated file set for a paths-mode scan."""

    def __init__(self, config: "ScanConfig", matcher: IgnoreMatcher):
        self.config = config
        self.matcher = matcher

    @property
    def project_root(self) -> str:
        root = self.matcher.project_root
        return os.path.abspath(root if root is not None else os.getcwd())

    def is_source_file(self, path: str) -> bool:
        return Path(path).suffix in self.config.source_extensions

    def _walk_sources(self, directory: str) -> Iterable[str]:
        for dirpath, dirnames, filenames in os.walk(directory):
            # prune in place so os.walk never descends into hidden directories
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                candidate = os.path.join(dirpath, filename)
                if self.is_source_file(candidate) and os.path.isfile(candidate):
                    yield candidate

    def collect(
        self,
        targets: Iterable[Union[str, os.PathLike, ScanTarget]],
        ignore_set: IgnoreSet,
        force_include: bool = False,
    ) -> Set[str]:
        """Return the absolute paths of every file to scan."""
        files: Set[str] = set()

        for target in map(to_scan_target, targets):
            path = target.absolute
            if os.path.isfile(path):
                if self.is_source_file(path) and not self.matcher.matches(path, ignore_set, force_include):
                    files.add(path)
                else:
                    logger.debug("Skipping %s (extension or ignore rule)", target.raw)
            elif os.path.isdir(path):
                before = len(files)
                for candidate in self._walk_sources(path):
                    if not self.matcher.matches(candidate, ignore_set, force_include):
                        files.add(candidate)
                logger.debug("Collected %d file(s) under %s", len(files) - before, target.raw)
            else:
                logger.warning(f"⚠️  Path not found: {target.raw}")

        return files

    def collect_sorted(
        self,
        targets: Iterable[Union[str, os.PathLike, ScanTarget]],
        ignore_set: IgnoreSet,
        force_include: bool = False,
    ) -> List[str]:
        return sorted(self.collect(targets, ignore_set, force_include))

    def display_path(self, path: str) -> str:
        """Project-relative form of *path*, used in labels and headers."""
        rel = self.matcher.relative_path(path)
        return rel or os.path.basename(path)

    def concatenate_sources(self, files: Iterable[str]) -> str:
        """Build one blob with a ``# File:`` header before each file's content.

        Unreadable files are skipped with a warning.
        """
        parts: List[str] = []
        for path in files:
            try:
                content = Path(path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"⚠️  Could not read {path}: {e}")
                continue
            parts.append(f"# File: {self.display_path(path)}\n{content}\n\n")
        return "".join(parts)


__all__ = ["PathCollector", "to_scan_target"]
