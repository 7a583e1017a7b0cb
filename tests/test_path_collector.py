"""
Tests for path_collector.py: target resolution, dedup, ignore handling and
full-codebase concatenation.
"""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "scripts"))

from codeward.config_loader import ScanConfig
from codeward.ignore_rules import IgnoreMatcher, IgnoreSet
from codeward.models import ScanTarget
from codeward.path_collector import PathCollector, to_scan_target


def _touch(root: Path, rel: str, content: str = "puts 1\n") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path):
    _touch(tmp_path, "file1.rb")
    _touch(tmp_path, "ignored_file.rb")
    _touch(tmp_path, "ignored_dir/x.rb")
    _touch(tmp_path, "app/models/user.rb")
    _touch(tmp_path, "app/views/index.erb")
    _touch(tmp_path, "README.md")
    return tmp_path


@pytest.fixture
def collector(project):
    return PathCollector(ScanConfig(), IgnoreMatcher(project_root=project))


# ============================================================================
# collect
# ============================================================================


class TestCollect:
    def test_ignore_scenario(self, project, collector):
        ignore_set = IgnoreSet.from_lines(["ignored_file.rb", "ignored_dir/"])
        targets = [str(project / "file1.rb"), str(project / "ignored_file.rb"), str(project / "ignored_dir/x.rb")]
        assert collector.collect(targets, ignore_set) == {str(project / "file1.rb")}

    def test_force_include_bypasses_ignore(self, project, collector):
        ignore_set = IgnoreSet.from_lines(["ignored_file.rb", "ignored_dir/"])
        targets = [str(project / "ignored_file.rb"), str(project / "ignored_dir")]
        result = collector.collect(targets, ignore_set, force_include=True)
        assert result == {str(project / "ignored_file.rb"), str(project / "ignored_dir/x.rb")}

    def test_dedup_across_file_and_directory(self, project, collector):
        targets = [str(project / "file1.rb"), str(project) + os.sep]
        result = collector.collect(targets, IgnoreSet())
        assert sorted(result).count(str(project / "file1.rb")) == 1
        assert str(project / "app/models/user.rb") in result

    def test_directory_only_collects_source_extension(self, project, collector):
        result = collector.collect([str(project / "app")], IgnoreSet())
        assert result == {str(project / "app/models/user.rb")}

    def test_non_source_file_target_is_skipped(self, project, collector):
        assert collector.collect([str(project / "README.md")], IgnoreSet()) == set()

    def test_missing_target_warns(self, project, collector, caplog):
        result = collector.collect([str(project / "nope")], IgnoreSet())
        assert result == set()
        assert "Path not found" in caplog.text

    def test_hidden_entries_are_skipped(self, project, collector):
        _touch(project, ".git/hooks/x.rb")
        _touch(project, "lib/.hidden.rb")
        result = collector.collect([str(project)], IgnoreSet())
        assert str(project / ".git/hooks/x.rb") not in result
        assert str(project / "lib/.hidden.rb") not in result

    def test_ignore_applied_per_discovered_file(self, project, collector):
        ignore_set = IgnoreSet.from_lines(["user.rb"])
        result = collector.collect([str(project)], ignore_set)
        assert str(project / "app/models/user.rb") not in result
        assert str(project / "file1.rb") in result

    def test_relative_targets_resolved_against_cwd(self, project, collector, monkeypatch):
        monkeypatch.chdir(project)
        assert collector.collect(["file1.rb"], IgnoreSet()) == {str(project / "file1.rb")}

    def test_custom_extensions(self, project):
        config = ScanConfig(source_extensions=(".erb",))
        collector = PathCollector(config, IgnoreMatcher(project_root=project))
        assert collector.collect([str(project)], IgnoreSet()) == {str(project / "app/views/index.erb")}

    def test_collect_sorted(self, project, collector):
        result = collector.collect_sorted([str(project)], IgnoreSet())
        assert result == sorted(result)
        assert len(result) == 4

    def test_accepts_scan_targets(self, project, collector):
        target = to_scan_target(str(project / "file1.rb"))
        assert isinstance(target, ScanTarget)
        assert collector.collect([target], IgnoreSet()) == {str(project / "file1.rb")}


# ============================================================================
# concatenate_sources
# ============================================================================


class TestConcatenateSources:
    def test_headers_and_separators(self, project, collector):
        _touch(project, "file1.rb", "a = 1")
        blob = collector.concatenate_sources([str(project / "file1.rb"), str(project / "app/models/user.rb")])
        assert blob == "# File: file1.rb\na = 1\n\n# File: app/models/user.rb\nputs 1\n\n\n"

    def test_unreadable_file_is_skipped(self, project, collector, caplog):
        blob = collector.concatenate_sources([str(project / "gone.rb"), str(project / "file1.rb")])
        assert blob == "# File: file1.rb\nputs 1\n\n\n"
        assert "Could not read" in caplog.text

    def test_empty_list(self, collector):
        assert collector.concatenate_sources([]) == ""
