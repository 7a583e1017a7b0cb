"""
Tests for runner.py: scan-mode resolution and end-to-end scans with fake
backends and static analyzers.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "scripts"))

from codeward.aggregator import UNAVAILABLE
from codeward.config_loader import ScanConfig
from codeward.runner import ScanMode, ScanRequest, ScanRunner, resolve_scan_mode


class FakeBackend:
    """Records prompts and answers with one finding per call."""

    def __init__(self, fail_on=None):
        self.prompts = []
        self.fail_on = fail_on

    def analyze(self, prompt, output_schema):
        self.prompts.append(prompt)
        if self.fail_on and self.fail_on in prompt:
            return None
        return {"security_risks": [{"type": "XSS", "location": f"call {len(self.prompts)}",
                                    "details": "d", "severity": "Low"}]}


class FakeAnalyzer:
    def __init__(self, name, output):
        self.name = name
        self.output = output
        self.calls = 0

    def run(self):
        self.calls += 1
        return self.output


def _write(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path):
    _write(tmp_path, "app/a.rb", "puts 'a'\n")
    _write(tmp_path, "app/b.rb", "puts 'b'\n")
    _write(tmp_path, "log/debug.rb", "puts 'log'\n")
    _write(tmp_path, ".codewardignore", "log/\n")
    return tmp_path


def _runner(project, backend=None, analyzers=(), diff="", **config):
    diff_reader = MagicMock()
    diff_reader.staged_diff.return_value = diff
    return ScanRunner(
        ScanConfig(**config),
        backend or FakeBackend(),
        analyzers,
        diff_reader=diff_reader,
        project_root=str(project),
    )


# ============================================================================
# resolve_scan_mode
# ============================================================================


class TestResolveScanMode:
    def test_default_is_diff(self):
        assert resolve_scan_mode([]) == ScanMode.DIFF

    def test_explicit_all(self):
        assert resolve_scan_mode([], ScanMode.ALL) == ScanMode.ALL

    def test_paths_only(self):
        assert resolve_scan_mode(["app"]) == ScanMode.PATHS

    @pytest.mark.parametrize("mode", [ScanMode.DIFF, ScanMode.ALL])
    def test_paths_win_over_explicit_mode(self, mode, caplog):
        assert resolve_scan_mode(["app"], mode) == ScanMode.PATHS
        assert "scanning the specified paths instead" in caplog.text


# ============================================================================
# Paths mode
# ============================================================================


class TestPathsMode:
    def test_files_in_sorted_order_with_labels(self, project):
        backend = FakeBackend()
        runner = _runner(project, backend)
        report = runner.run(ScanRequest(mode=ScanMode.PATHS, paths=(str(project),), only_ai=True))

        assert len(backend.prompts) == 2
        assert "app/a.rb" in backend.prompts[0]
        assert "app/b.rb" in backend.prompts[1]
        assert [r["location"] for r in report.ai_security_risks] == ["call 1", "call 2"]
        assert report.static_analysis_results == {}

    def test_force_include_scans_ignored(self, project):
        backend = FakeBackend()
        runner = _runner(project, backend)
        runner.run(ScanRequest(mode=ScanMode.PATHS, paths=(str(project),), only_ai=True, force_include=True))
        assert len(backend.prompts) == 3

    def test_large_file_is_chunked(self, project):
        _write(project, "big.rb", "x = 1\n" * 9)
        backend = FakeBackend()
        runner = _runner(project, backend, chunk_size=18)
        report = runner.run(ScanRequest(mode=ScanMode.PATHS, paths=(str(project / "big.rb"),), only_ai=True))
        assert len(backend.prompts) == 3
        assert "big.rb (chunk 1/3)" in backend.prompts[0]
        assert len(report.ai_security_risks) == 3

    def test_failed_unit_is_skipped(self, project):
        backend = FakeBackend(fail_on="puts 'a'")
        runner = _runner(project, backend)
        report = runner.run(ScanRequest(mode=ScanMode.PATHS, paths=(str(project / "app"),), only_ai=True))
        assert len(report.ai_security_risks) == 1

    def test_nothing_to_scan_returns_none(self, project):
        runner = _runner(project)
        assert runner.run(ScanRequest(mode=ScanMode.PATHS, paths=(str(project / "missing"),), only_ai=True)) is None

    def test_unreadable_file_skipped(self, project):
        (project / "app" / "bad.rb").write_bytes(b"\xff\xfe\xfa")
        backend = FakeBackend()
        report = _runner(project, backend).run(
            ScanRequest(mode=ScanMode.PATHS, paths=(str(project / "app"),), only_ai=True)
        )
        assert len(backend.prompts) == 2
        assert len(report.ai_security_risks) == 2


# ============================================================================
# Diff / all modes
# ============================================================================


class TestDiffAndAllModes:
    def test_diff_mode(self, project):
        backend = FakeBackend()
        report = _runner(project, backend, diff="+ eval(params[:x])\n").run(ScanRequest(only_ai=True))
        assert len(backend.prompts) == 1
        assert "eval(params[:x])" in backend.prompts[0]
        assert len(report.ai_security_risks) == 1

    def test_empty_diff_only_ai_is_nothing_to_scan(self, project):
        backend = FakeBackend()
        assert _runner(project, backend, diff="").run(ScanRequest(only_ai=True)) is None
        assert backend.prompts == []

    def test_all_mode_concatenates_files(self, project):
        backend = FakeBackend()
        report = _runner(project, backend).run(ScanRequest(mode=ScanMode.ALL, only_ai=True))
        assert len(backend.prompts) == 1
        assert "# File: app/a.rb\nputs 'a'\n\n\n# File: app/b.rb" in backend.prompts[0]
        assert "log/debug.rb" not in backend.prompts[0]
        assert len(report.ai_security_risks) == 1


# ============================================================================
# Static analyzers
# ============================================================================


class TestStaticAnalyzers:
    def test_outputs_normalized(self, project):
        brakeman = FakeAnalyzer("brakeman", {"warnings": [{"warning_type": "XSS"}]})
        audit = FakeAnalyzer("bundler_audit", None)
        report = _runner(project, analyzers=[brakeman, audit]).run(ScanRequest())

        assert brakeman.calls == 1 and audit.calls == 1
        assert report.static_analysis_results["brakeman"] == {"warnings": [{"warning_type": "XSS"}]}
        assert report.static_analysis_results["bundler_audit"]["status"] == UNAVAILABLE
        # empty diff: no AI units, but the report is still produced
        assert report.ai_security_risks == []

    def test_only_ai_skips_analyzers(self, project):
        brakeman = FakeAnalyzer("brakeman", {"warnings": []})
        _runner(project, analyzers=[brakeman], diff="x").run(ScanRequest(only_ai=True))
        assert brakeman.calls == 0

    def test_raising_analyzer_becomes_unavailable(self, project):
        broken = MagicMock()
        broken.name = "brakeman"
        broken.run.side_effect = RuntimeError("boom")
        report = _runner(project, analyzers=[broken]).run(ScanRequest())
        assert report.static_analysis_results["brakeman"]["status"] == UNAVAILABLE

    def test_uses_configured_checks_in_prompt(self, project):
        backend = FakeBackend()
        _runner(project, backend, diff="code\n", checks=("dangerous_eval",)).run(ScanRequest(only_ai=True))
        assert "Dangerous Code Execution" in backend.prompts[0]
        assert "Cross-Site Scripting" not in backend.prompts[0]

    def test_broken_custom_template_still_analyzes(self, project):
        backend = FakeBackend()
        report = _runner(
            project, backend, diff="code\n", prompt_templates={"default": "{code_content[body]}"}
        ).run(ScanRequest(only_ai=True))
        assert len(backend.prompts) == 1
        assert len(report.ai_security_risks) == 1
