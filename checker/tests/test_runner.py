"""
Tests for the retcheck runner.

These run the full pipeline (adapter, scopes, rule, suppressions, output)
on files written to a temporary directory.
"""

import json

import pytest

from engine import runner
from engine.config import EngineConfig, get_default_config
from engine.registry import discover_rules, get_enabled_rules
from engine.schema import validate_runner_output
from engine.types import Finding, RuleMeta, Requires


FLAGGED = "function foo(): number { return 1; }\nfoo();\n"
CLEAN = "function foo(): number { return 1; }\nlet f = foo();\n"


@pytest.fixture
def rules():
    runner.setup_adapters()
    discover_rules(runner.DEFAULT_RULE_PACKAGES)
    return get_enabled_rules(["errors.unused_return_value"], runner.DEFAULT_LANGUAGE)


@pytest.fixture
def project(tmp_path):
    (tmp_path / "flagged.ts").write_text(FLAGGED)
    (tmp_path / "clean.ts").write_text(CLEAN)
    (tmp_path / "view.tsx").write_text("const f = (): string => 'x';\nf();\n")
    (tmp_path / "notes.md").write_text("foo();\n")
    ignored = tmp_path / "node_modules" / "pkg"
    ignored.mkdir(parents=True)
    (ignored / "index.ts").write_text(FLAGGED)
    return tmp_path


class ExplodingRule:
    meta = RuleMeta(id="test.exploding", category="test", tier=0, priority="P2", langs=["typescript"])
    requires = Requires()

    def visit(self, ctx):
        raise RuntimeError("boom")


class TestCollectFiles:

    def test_collects_typescript_sources(self, project, rules):
        files = runner.collect_files([str(project)], runner.DEFAULT_LANGUAGE)
        names = sorted(f.rsplit("/", 1)[-1] for f in files)
        assert names == ["clean.ts", "flagged.ts", "view.tsx"]

    def test_exclude_patterns(self, project, rules):
        files = runner.collect_files([str(project)], runner.DEFAULT_LANGUAGE, exclude=["*/clean.ts", "*.tsx"])
        assert [f.rsplit("/", 1)[-1] for f in files] == ["flagged.ts"]


class TestAnalyzeFile:

    def test_reports_finding(self, project, rules):
        findings, parse_ms = runner.analyze_file(
            str(project / "flagged.ts"), runner.DEFAULT_LANGUAGE, rules, get_default_config()
        )

        assert parse_ms >= 0
        assert len(findings) == 1
        assert findings[0].rule == "errors.unused_return_value"
        assert findings[0].start_byte == FLAGGED.index("foo();")

    def test_clean_file(self, project, rules):
        findings, _ = runner.analyze_file(
            str(project / "clean.ts"), runner.DEFAULT_LANGUAGE, rules, get_default_config()
        )
        assert findings == []

    def test_tsx_file(self, project, rules):
        findings, _ = runner.analyze_file(
            str(project / "view.tsx"), runner.DEFAULT_LANGUAGE, rules, get_default_config()
        )
        assert len(findings) == 1

    def test_content_override(self, rules):
        findings, _ = runner.analyze_file(
            "virtual.ts", runner.DEFAULT_LANGUAGE, rules, get_default_config(), content=CLEAN
        )
        assert findings == []

    def test_severity_override_and_threshold(self, project, rules):
        config = get_default_config()
        config.rule_severities["errors.unused_return_value"] = "info"
        findings, _ = runner.analyze_file(str(project / "flagged.ts"), runner.DEFAULT_LANGUAGE, rules, config)
        assert [f.severity for f in findings] == ["info"]

        config.severity_threshold = "warn"
        findings, _ = runner.analyze_file(str(project / "flagged.ts"), runner.DEFAULT_LANGUAGE, rules, config)
        assert findings == []

    def test_suppression_comment(self, rules):
        code = "function foo(): number { return 1; }\nfoo(); // retcheck: ignore[errors.unused_return_value]\n"
        findings, _ = runner.analyze_file(
            "virtual.ts", runner.DEFAULT_LANGUAGE, rules, get_default_config(), content=code
        )
        assert findings == []

    def test_malformed_suppression_is_logged(self, rules, caplog):
        code = "foo(); // retcheck: ignore[]\n"
        runner.analyze_file("virtual.ts", runner.DEFAULT_LANGUAGE, rules, get_default_config(), content=code)
        assert "Empty suppression pattern" in caplog.text

    def test_per_file_limit(self, rules):
        code = "function foo(): number { return 1; }\n" + "foo();\n" * 5
        config = get_default_config()
        config.max_findings_per_file = 2
        findings, _ = runner.analyze_file("virtual.ts", runner.DEFAULT_LANGUAGE, rules, config, content=code)
        assert len(findings) == 2

    def test_failing_rule_is_isolated(self, rules, caplog):
        findings, _ = runner.analyze_file(
            "virtual.ts", runner.DEFAULT_LANGUAGE, [ExplodingRule()] + rules, get_default_config(), content=FLAGGED
        )
        assert len(findings) == 1
        assert "test.exploding" in caplog.text

    def test_deeply_nested_expression(self, rules):
        code = FLAGGED + "let s = " + " + ".join(["'a'"] * 3000) + ";\n"
        findings, _ = runner.analyze_file("virtual.ts", runner.DEFAULT_LANGUAGE, rules, get_default_config(), content=code)
        assert len(findings) == 1

    def test_scope_failure_is_isolated(self, rules, caplog, monkeypatch):
        def explode(adapter, tree, text):
            raise RecursionError("too deep")

        monkeypatch.setattr(runner, "build_scopes", explode)
        findings, _ = runner.analyze_file(
            "virtual.ts", runner.DEFAULT_LANGUAGE, rules, get_default_config(), content=FLAGGED
        )
        assert findings == []
        assert "Failed to build scopes" in caplog.text

    def test_unreadable_file(self, tmp_path, rules, caplog):
        findings, parse_ms = runner.analyze_file(
            str(tmp_path / "missing.ts"), runner.DEFAULT_LANGUAGE, rules, get_default_config()
        )
        assert (findings, parse_ms) == ([], 0.0)
        assert "Failed to read" in caplog.text


class TestRunAnalysisParallel:

    def test_parallel_matches_sequential(self, project, rules):
        files = runner.collect_files([str(project)], runner.DEFAULT_LANGUAGE)
        config = get_default_config()

        sequential, _ = runner.run_analysis_parallel(files, runner.DEFAULT_LANGUAGE, rules, config, jobs=1)
        parallel, _ = runner.run_analysis_parallel(files, runner.DEFAULT_LANGUAGE, rules, config, jobs=3)

        assert sequential == parallel
        assert len(sequential) == 2

    def test_total_limit(self, project, rules):
        files = runner.collect_files([str(project)], runner.DEFAULT_LANGUAGE)
        config = EngineConfig(enabled_rules=["*"], max_total_findings=1)
        findings, _ = runner.run_analysis_parallel(files, runner.DEFAULT_LANGUAGE, rules, config, jobs=1)
        assert len(findings) == 1

    @pytest.mark.parametrize("jobs", [1, 2])
    def test_deep_file_does_not_drop_others(self, tmp_path, rules, jobs):
        (tmp_path / "deep.ts").write_text(FLAGGED + "let s = " + " + ".join(["'a'"] * 3000) + ";\n")
        (tmp_path / "ok.ts").write_text(FLAGGED)
        files = runner.collect_files([str(tmp_path)], runner.DEFAULT_LANGUAGE)

        findings, _ = runner.run_analysis_parallel(files, runner.DEFAULT_LANGUAGE, rules, get_default_config(), jobs=jobs)
        assert sorted(f.file.rsplit("/", 1)[-1] for f in findings) == ["deep.ts", "ok.ts"]

    def test_failing_file_is_isolated(self, project, rules, caplog, monkeypatch):
        analyze_file = runner.analyze_file

        def flaky(file_path, *args, **kwargs):
            if file_path.endswith("view.tsx"):
                raise RuntimeError("boom")
            return analyze_file(file_path, *args, **kwargs)

        monkeypatch.setattr(runner, "analyze_file", flaky)
        files = runner.collect_files([str(project)], runner.DEFAULT_LANGUAGE)
        findings, _ = runner.run_analysis_parallel(files, runner.DEFAULT_LANGUAGE, rules, get_default_config(), jobs=1)

        assert [f.file.rsplit("/", 1)[-1] for f in findings] == ["flagged.ts"]
        assert "Failed to process" in caplog.text


class TestFormatOutput:

    def _finding(self, path: str) -> Finding:
        start = FLAGGED.index("foo();")
        return Finding(
            rule="errors.unused_return_value",
            message="Use the return value of 'foo'",
            file=path,
            start_byte=start,
            end_byte=start + 3,
            severity="warn",
            meta={"kind": "unused_return", "name": "foo"},
        )

    def test_json(self, project, rules):
        path = str(project / "flagged.ts")
        metrics = {"parse_ms": 1.0, "rules_ms": 1.0, "total_ms": 2.0}
        output = json.loads(runner.format_output(
            [self._finding(path)], 1, 1, metrics, "json", runner.read_text_cache([path])
        ))

        assert validate_runner_output(output) == []
        assert output["findings"][0]["range"]["startLine"] == 2

    def test_pretty(self, project, rules):
        path = str(project / "flagged.ts")
        metrics = {"parse_ms": 1.0, "rules_ms": 1.0, "total_ms": 2.0}
        output = runner.format_output(
            [self._finding(path)], 1, 1, metrics, "pretty", runner.read_text_cache([path])
        )

        assert "2:1  warn" in output
        assert "Use the return value of 'foo'" in output
        assert "found 1 issues" in output

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            runner.format_output([], 0, 0, {"parse_ms": 0, "rules_ms": 0, "total_ms": 0}, "xml")


class TestMain:

    def test_findings_exit_one(self, project, capsys):
        with pytest.raises(SystemExit) as exc:
            runner.main(["--paths", str(project), "--validate"])
        assert exc.value.code == 1

        output = json.loads(capsys.readouterr().out)
        assert output["files_scanned"] == 3
        assert len(output["findings"]) == 2

    def test_exit_zero_flag(self, project, capsys):
        runner.main(["--paths", str(project), "--exit-zero", "--format", "pretty"])
        assert "found 2 issues" in capsys.readouterr().out

    def test_clean_exit_zero(self, project, capsys):
        runner.main(["--paths", str(project / "clean.ts"), "--jobs", "1"])
        output = json.loads(capsys.readouterr().out)
        assert output["findings"] == []

    def test_no_files_exit_two(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            runner.main(["--paths", str(tmp_path)])
        assert exc.value.code == 2

    def test_config_file_exclude(self, project, capsys):
        (project / ".retcheck.yml").write_text("exclude: ['*/flagged.ts']\n")
        with pytest.raises(SystemExit) as exc:
            runner.main(["--paths", str(project), "--config", str(project / ".retcheck.yml")])
        assert exc.value.code == 1
        output = json.loads(capsys.readouterr().out)
        assert [f["file_path"].rsplit("/", 1)[-1] for f in output["findings"]] == ["view.tsx"]


def test_analyze_paths(project):
    output = runner.analyze_paths([str(project)])

    assert validate_runner_output(output) == []
    assert output["files_scanned"] == 3
    assert sorted(f["meta"]["name"] for f in output["findings"]) == ["f", "foo"]
