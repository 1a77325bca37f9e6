#!/usr/bin/env python3
"""Tests for lib/analysis_runner.py"""

import os
import logging
import subprocess
import sys
from typing import Any, List
from unittest.mock import patch

import pytest

from lib.analysis_runner import AnalysisSummary, prepare_results_dir, run_analysis, run_analyze_command
from lib.analysis_types import AnalyzeCommand, freeze_environment
from lib.constants import NoAnalyzableSourcesError

ENV = freeze_environment({"CAEmitSarifLog": "1", "INCLUDE": ""})


def _analyze_command(source: str) -> AnalyzeCommand:
    return AnalyzeCommand(source=source, compiler_path="cl.exe", args=(source, "/analyze:only"), env=ENV, sarif_log=f"{source}.0.sarif")


def _fake_run(failing: List[str]) -> Any:
    def run(argv: List[str], **kwargs: Any) -> subprocess.CompletedProcess:
        returncode = 2 if argv[1] in failing else 0
        return subprocess.CompletedProcess(args=argv, returncode=returncode, stdout=f"{argv[1]}\n", stderr="error C1083" if returncode else "")

    return run


class TestPrepareResultsDir:
    """Tests for prepare_results_dir function."""

    def test_creates_directory(self, temp_dir: str) -> None:
        """Test a missing results directory is created."""
        results_dir = os.path.join(temp_dir, "out", "sarif")

        assert prepare_results_dir(results_dir) == results_dir
        assert os.path.isdir(results_dir)

    def test_clean_sarif(self, temp_dir: str) -> None:
        """Test only top-level SARIF files are removed."""
        for name in ["a.cpp.0.sarif", "b.cpp.1.SARIF", "notes.txt"]:
            with open(os.path.join(temp_dir, name), "w", encoding="utf-8") as f:
                f.write("{}")
        os.makedirs(os.path.join(temp_dir, "keep"))
        with open(os.path.join(temp_dir, "keep", "c.sarif"), "w", encoding="utf-8") as f:
            f.write("{}")

        prepare_results_dir(temp_dir, clean_sarif=True)

        assert sorted(os.listdir(temp_dir)) == ["keep", "notes.txt"]
        assert os.listdir(os.path.join(temp_dir, "keep")) == ["c.sarif"]

    def test_keeps_sarif_without_clean(self, temp_dir: str) -> None:
        """Test existing results are left alone by default."""
        with open(os.path.join(temp_dir, "a.sarif"), "w", encoding="utf-8") as f:
            f.write("{}")

        prepare_results_dir(temp_dir)

        assert os.listdir(temp_dir) == ["a.sarif"]


class TestRunAnalyzeCommand:
    """Tests for run_analyze_command function."""

    def test_runs_in_build_dir_with_env(self, temp_dir: str) -> None:
        """Test cl.exe runs from the build directory with the command environment only."""
        command = _analyze_command("/repo/a.cpp")

        with patch("lib.analysis_runner.subprocess.run", side_effect=_fake_run([])) as mock_run:
            assert run_analyze_command(command, temp_dir) is None

        argv = mock_run.call_args[0][0]
        assert argv == ["cl.exe", "/repo/a.cpp", "/analyze:only"]
        assert mock_run.call_args[1]["cwd"] == temp_dir
        assert mock_run.call_args[1]["env"] == {"CAEmitSarifLog": "1", "INCLUDE": ""}

    def test_non_zero_exit(self, temp_dir: str) -> None:
        """Test a failing compiler is reported with its exit code."""
        with patch("lib.analysis_runner.subprocess.run", side_effect=_fake_run(["/repo/a.cpp"])):
            failure = run_analyze_command(_analyze_command("/repo/a.cpp"), temp_dir)

        assert failure is not None
        assert failure.source == "/repo/a.cpp"
        assert failure.reason == "exit code 2"

    def test_compiler_cannot_start(self, temp_dir: str) -> None:
        """Test a compiler that cannot be executed is a per-file failure."""
        with patch("lib.analysis_runner.subprocess.run", side_effect=FileNotFoundError("cl.exe")):
            failure = run_analyze_command(_analyze_command("/repo/a.cpp"), temp_dir)

        assert failure is not None
        assert "cl.exe" in failure.reason


class TestRunAnalysis:
    """Tests for run_analysis function."""

    def test_empty_command_list(self, temp_dir: str) -> None:
        """Test a project without analyzable sources fails."""
        with pytest.raises(NoAnalyzableSourcesError):
            run_analysis([], temp_dir)

    def test_partial_failure_continues(self, temp_dir: str, caplog: Any) -> None:
        """Test one failing source does not stop the others."""
        commands = [_analyze_command(s) for s in ["/repo/a.cpp", "/repo/b.cpp", "/repo/c.cpp"]]

        with caplog.at_level(logging.WARNING, logger="lib.analysis_runner"):
            with patch("lib.analysis_runner.subprocess.run", side_effect=_fake_run(["/repo/b.cpp"])) as mock_run:
                summary = run_analysis(commands, temp_dir)

        assert mock_run.call_count == 3
        assert sorted(summary.succeeded) == ["/repo/a.cpp", "/repo/c.cpp"]
        assert [f.source for f in summary.failed] == ["/repo/b.cpp"]
        assert summary.total == 3
        assert "Compilation failed for /repo/b.cpp" in caplog.text

    @pytest.mark.parametrize("max_workers", [2, 8])
    def test_parallel_workers(self, temp_dir: str, max_workers: int) -> None:
        """Test every command runs exactly once with several workers."""
        sources = [f"/repo/file{i}.cpp" for i in range(10)]

        with patch("lib.analysis_runner.subprocess.run", side_effect=_fake_run(["/repo/file3.cpp", "/repo/file7.cpp"])) as mock_run:
            summary = run_analysis([_analyze_command(s) for s in sources], temp_dir, max_workers=max_workers)

        assert mock_run.call_count == 10
        assert sorted(summary.succeeded + [f.source for f in summary.failed]) == sorted(sources)
        assert sorted(f.source for f in summary.failed) == ["/repo/file3.cpp", "/repo/file7.cpp"]


def _python_command(source: str, code: str) -> AnalyzeCommand:
    """Command running the current interpreter in place of cl.exe."""
    return AnalyzeCommand(source=source, compiler_path=sys.executable, args=("-c", code), env=freeze_environment(os.environ), sarif_log=f"{source}.0.sarif")


class TestRunAnalysisIsolation:
    """Tests that one misbehaving compiler run never aborts the others."""

    def test_undecodable_output(self, temp_dir: str) -> None:
        """Test output in a foreign code page is decoded with replacement characters."""
        commands = [
            _python_command("/repo/a.cpp", "print('a.cpp')"),
            _python_command("/repo/b.cpp", "import sys; sys.stdout.buffer.write(b'\\xff\\xfe warning C6001\\n'); sys.stderr.buffer.write(b'\\x81\\x8d')"),
            _python_command("/repo/c.cpp", "import sys; sys.stdout.buffer.write(b'\\xe9chec\\n'); sys.exit(3)"),
        ]

        summary = run_analysis(commands, temp_dir)

        assert sorted(summary.succeeded) == ["/repo/a.cpp", "/repo/b.cpp"]
        assert [(f.source, f.reason) for f in summary.failed] == [("/repo/c.cpp", "exit code 3")]

    def test_invalid_argument(self, temp_dir: str) -> None:
        """Test an argument the OS rejects (embedded NUL) is a per-file failure."""
        commands = [_python_command("/repo/a.cpp", "pass"), _python_command("/repo/b.cpp", "print('x')\0")]

        summary = run_analysis(commands, temp_dir)

        assert summary.succeeded == ["/repo/a.cpp"]
        assert summary.failed[0].source == "/repo/b.cpp"
        assert "null" in summary.failed[0].reason

    def test_worker_exception(self, temp_dir: str) -> None:
        """Test an unexpected exception in one worker is recorded against its source."""
        commands = [_analyze_command(s) for s in ["/repo/a.cpp", "/repo/b.cpp", "/repo/c.cpp"]]

        def run(command: AnalyzeCommand, build_dir: str) -> Any:
            if command.source == "/repo/b.cpp":
                raise RuntimeError("worker crashed")
            return None

        with patch("lib.analysis_runner.run_analyze_command", side_effect=run):
            summary = run_analysis(commands, temp_dir, max_workers=2)

        assert sorted(summary.succeeded) == ["/repo/a.cpp", "/repo/c.cpp"]
        assert [(f.source, f.reason) for f in summary.failed] == [("/repo/b.cpp", "RuntimeError: worker crashed")]


class TestAnalysisSummary:
    """Tests for AnalysisSummary dataclass."""

    def test_total(self) -> None:
        assert AnalysisSummary().total == 0
