"""Tests for the build oracle"""

import sys
from pathlib import Path

import pytest

from ddebug.oracle import BuildOracle, ErrorSignature, Verdict
from ddebug.workspace import CopyWorkspace

from conftest import SCENARIO_SOURCE

E0384 = ErrorSignature.parse("E0384: cannot assign twice to immutable variable `b`")


@pytest.fixture
def workspace(scenario_project):
    ws = CopyWorkspace(scenario_project)
    yield ws
    ws.cleanup()


class TestBuildOracle:
    """Test verdict classification"""

    def test_reproduces(self, workspace, fake_cargo):
        """The target error is recognized"""
        outcome = BuildOracle(fake_cargo, Path("src/main.rs")).classify(workspace, E0384)

        assert outcome.verdict is Verdict.REPRODUCES
        assert outcome.exit_code == 101
        assert outcome.first_error().code == "E0384"

    def test_other_error(self, workspace, fake_cargo):
        """A different error is not a reproduction"""
        workspace.write_file(Path("src/main.rs"), "fn main() {\n    b = 10;\n}\n")
        outcome = BuildOracle(fake_cargo, Path("src/main.rs")).classify(workspace, E0384)

        assert outcome.verdict is Verdict.OTHER_ERROR
        assert outcome.first_error().code == "E0425"

    def test_no_error(self, workspace, fake_cargo):
        """A clean build is NO_ERROR; warnings do not count"""
        workspace.write_file(Path("src/main.rs"), "fn main() {\n    let a = 0;\n}\n")
        outcome = BuildOracle(fake_cargo, Path("src/main.rs")).classify(workspace, E0384)

        assert outcome.verdict is Verdict.NO_ERROR
        assert [d.level for d in outcome.diagnostics] == ["warning"]

    def test_run_without_signature(self, workspace, fake_cargo):
        """Initial classification reports errors as OTHER_ERROR"""
        outcome = BuildOracle(fake_cargo, Path("src/main.rs")).run(workspace)
        assert outcome.verdict is Verdict.OTHER_ERROR
        assert outcome.first_error().code == "E0384"

    def test_timeout(self, workspace):
        """A build over budget is killed and reported as TIMEOUT"""
        oracle = BuildOracle([sys.executable, "-c", "import time; time.sleep(30)"],
                             Path("src/main.rs"), timeout_sec=0.5)
        outcome = oracle.classify(workspace, E0384)

        assert outcome.verdict is Verdict.TIMEOUT
        assert not outcome.verdict.accepted

    def test_kill_event(self, workspace):
        """The kill event aborts running builds"""
        oracle = BuildOracle([sys.executable, "-c", "import time; time.sleep(30)"], Path("src/main.rs"))
        oracle.kill_event.set()
        assert oracle.classify(workspace, E0384).verdict is Verdict.TIMEOUT

    def test_missing_tool(self, workspace):
        """A tool that cannot be started is a process failure"""
        outcome = BuildOracle(["ddebug-no-such-cargo", "check"], Path("src/main.rs")).classify(workspace, E0384)

        assert outcome.verdict is Verdict.PROCESS_FAILURE
        assert "ddebug-no-such-cargo" in outcome.detail

    def test_crash_is_process_failure(self, workspace):
        """Death by signal is a process failure"""
        oracle = BuildOracle(
            [sys.executable, "-c", "import os, signal; os.kill(os.getpid(), signal.SIGKILL)"],
            Path("src/main.rs")
        )
        assert oracle.classify(workspace, E0384).verdict is Verdict.PROCESS_FAILURE

    def test_file_placeholder(self):
        """{file} expands to the target path"""
        oracle = BuildOracle(["rustc", "--error-format=json", "{file}"], Path("src/lib.rs"))
        assert oracle.argv() == ["rustc", "--error-format=json", "src/lib.rs"]

    def test_human_output_fallback(self, workspace):
        """Tools without JSON output are parsed from their text"""
        script = (
            "import sys; "
            "sys.stderr.write('error[E0384]: cannot assign twice to immutable variable `b`\\n"
            " --> src/main.rs:5:5\\n'); sys.exit(1)"
        )
        outcome = BuildOracle([sys.executable, "-c", script], Path("src/main.rs")).classify(workspace, E0384)
        assert outcome.verdict is Verdict.REPRODUCES

    def test_source_untouched(self, workspace, scenario_project, fake_cargo):
        """Classifying never modifies the original project"""
        BuildOracle(fake_cargo, Path("src/main.rs")).classify(workspace, E0384)
        assert (scenario_project / "src" / "main.rs").read_text() == SCENARIO_SOURCE
