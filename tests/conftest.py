"""Shared fixtures: a fake cargo and a small project that reproduces E0384"""

import sys
import tempfile
import shutil
from pathlib import Path

import pytest

from ddebug.config import ReductionConfig, WorkspaceBackend


SCENARIO_SOURCE = """\
fn main() {
    let b = 0;
    let a = 0;
    let c = 0;
    b = 10;
}
"""

# Stands in for `cargo check --message-format=json`: reads src/main.rs from
# the working directory and reports errors the way cargo does.
FAKE_CARGO = r'''
import json
import os
import re
import sys
import time


def diagnostic(level, code, message, line):
    return {
        "reason": "compiler-message",
        "package_id": "demo 0.1.0",
        "message": {
            "level": level,
            "message": message,
            "code": {"code": code, "explanation": None} if code else None,
            "spans": [{
                "file_name": "src/main.rs",
                "line_start": line,
                "column_start": 5,
                "is_primary": True,
            }],
            "rendered": message,
        },
    }


def line_of(text, needle):
    index = text.find(needle)
    return text.count("\n", 0, index) + 1 if index >= 0 else 1


def check(text):
    if "fn main" not in text:
        return [diagnostic("error", "E0601", "`main` function not found in crate `demo`", 1)]

    assigned = re.search(r"^\s*b = 10;", text, re.MULTILINE) is not None
    declared = "let b = 0;" in text
    if assigned and declared:
        return [diagnostic("error", "E0384",
                           "cannot assign twice to immutable variable `b`",
                           line_of(text, "b = 10;"))]
    if assigned:
        return [diagnostic("error", "E0425", "cannot find value `b` in this scope",
                           line_of(text, "b = 10;"))]
    return []


def main():
    delay = float(os.environ.get("FAKE_CARGO_DELAY", "0"))
    if delay:
        time.sleep(delay)

    with open(os.path.join("src", "main.rs")) as f:
        text = f.read()

    for name in ("a", "c"):
        if "let %s = 0;" % name in text:
            print(json.dumps(diagnostic("warning", None, "unused variable: `%s`" % name,
                                        line_of(text, "let %s" % name))))

    errors = check(text)
    for record in errors:
        print(json.dumps(record))
    if errors:
        print(json.dumps({"reason": "compiler-message", "message": {
            "level": "error", "message": "aborting due to 1 previous error",
            "code": None, "spans": [], "rendered": None}}))
    print(json.dumps({"reason": "build-finished", "success": not errors}))
    sys.exit(101 if errors else 0)


main()
'''


@pytest.fixture
def tmp_path():
    """Temporary directory removed after the test"""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def fake_cargo(tmp_path):
    """argv of the fake build tool"""
    script = tmp_path / "fake_cargo.py"
    script.write_text(FAKE_CARGO)
    return [sys.executable, str(script)]


@pytest.fixture
def scenario_project(tmp_path):
    """Cargo project whose main.rs triggers E0384"""
    project = tmp_path / "demo"
    (project / "src").mkdir(parents=True)
    (project / "Cargo.toml").write_text('[package]\nname = "demo"\nversion = "0.1.0"\n')
    (project / "src" / "main.rs").write_text(SCENARIO_SOURCE)
    return project


@pytest.fixture
def config(fake_cargo):
    """Session config running the fake tool in copy workspaces"""
    return ReductionConfig(
        command=fake_cargo,
        timeout=30.0,
        grace=0.5,
        workspace_backend=WorkspaceBackend.COPY,
    )
