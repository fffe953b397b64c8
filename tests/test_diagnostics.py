"""Tests for diagnostics parsing and error signatures"""

import json

import pytest

from ddebug.oracle import (
    Diagnostic,
    ErrorSignature,
    collect_diagnostics,
    normalize_message,
    parse_human_diagnostics,
    parse_json_diagnostics,
    substantive_errors,
)

HUMAN_OUTPUT = """\
error[E0384]: cannot assign twice to immutable variable `b`
 --> src/main.rs:5:5
  |
2 |     let b = 0;
  |         - first assignment to `b`
...
5 |     b = 10;
  |     ^^^^^^ cannot assign twice to immutable variable

error: aborting due to 1 previous error

For more information about this error, try `rustc --explain E0384`.
error: could not compile `demo` (bin "demo") due to 1 previous error
"""


def cargo_message(level, message, code=None, file_name="src/main.rs", line=5):
    return json.dumps({
        "reason": "compiler-message",
        "message": {
            "level": level,
            "message": message,
            "code": {"code": code, "explanation": None} if code else None,
            "spans": [{"file_name": file_name, "line_start": line, "column_start": 5, "is_primary": True}],
            "rendered": None,
        },
    })


class TestNormalize:
    """Test message normalization"""

    def test_quoted_names_are_masked(self):
        """Identifiers in backticks do not matter"""
        assert (normalize_message("cannot find value `b` in this scope")
                == normalize_message("cannot find value `counter` in this scope"))

    def test_whitespace_collapsed(self):
        """Runs of whitespace become one space"""
        assert normalize_message("  a \n  b ") == "a b"


class TestParsing:
    """Test diagnostic stream parsing"""

    def test_cargo_json(self):
        """Cargo records are unwrapped, other records skipped"""
        output = "\n".join([
            json.dumps({"reason": "compiler-artifact", "target": {}}),
            cargo_message("warning", "unused variable: `a`", line=3),
            cargo_message("error", "cannot assign twice to immutable variable `b`", code="E0384"),
            json.dumps({"reason": "build-finished", "success": False}),
            "not json",
        ])
        diagnostics = parse_json_diagnostics(output)

        assert [d.level for d in diagnostics] == ["warning", "error"]
        error = diagnostics[1]
        assert error.code == "E0384"
        assert error.location() == "src/main.rs:5:5"

    def test_bare_rustc_json(self):
        """rustc --error-format=json records parse without a wrapper"""
        record = json.loads(cargo_message("error", "mismatched types", code="E0308"))["message"]
        diagnostics = parse_json_diagnostics(json.dumps(record))
        assert diagnostics[0].code == "E0308"

    def test_lint_names_are_not_codes(self):
        """Lint codes are dropped"""
        diagnostics = parse_json_diagnostics(cargo_message("warning", "unused", code="unused_variables"))
        assert diagnostics[0].code is None

    def test_human_output(self):
        """Header and first location of each message are used"""
        diagnostics = parse_human_diagnostics(HUMAN_OUTPUT)

        first = diagnostics[0]
        assert first.code == "E0384"
        assert first.file == "src/main.rs"
        assert (first.line, first.column) == (5, 5)
        assert len(substantive_errors(diagnostics)) == 1

    def test_collect_falls_back_to_human(self):
        """Human output is parsed when there is no JSON"""
        diagnostics = collect_diagnostics("", HUMAN_OUTPUT)
        assert diagnostics[0].code == "E0384"

    def test_summaries_are_not_substantive(self):
        """Build trailers never count as the error"""
        diagnostics = [
            Diagnostic(level="error", message="aborting due to 2 previous errors"),
            Diagnostic(level="error", message="could not compile `demo`"),
            Diagnostic(level="warning", message="unused variable: `a`"),
        ]
        assert substantive_errors(diagnostics) == []


class TestErrorSignature:
    """Test signature parsing and matching"""

    @pytest.mark.parametrize("text,code,fragment", [
        ("E0384", "E0384", ""),
        ("E0384: cannot assign twice", "E0384", "cannot assign twice"),
        ("error[E0384]: cannot assign twice to immutable variable `b`", "E0384",
         "cannot assign twice to immutable variable `_`"),
        ("mismatched types", None, "mismatched types"),
    ])
    def test_parse(self, text, code, fragment):
        """All accepted signature forms"""
        signature = ErrorSignature.parse(text)
        assert signature.code == code
        assert signature.fragment == fragment

    def test_parse_empty(self):
        """Empty signatures are rejected"""
        with pytest.raises(ValueError):
            ErrorSignature.parse("  ")

    def test_matches(self):
        """Code and normalized message must both match"""
        error = Diagnostic(level="error", code="E0384",
                           message="cannot assign twice to immutable variable `x`")
        signature = ErrorSignature.from_diagnostic(
            Diagnostic(level="error", code="E0384",
                       message="cannot assign twice to immutable variable `b`")
        )

        assert signature.matches(error)
        assert not signature.matches(Diagnostic(level="error", code="E0425", message=error.message))
        assert not signature.matches(Diagnostic(level="warning", code="E0384", message=error.message))
        assert ErrorSignature.parse("E0384").matches(error)
