"""Compiler diagnostics parsing and error signatures"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

_QUOTED = re.compile(r"`[^`]*`")
_SPACES = re.compile(r"\s+")
_CODE = re.compile(r"^E\d{4}$")
_TARGET_ERROR = re.compile(r"^\s*(?:error\[)?(E\d{4})\]?\s*(?::\s*(.*?))?\s*$", re.DOTALL)
_HUMAN_HEADER = re.compile(r"^(error|warning)(?:\[(E\d+)\])?:\s*(.*)$")
_HUMAN_LOCATION = re.compile(r"^-->\s*(.+?):(\d+):(\d+)\s*$")

# Trailer messages every failing build prints; they never identify an error.
SUMMARY_PATTERNS = (
    re.compile(r"^aborting due to"),
    re.compile(r"^could not compile"),
    re.compile(r"^Some errors have detailed explanations"),
    re.compile(r"^For more information about"),
)


def normalize_message(message: str) -> str:
    """Normalize a diagnostic message for comparison.

    Backtick-quoted names are replaced with a placeholder so that the same
    error about a different identifier still compares equal, and runs of
    whitespace are collapsed.
    """
    normalized = _QUOTED.sub("`_`", message)
    return _SPACES.sub(" ", normalized).strip()


@dataclass(frozen=True)
class Diagnostic:
    """One compiler message"""
    level: str
    message: str
    code: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    rendered: Optional[str] = None

    @property
    def is_error(self) -> bool:
        # ICEs are reported with level "error: internal compiler error"
        return self.level.startswith("error")

    @property
    def is_summary(self) -> bool:
        return any(p.match(self.message) for p in SUMMARY_PATTERNS)

    def location(self) -> str:
        if not self.file:
            return "<unknown>"
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class ErrorSignature:
    """Normalized identity of the diagnostic being reduced.

    Attributes:
        code: Error code such as ``E0384``, or None for uncoded errors
        fragment: Normalized message text that must appear in the message
    """
    code: Optional[str] = None
    fragment: str = ""

    def __post_init__(self):
        if not self.code and not self.fragment:
            raise ValueError("An error signature needs a code or a message fragment")

    @classmethod
    def from_diagnostic(cls, diagnostic: Diagnostic) -> "ErrorSignature":
        return cls(code=diagnostic.code, fragment=normalize_message(diagnostic.message))

    @classmethod
    def parse(cls, text: str) -> "ErrorSignature":
        """Parse a user-supplied signature.

        Accepted forms: ``E0384``, ``E0384: cannot assign twice``,
        ``error[E0384]: ...`` or a bare message fragment.
        """
        if not text or not text.strip():
            raise ValueError("Empty error signature")

        match = _TARGET_ERROR.match(text)
        if match:
            code, fragment = match.groups()
            return cls(code=code, fragment=normalize_message(fragment or ""))
        return cls(code=None, fragment=normalize_message(text))

    def matches(self, diagnostic: Diagnostic) -> bool:
        """True if the diagnostic is an instance of this error."""
        if not diagnostic.is_error:
            return False
        if self.code and diagnostic.code != self.code:
            return False
        if self.fragment and self.fragment not in normalize_message(diagnostic.message):
            return False
        return True

    def __str__(self) -> str:
        if self.code and self.fragment:
            return f"{self.code}: {self.fragment}"
        return self.code or self.fragment


def _from_rustc_json(message: Dict[str, Any]) -> Optional[Diagnostic]:
    if not isinstance(message, dict) or "level" not in message or "message" not in message:
        return None

    code_info = message.get("code")
    code = code_info.get("code") if isinstance(code_info, dict) else None
    if code is not None and not _CODE.match(str(code)):
        # Lint names (e.g. "unused_variables") are not error codes.
        code = None

    spans = message.get("spans") or []
    primary = next((s for s in spans if s.get("is_primary")), spans[0] if spans else None)

    return Diagnostic(
        level=str(message["level"]),
        message=str(message["message"]),
        code=code,
        file=primary.get("file_name") if primary else None,
        line=primary.get("line_start") if primary else None,
        column=primary.get("column_start") if primary else None,
        rendered=message.get("rendered"),
    )


def parse_json_diagnostics(output: str) -> List[Diagnostic]:
    """Parse a JSON-lines diagnostic stream.

    Handles both cargo ``compiler-message`` records and bare rustc
    diagnostics; non-JSON lines and other record kinds are skipped.
    """
    diagnostics = []
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue

        if record.get("reason") == "compiler-message":
            record = record.get("message")
        elif "reason" in record:
            continue

        diagnostic = _from_rustc_json(record)
        if diagnostic is not None:
            diagnostics.append(diagnostic)
    return diagnostics


def parse_human_diagnostics(output: str) -> List[Diagnostic]:
    """Parse rustc's human-readable output.

    Only the header line (``error[E0384]: message``) and the first location
    line (``--> file:line:col``) of each message are used.
    """
    diagnostics: List[Diagnostic] = []
    current: Optional[Dict[str, Any]] = None

    def flush():
        if current is not None:
            diagnostics.append(Diagnostic(**current))

    for raw in output.splitlines():
        line = raw.strip()
        header = _HUMAN_HEADER.match(line)
        if header:
            flush()
            level, code, message = header.groups()
            current = {"level": level, "code": code, "message": message}
            continue

        location = _HUMAN_LOCATION.match(line)
        if location and current is not None and "file" not in current:
            current["file"] = location.group(1)
            current["line"] = int(location.group(2))
            current["column"] = int(location.group(3))

    flush()
    return diagnostics


def collect_diagnostics(stdout: str, stderr: str) -> List[Diagnostic]:
    """Diagnostics from a build, preferring the structured stream."""
    diagnostics = parse_json_diagnostics(stdout) + parse_json_diagnostics(stderr)
    if diagnostics:
        return diagnostics
    return parse_human_diagnostics(stderr) or parse_human_diagnostics(stdout)


def substantive_errors(diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
    """Error diagnostics excluding build summary trailers."""
    return [d for d in diagnostics if d.is_error and not d.is_summary]
