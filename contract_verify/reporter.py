"""
contract_verify/reporter.py
═══════════════════════════

Diagnostic collection and rendering.

The :class:`DiagnosticReporter` accumulates the violations of ONE contract
module and, on :meth:`~DiagnosticReporter.finalize`, returns a
:class:`ValidationResult`: the violations in source order plus a pass/fail
verdict.  There is no de-duplication and no severity beyond "violation".

Output formats
──────────────
  • gcc   : ``file:line:col: error: message [errorId]``
  • json  : one cppcheck-addon JSON object per line
  • text  : colourful terminal rendering (termcolor)
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TextIO

from termcolor import colored

from contract_verify.errors import ContractVerifyError, ErrorCode
from contract_verify.events import SourceLocation

ADDON_NAME = "contract-verify"


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 - RECORDS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Violation:
    """
    One authoring-rule violation.

    Attributes
    ----------
    rule     : ErrorCode of the rule that fired
    location : where the offending construct is
    detail   : human-readable explanation (names the offending spelling)
    contract : identifier of the contract module
    """
    rule: ErrorCode
    location: SourceLocation
    detail: str
    contract: str = ""

    @property
    def rule_id(self) -> str:
        return self.rule.error_id

    def to_cppcheck_json(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": "error",
            "message": self.detail,
            "addon": ADDON_NAME,
            "errorId": self.rule_id,
            "extra": self.contract,
        }
        return result

    def to_json_str(self) -> str:
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        return f"{self.location}: error: {self.detail} [{self.rule_id}]"


@dataclass(frozen=True)
class InternalDiagnostic:
    """An engine error that stopped a module (kept apart from violations)."""
    code: ErrorCode
    message: str
    location: Optional[SourceLocation] = None

    @classmethod
    def from_exception(cls, exc: ContractVerifyError) -> InternalDiagnostic:
        loc = exc.location if isinstance(exc.location, SourceLocation) else None
        message = exc.message if loc is not None else str(exc)
        return cls(code=exc.code, message=message, location=loc)

    def to_gcc_format(self) -> str:
        where = str(self.location) if self.location else "<internal>"
        return f"{where}: internal error: {self.message} [{self.code.error_id}]"


@dataclass
class ValidationResult:
    """
    Outcome of validating one contract module.

    ``passed`` is true iff there are no violations and the walk was not
    aborted by an engine error.
    """
    contract: str
    violations: List[Violation] = field(default_factory=list)
    internal_errors: List[InternalDiagnostic] = field(default_factory=list)
    aborted: bool = False

    @property
    def passed(self) -> bool:
        return not self.violations and not self.aborted

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    def by_rule(self, rule_id: str) -> List[Violation]:
        return [v for v in self.violations if v.rule == rule_id]

    def to_json_lines(self) -> str:
        return "\n".join(v.to_json_str() for v in self.violations)

    def to_gcc_format(self) -> str:
        lines = [v.to_gcc_format() for v in self.violations]
        lines.extend(e.to_gcc_format() for e in self.internal_errors)
        return "\n".join(lines)

    def summary(self) -> str:
        if self.aborted:
            return f"{self.contract}: ABORTED ({len(self.internal_errors)} internal error(s))"
        if self.passed:
            return f"{self.contract}: passed"
        return f"{self.contract}: {self.violation_count} violation(s)"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 - REPORTER
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticReporter:
    """
    Per-module violation accumulator.

    >>> rep = DiagnosticReporter("QX")
    >>> rep.finalize().passed
    True
    """

    def __init__(self, contract: str = "") -> None:
        self.contract = contract
        self._violations: List[Violation] = []
        self._internal: List[InternalDiagnostic] = []
        self._aborted = False

    def report(self, rule: ErrorCode, location: SourceLocation, detail: str) -> Violation:
        violation = Violation(rule=rule, location=location, detail=detail,
                              contract=self.contract)
        self._violations.append(violation)
        return violation

    def record_internal_error(self, exc: ContractVerifyError) -> None:
        """Record an engine error; the module verdict becomes 'aborted'."""
        self._internal.append(InternalDiagnostic.from_exception(exc))
        self._aborted = True

    @property
    def violations(self) -> List[Violation]:
        return list(self._violations)

    def finalize(self) -> ValidationResult:
        # stable: reports emitted for the same spot keep emission order
        ordered = sorted(self._violations, key=lambda v: v.location.sort_key())
        return ValidationResult(
            contract=self.contract,
            violations=ordered,
            internal_errors=list(self._internal),
            aborted=self._aborted,
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 - RENDERING
# ═════════════════════════════════════════════════════════════════════════

def render_text(result: ValidationResult, stream: TextIO = sys.stdout,
                colour: Optional[bool] = None) -> None:
    """Rust-style rendering of one module's result."""
    use_colour = colour if colour is not None else (
        hasattr(stream, "isatty") and stream.isatty()
    )

    def paint(text: str, color: Optional[str] = None, attrs: Optional[list] = None) -> str:
        if not use_colour:
            return text
        return colored(text, color, attrs=attrs)

    lines: List[str] = []
    for v in result.violations:
        header = paint(f"error[{v.rule_id}]", "red", attrs=["bold"])
        lines.append(f"{header}: {paint(v.detail, attrs=['bold'])}")
        lines.append(f"  {paint('-->', 'blue', attrs=['bold'])} {v.location}")
        if v.rule.summary:
            lines.append(f"  = {paint('note', 'cyan', attrs=['bold'])}: {v.rule.summary}")
        lines.append("")
    for err in result.internal_errors:
        header = paint(f"internal[{err.code.error_id}]", "magenta", attrs=["bold"])
        lines.append(f"{header}: {err.message}")
        if err.location:
            lines.append(f"  {paint('-->', 'blue', attrs=['bold'])} {err.location}")
        lines.append("")

    if result.aborted:
        lines.append(paint(f"  ╰─ {result.summary()}", "magenta", attrs=["bold"]))
    elif result.passed:
        lines.append(paint(f"  ╰─ {result.summary()}", "green", attrs=["bold"]))
    else:
        lines.append(paint(f"  ╰─ {result.summary()}", "red", attrs=["bold"]))
    stream.write("\n".join(lines) + "\n")


def write_results(results: Sequence[ValidationResult], fmt: str,
                  stream: TextIO = sys.stdout,
                  colour: Optional[bool] = None) -> None:
    """Write *results* in ``gcc``, ``json`` or ``text`` format."""
    for result in results:
        if fmt == "json":
            for v in result.violations:
                stream.write(v.to_json_str() + "\n")
        elif fmt == "gcc":
            text = result.to_gcc_format()
            if text:
                stream.write(text + "\n")
        else:
            render_text(result, stream, colour=colour)


__all__ = [
    "ADDON_NAME",
    "Violation",
    "InternalDiagnostic",
    "ValidationResult",
    "DiagnosticReporter",
    "render_text",
    "write_results",
]
