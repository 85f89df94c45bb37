# contract_verify/errors.py
"""
Error Types and Error Codes for contract-verify

Two classes of problem are distinguished throughout the package:

  ┌─────────────────────────────────────────────────────────────────────┐
  │  Author-facing violations                                           │
  │    Produced by the rule engine as Violation records.  They never    │
  │    raise; a module may collect any number of them in one pass.      │
  ├─────────────────────────────────────────────────────────────────────┤
  │  Engine errors (exceptions)                                         │
  │  ContractVerifyError (base)                                         │
  │  ├── EngineError            - walker/engine out of sync             │
  │  │   ├── ScopeDesyncError   - exit() on empty stack, unbalanced walk│
  │  │   ├── UnanalyzableNodeError - node lacks required information    │
  │  │   └── EventFormatError   - malformed serialized event            │
  │  ├── ModuleInputError       - module source could not be read       │
  │  ├── TypeSpellingError      - type spelling outside the grammar     │
  │  └── ConfigError            - bad configuration input               │
  └─────────────────────────────────────────────────────────────────────┘

Error Codes
───────────
Each code has a cppcheck-style ``error_id`` (camelCase, used in the JSON
addon protocol) and a number of the form CV-NNNN:

  - 1000-1999: authoring rule violations
  - 9000-9999: engine-internal errors
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Any, Dict, Optional


@unique
class ErrorPhase(Enum):
    """Where a problem was detected."""

    RULE = "rule"            # authoring rule evaluation
    INTERNAL = "internal"    # engine / walker synchronisation
    CONFIG = "config"        # configuration loading


class ErrorCode:
    """
    Structured error code.

    Ranges:
      - 1000-1999: rule violations
      - 9000-9999: internal errors
    """

    __slots__ = ("prefix", "number", "error_id", "phase", "summary")

    def __init__(
        self,
        prefix: str,
        number: int,
        error_id: str,
        phase: ErrorPhase,
        summary: str = "",
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.error_id = error_id
        self.phase = phase
        self.summary = summary

    @property
    def code(self) -> str:
        """Full error code string, e.g. ``CV-1001``."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code}, {self.error_id!r})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return other in (self.code, self.error_id)
        return False


class VerifyErrorCodes:
    """Predefined error codes."""

    # ═══════════════════════════════════════════════════════════════════
    # RULE VIOLATIONS (1000-1999)
    # ═══════════════════════════════════════════════════════════════════

    LOCAL_VARIABLE = ErrorCode(
        "CV", 1001, "localVariable", ErrorPhase.RULE,
        "local variable declared inside a function body",
    )
    GLOBAL_VARIABLE = ErrorCode(
        "CV", 1002, "globalVariable", ErrorPhase.RULE,
        "variable declared at global or namespace scope",
    )
    IO_TYPE = ErrorCode(
        "CV", 1003, "ioType", ErrorPhase.RULE,
        "field type not allowed in an input/output struct",
    )
    SCOPE_PREFIX = ErrorCode(
        "CV", 1004, "scopePrefix", ErrorPhase.RULE,
        "scope qualifier outside the allowed set",
    )
    UNKNOWN_MACRO = ErrorCode(
        "CV", 1005, "unknownMacro", ErrorPhase.RULE,
        "macro is not a sanctioned contract directive",
    )

    # ═══════════════════════════════════════════════════════════════════
    # INTERNAL ERRORS (9000-9999)
    # ═══════════════════════════════════════════════════════════════════

    UNANALYZABLE_NODE = ErrorCode(
        "CV", 9001, "unanalyzableNode", ErrorPhase.INTERNAL,
        "syntax node lacks the information a rule needs",
    )
    SCOPE_DESYNC = ErrorCode(
        "CV", 9002, "scopeDesync", ErrorPhase.INTERNAL,
        "enter/exit events are unbalanced",
    )
    EVENT_FORMAT = ErrorCode(
        "CV", 9003, "eventFormat", ErrorPhase.INTERNAL,
        "serialized event could not be decoded",
    )
    MODULE_INPUT = ErrorCode(
        "CV", 9004, "moduleInput", ErrorPhase.INTERNAL,
        "module input could not be read",
    )
    BAD_CONFIG = ErrorCode(
        "CV", 9101, "badConfig", ErrorPhase.CONFIG,
        "configuration could not be loaded",
    )

    @classmethod
    def all_codes(cls) -> Dict[str, ErrorCode]:
        """Map ``error_id`` → ``ErrorCode`` for every predefined code."""
        return {
            value.error_id: value
            for value in vars(cls).values()
            if isinstance(value, ErrorCode)
        }


# ═══════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════

class ContractVerifyError(Exception):
    """Base exception for every error raised by contract-verify."""

    default_code: ErrorCode = VerifyErrorCodes.UNANALYZABLE_NODE

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        location: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.location = location

    def to_gcc_format(self) -> str:
        where = str(self.location) if self.location else "<unknown location>"
        return f"{where}: error: {self.message} [{self.code.error_id}]"

    def __str__(self) -> str:
        if self.location:
            return f"{self.location}: {self.message}"
        return self.message


class EngineError(ContractVerifyError):
    """The walker and the engine disagree; the module verdict is unusable."""


class ScopeDesyncError(EngineError):
    """``exit()`` on an empty scope stack, or frames left open at the end."""

    default_code = VerifyErrorCodes.SCOPE_DESYNC


class UnanalyzableNodeError(EngineError):
    """A node is missing the information needed to decide a rule."""

    default_code = VerifyErrorCodes.UNANALYZABLE_NODE

    def __init__(
        self,
        message: str,
        location: Any = None,
        node: Any = None,
    ) -> None:
        super().__init__(message, location=location)
        self.node = node


class EventFormatError(EngineError):
    """A serialized event is malformed."""

    default_code = VerifyErrorCodes.EVENT_FORMAT

    def __init__(self, message: str, line_number: int = 0) -> None:
        super().__init__(message)
        self.line_number = line_number

    def __str__(self) -> str:
        if self.line_number:
            return f"event line {self.line_number}: {self.message}"
        return self.message


class ModuleInputError(ContractVerifyError):
    """A module's event source failed to open or read."""

    default_code = VerifyErrorCodes.MODULE_INPUT


class TypeSpellingError(ContractVerifyError):
    """A type spelling could not be parsed into canonical form."""

    def __init__(self, spelling: str, reason: str = "") -> None:
        message = f"cannot canonicalize type spelling {spelling!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.spelling = spelling


class ConfigError(ContractVerifyError):
    """Configuration file or option is invalid."""

    default_code = VerifyErrorCodes.BAD_CONFIG


__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "VerifyErrorCodes",
    "ContractVerifyError",
    "EngineError",
    "ScopeDesyncError",
    "UnanalyzableNodeError",
    "EventFormatError",
    "ModuleInputError",
    "TypeSpellingError",
    "ConfigError",
]
