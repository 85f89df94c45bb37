"""
contract-verify: authoring-rule checks for smart-contract sources.

The engine walks a contract module's syntax tree as a stream of events,
tracks which scope each node sits in, and reports declarations, scope
qualifiers and macros that the contract rules forbid.

    >>> from contract_verify import AllowListRegistry, validate_events
    >>> result = validate_events(events, AllowListRegistry(), contract="QX")
    >>> result.passed
"""

import logging

__version__ = "0.1.0"

from contract_verify.errors import (  # noqa: E402
    ConfigError,
    ContractVerifyError,
    EngineError,
    EventFormatError,
    ModuleInputError,
    ScopeDesyncError,
    UnanalyzableNodeError,
    VerifyErrorCodes,
)
from contract_verify.events import (  # noqa: E402
    DeclarationKind,
    DeclarationSeen,
    Enter,
    Exit,
    IOTypeUseSeen,
    MacroInvocationSeen,
    NameReferenceSeen,
    NodeInfo,
    SourceLocation,
)
from contract_verify.registry import AllowListRegistry  # noqa: E402
from contract_verify.reporter import (  # noqa: E402
    DiagnosticReporter,
    ValidationResult,
    Violation,
)
from contract_verify.rules import DeclarationRuleEngine  # noqa: E402
from contract_verify.scope import ScopeKind, ScopeTracker  # noqa: E402
from contract_verify.validator import (  # noqa: E402
    ModuleInput,
    validate_batch,
    validate_configuration,
    validate_events,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "AllowListRegistry",
    "ConfigError",
    "ContractVerifyError",
    "DeclarationKind",
    "DeclarationRuleEngine",
    "DeclarationSeen",
    "DiagnosticReporter",
    "EngineError",
    "Enter",
    "EventFormatError",
    "ModuleInputError",
    "Exit",
    "IOTypeUseSeen",
    "MacroInvocationSeen",
    "ModuleInput",
    "NameReferenceSeen",
    "NodeInfo",
    "ScopeDesyncError",
    "ScopeKind",
    "ScopeTracker",
    "SourceLocation",
    "UnanalyzableNodeError",
    "ValidationResult",
    "VerifyErrorCodes",
    "Violation",
    "validate_batch",
    "validate_configuration",
    "validate_events",
]
