"""
contract_verify/validator.py
════════════════════════════

One-call validation of a contract module, and of a batch of modules.

Each module gets a fresh engine, tracker and reporter; only the
:class:`~contract_verify.registry.AllowListRegistry` is shared.  Engine
errors and unreadable event sources stop the module they occur in and are
recorded on its result (``aborted=True``); the rest of a batch carries on.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence

from contract_verify.dump_walker import walk_configuration
from contract_verify.errors import ContractVerifyError, EngineError, ModuleInputError
from contract_verify.events import Event
from contract_verify.registry import AllowListRegistry
from contract_verify.reporter import DiagnosticReporter, ValidationResult
from contract_verify.rules import DeclarationRuleEngine

_log = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = min(os.cpu_count() or 2, 4)

# raised by file-backed event sources while the engine iterates them
_INPUT_ERRORS = (OSError, UnicodeDecodeError)


def _abort(reporter: DiagnosticReporter, exc: ContractVerifyError,
           contract: str) -> ValidationResult:
    _log.error("%s: module aborted: %s", contract or "<module>", exc)
    reporter.record_internal_error(exc)
    return reporter.finalize()


def _input_error(exc: Exception) -> ModuleInputError:
    if isinstance(exc, OSError) and exc.filename:
        return ModuleInputError(f"cannot read {exc.filename}: {exc.strerror or exc}")
    return ModuleInputError(f"cannot read module input: {exc}")


def validate_events(
    events: Iterable[Event],
    registry: AllowListRegistry,
    contract: str = "",
) -> ValidationResult:
    """
    Run the rule engine over one module's event stream.

    Violations found before an engine error, or before the event source
    failed to read, are kept on the result.
    """
    reporter = DiagnosticReporter(contract)
    engine = DeclarationRuleEngine(registry, reporter=reporter, contract=contract)
    try:
        return engine.run(events)
    except EngineError as exc:
        return _abort(reporter, exc, contract)
    except _INPUT_ERRORS as exc:
        return _abort(reporter, _input_error(exc), contract)


def validate_configuration(
    cfg: Any,
    registry: AllowListRegistry,
    source_file: Optional[str] = None,
    contract: str = "",
) -> ValidationResult:
    """Validate one cppcheck ``Configuration``."""
    return validate_events(walk_configuration(cfg, source_file), registry, contract)


@dataclass
class ModuleInput:
    """
    One unit of a batch.

    ``events`` is a zero-argument callable producing the module's events, so
    that reading and walking happen on the worker thread.
    """
    contract: str
    events: Callable[[], Iterable[Event]]


def _validate_module(module: ModuleInput, registry: AllowListRegistry) -> ValidationResult:
    reporter = DiagnosticReporter(module.contract)
    try:
        stream = module.events()
    except EngineError as exc:
        return _abort(reporter, exc, module.contract)
    except _INPUT_ERRORS as exc:
        return _abort(reporter, _input_error(exc), module.contract)
    return validate_events(stream, registry, module.contract)


def validate_batch(
    modules: Sequence[ModuleInput],
    registry: AllowListRegistry,
    max_workers: Optional[int] = None,
) -> List[ValidationResult]:
    """
    Validate independent modules concurrently.

    Results come back in the order of *modules*.
    """
    if not modules:
        return []
    workers = max_workers or DEFAULT_MAX_WORKERS
    if workers <= 1 or len(modules) == 1:
        return [_validate_module(m, registry) for m in modules]

    _log.info("Validating %d module(s) on %d worker(s)", len(modules), workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_validate_module, m, registry) for m in modules]
        return [f.result() for f in futures]


__all__ = [
    "DEFAULT_MAX_WORKERS",
    "ModuleInput",
    "validate_events",
    "validate_configuration",
    "validate_batch",
]
