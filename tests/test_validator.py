# tests/test_validator.py
"""
Tests for the validation façade and batch validation.
"""

import io
import json

import pytest

from contract_verify.errors import EventFormatError
from contract_verify.events import read_events
from contract_verify.registry import AllowListRegistry
from contract_verify.scope import ScopeKind
from contract_verify.validator import (
    ModuleInput,
    validate_batch,
    validate_events,
)
from tests.conftest import enter, leave, ref, var

S = ScopeKind


class TestValidateEvents:

    def test_clean_module(self):
        result = validate_events([enter(S.STRUCT, "QX"), var("x"), leave()],
                                 AllowListRegistry(), contract="QX")
        assert result.passed
        assert result.contract == "QX"

    def test_engine_error_aborts_but_keeps_findings(self):
        result = validate_events(
            [var("g", line=1), leave(line=2)],
            AllowListRegistry(),
            contract="QX",
        )
        assert result.aborted
        assert not result.passed
        assert [v.rule_id for v in result.violations] == ["globalVariable"]
        assert result.internal_errors[0].code.error_id == "scopeDesync"

    def test_unbalanced_walk_aborts(self):
        result = validate_events([enter(S.BLOCK)], AllowListRegistry())
        assert result.aborted

    def test_malformed_stream_aborts(self):
        stream = io.StringIO(json.dumps({"event": "enter", "kind": "block"}) + "\nnope\n")
        result = validate_events(read_events(stream), AllowListRegistry())
        assert result.aborted
        assert result.internal_errors[0].code.error_id == "eventFormat"


class TestValidateBatch:

    def _modules(self):
        return [
            ModuleInput("CLEAN", lambda: [enter(S.STRUCT, "CLEAN"), leave()]),
            ModuleInput("BAD", lambda: [ref("UNKNOWNCONTRACT", "f")]),
            ModuleInput("BROKEN", lambda: [leave()]),
        ]

    @pytest.mark.parametrize("workers", [1, 3])
    def test_results_in_input_order(self, workers):
        results = validate_batch(self._modules(), AllowListRegistry(), max_workers=workers)
        assert [r.contract for r in results] == ["CLEAN", "BAD", "BROKEN"]
        assert results[0].passed
        assert results[1].violation_count == 1
        assert results[2].aborted

    def test_failing_event_source_is_isolated(self):
        def explode():
            raise EventFormatError("cannot decode")

        results = validate_batch(
            [ModuleInput("X", explode), ModuleInput("Y", lambda: [])],
            AllowListRegistry(),
            max_workers=2,
        )
        assert results[0].aborted
        assert results[1].passed

    def test_unreadable_event_source_is_isolated(self):
        def denied():
            raise PermissionError(13, "Permission denied", "X.jsonl")

        results = validate_batch(
            [ModuleInput("X", denied), ModuleInput("Y", lambda: [])],
            AllowListRegistry(),
            max_workers=2,
        )
        assert results[0].aborted
        assert results[0].internal_errors[0].code.error_id == "moduleInput"
        assert "X.jsonl" in results[0].internal_errors[0].message
        assert results[1].passed

    def test_read_failure_during_iteration(self):
        def stream():
            yield var("g", line=1)
            raise OSError("device went away")

        result = validate_events(stream(), AllowListRegistry(), contract="QX")
        assert result.aborted
        assert [v.rule_id for v in result.violations] == ["globalVariable"]
        assert result.internal_errors[0].code.error_id == "moduleInput"

    def test_wrongly_typed_event_is_isolated(self):
        lines = [
            json.dumps({"event": "enter", "kind": 3}),
            json.dumps({"event": "reference", "qualifier": 7, "name": "x"}),
            json.dumps({"event": "io_use", "type": 5}),
        ]
        modules = [
            ModuleInput(f"M{i}", lambda text=text: read_events(io.StringIO(text + "\n")))
            for i, text in enumerate(lines)
        ]
        modules.append(ModuleInput("OK", lambda: [enter(S.BLOCK), leave()]))
        results = validate_batch(modules, AllowListRegistry(), max_workers=2)
        assert [r.aborted for r in results] == [True, True, True, False]
        assert all(r.internal_errors[0].code.error_id == "eventFormat"
                   for r in results[:3])
        assert results[3].passed

    def test_empty_batch(self):
        assert validate_batch([], AllowListRegistry()) == []

    def test_shared_registry_is_not_mutated(self):
        registry = AllowListRegistry()
        before = registry.io_types
        validate_batch([
            ModuleInput("A", lambda: [enter(S.STRUCT, "Pair"), var("x", "uint8"), leave()]),
        ], registry)
        assert registry.io_types == before
        assert not registry.is_allowed_io_type("Pair")
