# tests/test_errors.py
"""
Tests for error codes and the exception hierarchy.
"""

from contract_verify.errors import (
    ConfigError,
    ContractVerifyError,
    EngineError,
    ErrorPhase,
    EventFormatError,
    ScopeDesyncError,
    TypeSpellingError,
    UnanalyzableNodeError,
    VerifyErrorCodes,
)
from tests.conftest import loc


class TestErrorCodes:

    def test_code_string(self):
        assert VerifyErrorCodes.LOCAL_VARIABLE.code == "CV-1001"
        assert str(VerifyErrorCodes.SCOPE_DESYNC) == "CV-9002"

    def test_compare_with_strings(self):
        assert VerifyErrorCodes.IO_TYPE == "ioType"
        assert VerifyErrorCodes.IO_TYPE == "CV-1003"
        assert VerifyErrorCodes.IO_TYPE != "scopePrefix"

    def test_all_codes_are_unique(self):
        codes = VerifyErrorCodes.all_codes()
        assert set(codes) >= {"localVariable", "globalVariable", "ioType",
                              "scopePrefix", "unknownMacro", "unanalyzableNode",
                              "scopeDesync"}
        assert len({c.number for c in codes.values()}) == len(codes)

    def test_phases(self):
        assert VerifyErrorCodes.UNKNOWN_MACRO.phase is ErrorPhase.RULE
        assert VerifyErrorCodes.UNANALYZABLE_NODE.phase is ErrorPhase.INTERNAL


class TestExceptions:

    def test_hierarchy(self):
        for exc_type in (ScopeDesyncError, UnanalyzableNodeError, EventFormatError):
            assert issubclass(exc_type, EngineError)
        assert issubclass(ConfigError, ContractVerifyError)
        assert not issubclass(TypeSpellingError, EngineError)

    def test_default_codes(self):
        assert ScopeDesyncError("x").code is VerifyErrorCodes.SCOPE_DESYNC
        assert ConfigError("x").code is VerifyErrorCodes.BAD_CONFIG

    def test_location_in_messages(self):
        exc = UnanalyzableNodeError("field has no type", location=loc(3, 7))
        assert str(exc) == "contract.h:3:7: field has no type"
        assert exc.to_gcc_format().endswith("[unanalyzableNode]")
