# tests/test_registry.py
"""
Tests for the allow-list registry.
"""

import pytest

from contract_verify.registry import (
    ALLOWED_IO_TYPES,
    ALLOWED_SCOPE_PREFIXES,
    KNOWN_MACRO_NAMES,
    AllowListRegistry,
)


class TestStaticTables:

    def test_callbacks_have_with_locals_variants(self):
        for name in ("INITIALIZE", "BEGIN_EPOCH", "PUBLIC_FUNCTION", "PRIVATE_PROCEDURE"):
            assert name in KNOWN_MACRO_NAMES
            assert f"{name}_WITH_LOCALS" in KNOWN_MACRO_NAMES

    def test_framework_prefixes(self):
        assert {"QPI", "QX", "QUTIL"} <= ALLOWED_SCOPE_PREFIXES

    def test_io_palette(self):
        for name in ("uint8", "sint64", "bit_4096", "uint64_4", "id_8", "ProposalDataV1<true>"):
            assert name in ALLOWED_IO_TYPES
        assert "bit_8192" not in ALLOWED_IO_TYPES


class TestMacros:

    def test_known(self):
        reg = AllowListRegistry()
        assert reg.is_known_macro("PUBLIC_FUNCTION_WITH_LOCALS")
        assert reg.is_known_macro("LOG_INFO")

    def test_unknown_and_empty(self):
        reg = AllowListRegistry()
        assert not reg.is_known_macro("MY_HACK")
        assert not reg.is_known_macro("")
        assert not reg.is_known_macro(None)


class TestScopePrefixes:

    def test_base_prefix_and_nested_qualifier(self):
        reg = AllowListRegistry()
        assert reg.is_allowed_scope_prefix("QX")
        assert reg.is_allowed_scope_prefix("QPI::Collection<id, 4>")

    def test_unknown_prefix(self):
        reg = AllowListRegistry()
        assert not reg.is_allowed_scope_prefix("UNKNOWNCONTRACT")
        assert not reg.is_allowed_scope_prefix("std")

    def test_global_qualifier_is_never_allowed(self):
        reg = AllowListRegistry()
        assert not reg.is_allowed_scope_prefix("")
        assert not reg.is_allowed_scope_prefix("::")

    def test_additional_prefixes(self):
        reg = AllowListRegistry(additional_scope_prefixes=["MYCONTRACT", "  ", ""])
        assert reg.is_allowed_scope_prefix("MYCONTRACT")
        assert reg.additional_scope_prefixes == frozenset({"MYCONTRACT"})


class TestIOTypes:

    @pytest.mark.parametrize("spelling", ["uint64", "const uint64", "::id", "bit_64",
                                          "ProposalDataV1< false >"])
    def test_allowed(self, spelling):
        assert AllowListRegistry().is_allowed_io_type(spelling)

    @pytest.mark.parametrize("spelling", ["float", "uint64*", "Array<uint8, 4>",
                                          "", None, "decltype(x)"])
    def test_rejected(self, spelling):
        assert not AllowListRegistry().is_allowed_io_type(spelling)

    def test_exact_match_only(self):
        reg = AllowListRegistry(additional_io_types=["Array<uint8,4>"])
        assert reg.is_allowed_io_type("Array< uint8, 4 >")
        assert not reg.is_allowed_io_type("Array<uint8, 8>")

    def test_unparseable_additions_are_skipped(self):
        reg = AllowListRegistry(additional_io_types=["a + b", "Order"])
        assert reg.additional_io_types == frozenset({"Order"})


class TestImmutability:

    def test_with_additions_returns_new_registry(self):
        base = AllowListRegistry(additional_scope_prefixes=["A"])
        extended = base.with_additions(scope_prefixes=["B"], io_types=["Order"])
        assert extended.is_allowed_scope_prefix("A")
        assert extended.is_allowed_scope_prefix("B")
        assert extended.is_allowed_io_type("Order")
        assert not base.is_allowed_scope_prefix("B")
        assert not base.is_allowed_io_type("Order")

    def test_no_attribute_assignment(self):
        reg = AllowListRegistry()
        with pytest.raises(AttributeError):
            reg.extra = 1

    def test_from_config(self):
        class Config:
            additional_scope_prefixes = ["SIBLING"]
            additional_io_types = ["Order"]

        reg = AllowListRegistry.from_config(Config())
        assert reg.is_allowed_scope_prefix("SIBLING")
        assert reg.is_allowed_io_type("Order")
