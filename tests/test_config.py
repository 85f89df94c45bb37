# tests/test_config.py
"""
Tests for configuration loading and sibling contract discovery.
"""

import json

import pytest

from contract_verify.config import (
    VerifierConfig,
    config_from_dict,
    discover_contract_names,
    load_config,
)
from contract_verify.errors import ConfigError


@pytest.fixture
def contracts_dir(tmp_path):
    d = tmp_path / "contracts"
    d.mkdir()
    (d / "Qx.h").write_text(
        "using namespace QPI;\n"
        "struct QX2 : public ContractBase\n{\n};\n",
        encoding="utf-8",
    )
    (d / "MyVault.h").write_text("struct MYVAULT final : public ContractBase {};\n",
                                 encoding="utf-8")
    (d / "README.md").write_text("struct NOTME : public ContractBase\n", encoding="utf-8")
    return d


class TestLoadConfig:

    def test_defaults(self):
        config = load_config(None)
        assert config == VerifierConfig()

    def test_from_file(self, tmp_path):
        path = tmp_path / "verify.json"
        path.write_text(json.dumps({
            "additional_scope_prefixes": ["SIBLING"],
            "additional_io_types": ["Array<uint8, 4>"],
            "contracts_dir": "contracts",
        }), encoding="utf-8")
        config = load_config(str(path))
        assert config.additional_scope_prefixes == ["SIBLING"]
        assert config.contracts_dir == str(tmp_path / "contracts")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(str(path))

    @pytest.mark.parametrize("data", [
        [],
        {"additional_scope_prefixes": "QX"},
        {"additional_io_types": [1, 2]},
        {"contracts_dir": 3},
    ])
    def test_wrong_types(self, data):
        with pytest.raises(ConfigError):
            config_from_dict(data)

    def test_unknown_keys_are_ignored(self):
        assert config_from_dict({"colour": True}) == VerifierConfig()


class TestMerging:

    def test_cli_values_extend_the_file(self):
        base = VerifierConfig(additional_scope_prefixes=["A"], contracts_dir="x")
        merged = base.merged(scope_prefixes=["B"], io_types=["Order"])
        assert merged.additional_scope_prefixes == ["A", "B"]
        assert merged.additional_io_types == ["Order"]
        assert merged.contracts_dir == "x"
        assert base.additional_scope_prefixes == ["A"]

    def test_build_registry_discovers_siblings(self, contracts_dir):
        registry = VerifierConfig(contracts_dir=str(contracts_dir)).build_registry()
        for name in ("Qx", "QX2", "MyVault", "MYVAULT"):
            assert registry.is_allowed_scope_prefix(name)
        assert not registry.is_allowed_scope_prefix("NOTME")


class TestDiscovery:

    def test_stems_and_contract_structs(self, contracts_dir):
        assert discover_contract_names(str(contracts_dir)) == [
            "MYVAULT", "MyVault", "QX2", "Qx",
        ]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigError):
            discover_contract_names(str(tmp_path / "nope"))
