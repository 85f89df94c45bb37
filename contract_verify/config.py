"""
contract_verify/config.py
═════════════════════════

Per-run settings.

A run is configured from an optional JSON file::

    {
        "additional_scope_prefixes": ["MYCONTRACT"],
        "additional_io_types": ["Array<uint8, 4>"],
        "contracts_dir": "src/contracts"
    }

plus CLI overrides.  When ``contracts_dir`` is set, every contract found
there (by file stem and by ``struct NAME : public ContractBase``) is added
to the scope prefixes, so contracts compiled together may call each other.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from contract_verify.errors import ConfigError
from contract_verify.registry import AllowListRegistry

_log = logging.getLogger(__name__)

CONTRACT_SUFFIXES = (".h", ".hpp", ".cpp")

_CONTRACT_STRUCT_RE = re.compile(
    r"\bstruct\s+([A-Za-z_]\w*)\s*(?:final\s*)?:\s*public\s+ContractBase\b"
)

_KNOWN_KEYS = frozenset({"additional_scope_prefixes", "additional_io_types", "contracts_dir"})


@dataclass(frozen=True)
class VerifierConfig:
    additional_scope_prefixes: List[str] = field(default_factory=list)
    additional_io_types: List[str] = field(default_factory=list)
    contracts_dir: Optional[str] = None

    def merged(
        self,
        scope_prefixes: Iterable[str] = (),
        io_types: Iterable[str] = (),
        contracts_dir: Optional[str] = None,
    ) -> VerifierConfig:
        """Return a copy extended with CLI values; a CLI directory wins."""
        return replace(
            self,
            additional_scope_prefixes=list(self.additional_scope_prefixes) + list(scope_prefixes),
            additional_io_types=list(self.additional_io_types) + list(io_types),
            contracts_dir=contracts_dir or self.contracts_dir,
        )

    def build_registry(self) -> AllowListRegistry:
        """Registry with this config's additions and any discovered siblings."""
        prefixes = list(self.additional_scope_prefixes)
        if self.contracts_dir:
            found = discover_contract_names(self.contracts_dir)
            _log.info("Discovered %d contract(s) in %s", len(found), self.contracts_dir)
            prefixes.extend(found)
        return AllowListRegistry(
            additional_scope_prefixes=prefixes,
            additional_io_types=self.additional_io_types,
        )


def _string_list(data: Dict[str, Any], key: str, source: str) -> List[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{source}: {key!r} must be a list of strings")
    return list(value)


def config_from_dict(data: Any, source: str = "<config>") -> VerifierConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top level must be an object")
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        _log.warning("%s: ignoring unknown key(s): %s", source, ", ".join(sorted(unknown)))
    contracts_dir = data.get("contracts_dir")
    if contracts_dir is not None and not isinstance(contracts_dir, str):
        raise ConfigError(f"{source}: 'contracts_dir' must be a string")
    return VerifierConfig(
        additional_scope_prefixes=_string_list(data, "additional_scope_prefixes", source),
        additional_io_types=_string_list(data, "additional_io_types", source),
        contracts_dir=contracts_dir,
    )


def load_config(path: Optional[str]) -> VerifierConfig:
    """
    Load a JSON config file; ``None`` gives the defaults.

    A relative ``contracts_dir`` is taken relative to the config file.

    Raises
    ------
    ConfigError
        Unreadable file, invalid JSON or wrongly typed values.
    """
    if path is None:
        return VerifierConfig()
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config {p}: {exc.strerror or exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{p}:{exc.lineno}: invalid JSON: {exc.msg}") from exc
    config = config_from_dict(data, str(p))
    if config.contracts_dir and not Path(config.contracts_dir).is_absolute():
        config = replace(config, contracts_dir=str(p.parent / config.contracts_dir))
    return config


def discover_contract_names(directory: str) -> List[str]:
    """
    Names of the contracts in *directory*, sorted.

    Both the file stem (``Qx.h`` → ``Qx``) and every struct deriving from
    ``ContractBase`` (``QX``) are returned.
    """
    root = Path(directory)
    if not root.is_dir():
        raise ConfigError(f"contracts directory not found: {root}")
    names = set()
    for path in sorted(root.iterdir()):
        if not path.is_file() or path.suffix not in CONTRACT_SUFFIXES:
            continue
        names.add(path.name.split(".", 1)[0])
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            _log.warning("Cannot read %s: %s", path, exc)
            continue
        names.update(_CONTRACT_STRUCT_RE.findall(text))
    return sorted(names)


__all__ = [
    "VerifierConfig",
    "config_from_dict",
    "load_config",
    "discover_contract_names",
]
