"""
contract_verify/registry.py
═══════════════════════════

Allow-list registry: which macro directives, scope qualifiers and
input/output field types a contract may use.

The registry is built once per run from the static tables below plus the
caller's additions (typically the names of sibling contracts compiled in
the same batch) and is read-only afterwards, so one instance can be shared
by any number of concurrent module walks.

All membership tests are exact matches on canonical spellings
(see :mod:`contract_verify.spelling`).  There is no pattern matching:
``Array<uint8, 4>`` is only accepted if that exact spelling is listed.
"""

from __future__ import annotations

import logging
from typing import Any, FrozenSet, Iterable, Optional

from contract_verify.errors import TypeSpellingError
from contract_verify.spelling import canonical_spelling, qualifier_head

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 - STATIC TABLES
# ═════════════════════════════════════════════════════════════════════════

def _with_locals(*names: str) -> tuple:
    return tuple(n for name in names for n in (name, f"{name}_WITH_LOCALS"))


KNOWN_MACRO_NAMES: FrozenSet[str] = frozenset(
    _with_locals(
        "INITIALIZE",
        "BEGIN_EPOCH",
        "END_EPOCH",
        "BEGIN_TICK",
        "END_TICK",
        "PRE_ACQUIRE_SHARES",
        "PRE_RELEASE_SHARES",
        "POST_ACQUIRE_SHARES",
        "POST_RELEASE_SHARES",
        "POST_INCOMING_TRANSFER",
        "PRIVATE_FUNCTION",
        "PRIVATE_PROCEDURE",
        "PUBLIC_FUNCTION",
        "PUBLIC_PROCEDURE",
    )
    + (
        "EXPAND",
        "LOG_DEBUG",
        "LOG_ERROR",
        "LOG_INFO",
        "LOG_WARNING",
        "LOG_PAUSE",
        "LOG_RESUME",
        "REGISTER_USER_FUNCTIONS_AND_PROCEDURES",
        "REGISTER_USER_FUNCTION",
        "REGISTER_USER_PROCEDURE",
        "CALL",
        "CALL_OTHER_CONTRACT_FUNCTION",
        "INVOKE_OTHER_CONTRACT_PROCEDURE",
        "QUERY_ORACLE",
        "SELF",
        "SELF_INDEX",
        "STATIC_ASSERT",
        # shareholder voting
        "DEFINE_SHAREHOLDER_PROPOSAL_STORAGE",
        "IMPLEMENT_SetShareholderProposal",
        "IMPLEMENT_GetShareholderProposal",
        "IMPLEMENT_GetShareholderProposalIndices",
        "IMPLEMENT_GetShareholderProposalFees",
        "IMPLEMENT_SetShareholderVotes",
        "IMPLEMENT_GetShareholderVotes",
        "IMPLEMENT_GetShareholderVotingResults",
        "IMPLEMENT_SET_SHAREHOLDER_PROPOSAL",
        "IMPLEMENT_SET_SHAREHOLDER_VOTES",
        "IMPLEMENT_FinalizeShareholderStateVarProposals",
        "IMPLEMENT_DEFAULT_SHAREHOLDER_PROPOSAL_VOTING",
        "REGISTER_SHAREHOLDER_PROPSAL_VOTING",
        "REGISTER_GetShareholderProposalFees",
        "REGISTER_GetShareholderProposalIndices",
        "REGISTER_GetShareholderProposal",
        "REGISTER_GetShareholderVotes",
        "REGISTER_GetShareholderVotingResults",
        "REGISTER_SetShareholderProposal",
        "REGISTER_SetShareholderVotes",
    )
)

# Framework namespaces/types first, then the deployed contracts.
ALLOWED_SCOPE_PREFIXES: FrozenSet[str] = frozenset((
    "QPI",
    "id",
    "ProposalTypes",
    "TransferType",
    "AssetIssuanceSelect",
    "AssetOwnershipSelect",
    "AssetPossessionSelect",
    "QX",
    "QUOTTERY",
    "RANDOM",
    "QUTIL",
    "MLM",
    "GQMPROP",
    "SWATCH",
    "CCF",
    "QEARN",
    "QVAULT",
    "MSVAULT",
    "QBAY",
    "QSWAP",
    "NOST",
    "QDRAW",
    "RL",
    "QBOND",
    "QIP",
    "QRAFFLE",
    "TESTEXA",
    "TESTEXB",
    "QRP",
    "QTF",
    "QDUEL",
    "QRWA",
))


def _array_aliases() -> tuple:
    scalars = [f"{sign}int{bits}" for bits in (8, 16, 32, 64) for sign in "su"]
    return tuple(
        f"{base}_{n}" for base in scalars + ["id"] for n in (2, 4, 8)
    )


ALLOWED_IO_TYPES: FrozenSet[str] = frozenset(
    (
        # framework structs
        "id",
        "DateAndTime",
        "Entity",
        "Asset",
        "NoData",
        "ProposalDataV1<true>",
        "ProposalDataV1<false>",
        "ProposalSingleVoteDataV1",
        "ProposalSummarizedVotingDataV1",
        "ProposalDataYesNo",
        "PreManagementRightsTransfer_input",
        "PreManagementRightsTransfer_output",
        "PostManagementRightsTransfer_input",
        "PostIncomingTransfer_input",
        # structs exported by other contracts
        "TESTEXA::QueryQpiFunctions_input",
        "TESTEXA::QueryQpiFunctions_output",
        # numeric
        "bool",
        "bit",
        "sint8",
        "uint8",
        "sint16",
        "uint16",
        "sint32",
        "uint32",
        "sint64",
        "uint64",
        "uint128",
    )
    + tuple(f"bit_{2 ** k}" for k in range(1, 13))
    + _array_aliases()
)


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 - REGISTRY
# ═════════════════════════════════════════════════════════════════════════

def _canonical_set(spellings: Iterable[str]) -> FrozenSet[str]:
    result = set()
    for spelling in spellings:
        try:
            result.add(canonical_spelling(spelling))
        except TypeSpellingError:
            _log.warning("Ignoring unparseable IO type spelling %r", spelling)
    return frozenset(result)


class AllowListRegistry:
    """
    Immutable allow-lists for macros, scope prefixes and IO field types.

    Parameters
    ----------
    additional_scope_prefixes : extra qualifiers accepted for this run
    additional_io_types       : extra IO field type spellings for this run
    known_macro_names, allowed_scope_prefixes, allowed_io_types
        Base tables; default to the built-in ones.

    Usage
    -----
    >>> reg = AllowListRegistry(additional_scope_prefixes=["MYCONTRACT"])
    >>> reg.is_allowed_scope_prefix("MYCONTRACT")
    True
    >>> reg.is_allowed_io_type("const uint64")
    True
    """

    __slots__ = (
        "_macros",
        "_base_prefixes",
        "_base_io_types",
        "_extra_prefixes",
        "_extra_io_types",
        "_prefixes",
        "_io_types",
    )

    def __init__(
        self,
        additional_scope_prefixes: Iterable[str] = (),
        additional_io_types: Iterable[str] = (),
        known_macro_names: Iterable[str] = KNOWN_MACRO_NAMES,
        allowed_scope_prefixes: Iterable[str] = ALLOWED_SCOPE_PREFIXES,
        allowed_io_types: Iterable[str] = ALLOWED_IO_TYPES,
    ) -> None:
        self._macros = frozenset(known_macro_names)
        self._base_prefixes = frozenset(allowed_scope_prefixes)
        self._extra_prefixes = frozenset(
            p.strip() for p in additional_scope_prefixes if p and p.strip()
        )
        self._base_io_types = _canonical_set(allowed_io_types)
        self._extra_io_types = _canonical_set(additional_io_types)
        self._prefixes = self._base_prefixes | self._extra_prefixes
        self._io_types = self._base_io_types | self._extra_io_types

    @classmethod
    def from_config(cls, config: Any) -> AllowListRegistry:
        """Build a registry from a :class:`~contract_verify.config.VerifierConfig`."""
        return cls(
            additional_scope_prefixes=config.additional_scope_prefixes,
            additional_io_types=config.additional_io_types,
        )

    def with_additions(
        self,
        scope_prefixes: Iterable[str] = (),
        io_types: Iterable[str] = (),
    ) -> AllowListRegistry:
        """Return a new registry with more per-run entries; ``self`` is unchanged."""
        return AllowListRegistry(
            additional_scope_prefixes=list(self._extra_prefixes) + list(scope_prefixes),
            additional_io_types=list(self._extra_io_types) + list(io_types),
            known_macro_names=self._macros,
            allowed_scope_prefixes=self._base_prefixes,
            allowed_io_types=self._base_io_types,
        )

    # ── queries ──────────────────────────────────────────────────────

    def is_known_macro(self, name: Optional[str]) -> bool:
        return bool(name) and name in self._macros

    def is_allowed_scope_prefix(self, name: Optional[str]) -> bool:
        """True if the head segment of the qualifier *name* is allowed."""
        if not name:
            return False
        head = qualifier_head(name)
        return bool(head) and head in self._prefixes

    def is_allowed_io_type(self, spelling: Optional[str]) -> bool:
        if not spelling:
            return False
        try:
            return canonical_spelling(spelling) in self._io_types
        except TypeSpellingError:
            return False

    # ── introspection ────────────────────────────────────────────────

    @property
    def known_macro_names(self) -> FrozenSet[str]:
        return self._macros

    @property
    def scope_prefixes(self) -> FrozenSet[str]:
        return self._prefixes

    @property
    def io_types(self) -> FrozenSet[str]:
        return self._io_types

    @property
    def additional_scope_prefixes(self) -> FrozenSet[str]:
        return self._extra_prefixes

    @property
    def additional_io_types(self) -> FrozenSet[str]:
        return self._extra_io_types

    def __repr__(self) -> str:
        return (
            f"<AllowListRegistry macros={len(self._macros)} "
            f"prefixes={len(self._prefixes)} io_types={len(self._io_types)}>"
        )


__all__ = [
    "KNOWN_MACRO_NAMES",
    "ALLOWED_SCOPE_PREFIXES",
    "ALLOWED_IO_TYPES",
    "AllowListRegistry",
]
