"""
Chain-specific type definitions merged into the scalecodec registry.

Runtimes that ship metadata V14+ describe their own types, so these only
matter for older runtimes and for decoding the custom RPC payloads. Entries
are grouped per spec name; `versioning` blocks apply to a closed range of
spec versions and override the base types.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

POLYMESH_TYPES: Dict[str, Any] = {
    "types": {
        "IdentityId": "[u8; 32]",
        "Ticker": "[u8; 12]",
        "Memo": "[u8; 32]",
        "Moment": "u64",
        "AuthorizationNonce": "u64",
        "Signatory": {
            "type": "enum",
            "type_mapping": [
                ["Identity", "IdentityId"],
                ["Account", "AccountId"],
            ],
        },
        "AuthorizationType": {
            "type": "enum",
            "value_list": [
                "AttestPrimaryKeyRotation",
                "RotatePrimaryKey",
                "TransferTicker",
                "AddMultiSigSigner",
                "TransferAssetOwnership",
                "JoinIdentity",
                "PortfolioCustody",
                "Custom",
                "NoData",
                "TransferCorporateActionAgent",
                "BecomeAgent",
                "AddRelayerPayingKey",
            ],
        },
        "PortfolioKind": {
            "type": "enum",
            "type_mapping": [
                ["Default", "Null"],
                ["User", "u64"],
            ],
        },
        "PortfolioId": {
            "type": "struct",
            "type_mapping": [
                ["did", "IdentityId"],
                ["kind", "PortfolioKind"],
            ],
        },
        "Permission": {
            "type": "enum",
            "value_list": ["Full", "Admin", "Operator", "SpendFunds"],
        },
        "Permissions": "Vec<Permission>",
        "AuthorizationData": {
            "type": "enum",
            "type_mapping": [
                ["AttestPrimaryKeyRotation", "IdentityId"],
                ["RotatePrimaryKey", "IdentityId"],
                ["TransferTicker", "Ticker"],
                ["AddMultiSigSigner", "AccountId"],
                ["TransferAssetOwnership", "Ticker"],
                ["JoinIdentity", "Permissions"],
                ["PortfolioCustody", "PortfolioId"],
                ["Custom", "Bytes"],
                ["NoData", "Null"],
            ],
        },
        "Authorization": {
            "type": "struct",
            "type_mapping": [
                ["authorization_data", "AuthorizationData"],
                ["authorized_by", "IdentityId"],
                ["expiry", "Option<Moment>"],
                ["auth_id", "u64"],
            ],
        },
        "LookupSource": "MultiAddress",
        "Address": "MultiAddress",
    },
    "versioning": [
        {
            "runtime_range": [0, 2019],
            "types": {
                "LookupSource": "IndicesLookupSource",
                "Address": "IndicesLookupSource",
            },
        },
        {
            "runtime_range": [2020, None],
            "types": {
                "PalletPermissions": {
                    "type": "struct",
                    "type_mapping": [
                        ["pallet_name", "Text"],
                        ["dispatchable_names", "Option<Vec<Text>>"],
                    ],
                },
                "Permissions": {
                    "type": "struct",
                    "type_mapping": [
                        ["asset", "Option<Vec<Ticker>>"],
                        ["extrinsic", "Option<Vec<PalletPermissions>>"],
                        ["portfolio", "Option<Vec<PortfolioId>>"],
                    ],
                },
            },
        },
    ],
}

# Keyed by runtime spec name as reported by state_getRuntimeVersion.
KNOWN_SPECS: Mapping[str, Dict[str, Any]] = {
    "polymesh": POLYMESH_TYPES,
    "polymesh_testnet": POLYMESH_TYPES,
    "polymesh_mainnet": POLYMESH_TYPES,
}


def _in_range(spec_version: int, runtime_range: Any) -> bool:
    lo, hi = runtime_range
    if lo is not None and spec_version < lo:
        return False
    if hi is not None and spec_version > hi:
        return False
    return True


def spec_types(
    spec_name: str,
    spec_version: int,
    extra: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Flatten the type definitions that apply to `spec_name` at `spec_version`.

    Base types first, then matching versioning blocks in declaration order,
    then `extra` (same shape: {"types": ..., "versioning": [...]}) on top.
    Unknown spec names yield only `extra`.
    """
    out: Dict[str, Any] = {}
    sources = []
    known = KNOWN_SPECS.get(spec_name.lower())
    if known is not None:
        sources.append(known)
    if extra:
        sources.append(extra)
    for source in sources:
        out.update(source.get("types", {}))
        for block in source.get("versioning", []):
            if _in_range(spec_version, block["runtime_range"]):
                out.update(block.get("types", {}))
    return out


__all__ = ["POLYMESH_TYPES", "KNOWN_SPECS", "spec_types"]
