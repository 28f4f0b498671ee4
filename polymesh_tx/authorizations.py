"""
Pending authorizations addressed to an account.

A JoinIdentity handshake is two transactions: the identity owner issues
`Identity.add_authorization` targeting the new key, then the key accepts it
with `Identity.join_identity_as_key(auth_id)`. Between the two, the key looks
up the auth id here.

Ordering is explicit: ascending `auth_id`, ties broken by expiry (no expiry
sorts last). `latest_authorization` is therefore the most recently issued
one, since the chain hands out auth ids in increasing order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Authorization:
    auth_id: int
    authorization_data: Any
    authorized_by: Optional[str] = None
    expiry: Optional[int] = None

    @property
    def auth_type(self) -> Optional[str]:
        data = self.authorization_data
        if isinstance(data, Mapping) and len(data) == 1:
            return next(iter(data))
        if isinstance(data, str):
            return data
        return None

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> "Authorization":
        def pick(*names: str) -> Any:
            for name in names:
                if name in raw:
                    return raw[name]
            return None

        auth_id = pick("auth_id", "authId")
        if auth_id is None:
            raise ValueError(f"authorization without auth id: {raw!r}")
        expiry = pick("expiry")
        return cls(
            auth_id=int(auth_id),
            authorization_data=pick("authorization_data", "authorizationData"),
            authorized_by=pick("authorized_by", "authorizedBy"),
            expiry=None if expiry is None else int(expiry),
        )


def _order(auth: Authorization) -> tuple:
    return (auth.auth_id, auth.expiry is None, auth.expiry or 0)


def sort_authorizations(auths: Iterable[Authorization]) -> List[Authorization]:
    return sorted(auths, key=_order)


def latest_authorization(auths: Iterable[Authorization]) -> Optional[Authorization]:
    ordered = sort_authorizations(auths)
    return ordered[-1] if ordered else None


async def get_pending_authorizations(
    conn: Any,
    address: str,
    auth_type: Optional[str] = "JoinIdentity",
    *,
    allow_expired: bool = False,
) -> List[Authorization]:
    """Authorizations targeting the account `address`, sorted by `sort_authorizations`."""
    raw = await conn.get_filtered_authorizations(
        {"Account": address}, allow_expired=allow_expired, auth_type=auth_type
    )
    auths = sort_authorizations(Authorization.from_rpc(r) for r in raw)
    log.debug("%d pending %s authorization(s) for %s", len(auths), auth_type or "any", address)
    return auths


__all__ = [
    "Authorization",
    "sort_authorizations",
    "latest_authorization",
    "get_pending_authorizations",
]
