"""
polymesh_tx.calls
=================

Static table of the chain calls this library knows how to build.

Each entry names the runtime pallet, the call and its positional argument
names, exactly as they appear in the runtime metadata. Adding a call type means
adding an entry here; nothing else changes.

    from polymesh_tx.calls import get_call, bind_args

    call = get_call("Identity", "join_identity_as_key")
    args = bind_args(call, [42])        # {"auth_id": 42}
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Sequence, Tuple, Union

from .errors import UnsupportedCallError


@dataclass(frozen=True)
class CallDescriptor:
    pallet: str
    method: str
    args: Tuple[str, ...]
    doc: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.pallet, self.method)

    @property
    def name(self) -> str:
        return f"{self.pallet}.{self.method}"


_DESCRIPTORS = (
    CallDescriptor(
        "Identity",
        "add_authorization",
        ("target", "authorization_data", "expiry"),
        "Ask `target` to accept an authorization (e.g. JoinIdentity) issued by the caller's identity.",
    ),
    CallDescriptor(
        "Identity",
        "join_identity_as_key",
        ("auth_id",),
        "Accept a pending JoinIdentity authorization as a secondary key.",
    ),
    CallDescriptor(
        "Identity",
        "add_claim",
        ("target", "claim", "expiry"),
    ),
    CallDescriptor(
        "Identity",
        "cdd_register_did",
        ("target_account", "secondary_keys"),
        "Register a new identity for `target_account` (CDD providers only).",
    ),
    CallDescriptor(
        "Balances",
        "transfer_with_memo",
        ("dest", "value", "memo"),
    ),
    CallDescriptor(
        "Balances",
        "transfer",
        ("dest", "value"),
    ),
)

CALLS: Mapping[Tuple[str, str], CallDescriptor] = MappingProxyType(
    {d.key: d for d in _DESCRIPTORS}
)


def get_call(pallet: str, method: str) -> CallDescriptor:
    try:
        return CALLS[(pallet, method)]
    except KeyError:
        raise UnsupportedCallError(pallet, method, "not in the call registry") from None


def require_known(call: CallDescriptor) -> CallDescriptor:
    """Return the registered descriptor, rejecting ad-hoc descriptors that disagree with it."""
    known = get_call(call.pallet, call.method)
    if known.args != call.args:
        raise UnsupportedCallError(
            call.pallet, call.method, f"argument list {call.args} does not match {known.args}"
        )
    return known


def bind_args(
    call: CallDescriptor, args: Union[Sequence[Any], Mapping[str, Any]]
) -> Dict[str, Any]:
    """
    Map positional (or keyword) arguments onto the descriptor's argument names.

    Returns an insertion-ordered dict in declaration order.
    """
    if isinstance(args, Mapping):
        unknown = set(args) - set(call.args)
        missing = [name for name in call.args if name not in args]
        if unknown or missing:
            raise ValueError(
                f"{call.name}: unknown args {sorted(unknown)}, missing args {missing}"
            )
        return {name: args[name] for name in call.args}
    if isinstance(args, (str, bytes)):
        raise TypeError(f"{call.name}: args must be a sequence or mapping")
    values = list(args)
    if len(values) != len(call.args):
        raise ValueError(
            f"{call.name} takes {len(call.args)} argument(s) {call.args}, got {len(values)}"
        )
    return dict(zip(call.args, values))


__all__ = ["CallDescriptor", "CALLS", "get_call", "require_known", "bind_args"]
