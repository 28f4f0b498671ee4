"""
polymesh_tx.tx
==============

Transaction pipeline stages: build, sign, send, watch.

Submodules
----------
- context: chain context snapshot (head block, genesis, runtime version, nonce, metadata)
- build  : unsigned transaction assembly
- encode : signing payload, signed envelope, extrinsic decoding and hashing
- sign   : offline signing with sr25519/ed25519 keypairs
- send   : one-shot submission to the node
- events : typed views over System.Events records
- watch  : inclusion watcher state machine

Typical usage
-------------
    from polymesh_tx.tx import build, sign, send, watch

    unsigned = await assembler.assemble(call, args, address)
    serialized = sign.sign(unsigned, keypair, registry)
    tx_hash = (await send.submit(conn, serialized)).unwrap()
    outcome = await watch.InclusionWatcher(conn, registry).watch(tx_hash)
"""

from __future__ import annotations

from . import build as build
from . import context as context
from . import encode as encode
from . import events as events
from . import send as send
from . import sign as sign
from . import watch as watch

__all__ = ["build", "context", "encode", "events", "send", "sign", "watch"]
