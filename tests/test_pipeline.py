import logging

import pytest

from polymesh_tx.calls import get_call
from polymesh_tx.config import PipelineConfig
from polymesh_tx.errors import RpcError
from polymesh_tx.pipeline import construct_serialized_tx, submit_and_watch
from polymesh_tx.tx.build import TransactionAssembler
from polymesh_tx.tx.encode import decode_extrinsic, tx_hash

from conftest import ALICE_SEED


@pytest.mark.asyncio
async def test_construct_serialized_tx(conn, chain, registry, registries, alice, caplog):
    chain.nonces[alice.ss58_address] = 3
    assembler = TransactionAssembler(conn, registries=registries)

    with caplog.at_level(logging.DEBUG, logger="polymesh_tx.pipeline"):
        serialized = await construct_serialized_tx(
            conn,
            ALICE_SEED,
            get_call("Identity", "join_identity_as_key"),
            [17],
            assembler=assembler,
            config=PipelineConfig(),
        )

    decoded = decode_extrinsic(serialized, registry)
    assert decoded.signer == alice.public_key
    assert decoded.nonce == 3
    assert tx_hash(serialized) in caplog.text
    assert ALICE_SEED not in caplog.text


@pytest.mark.asyncio
async def test_submit_and_watch_success(conn, chain, transport, registry):
    serialized = "0x0c040700"
    chain.add_block(101, [serialized], [
        {"phase": {"ApplyExtrinsic": 0}, "module_id": "System", "event_id": "ExtrinsicSuccess", "attributes": {}},
    ])
    transport.heads_on_subscribe = [{"number": hex(101)}]

    report = await submit_and_watch(conn, serialized, registry, timeout_s=2)

    assert report.submission.unwrap() == tx_hash(serialized)
    assert report.to_dict() == {"found": True, "success": True}
    assert transport.methods()[0] == "author_submitExtrinsic"


@pytest.mark.asyncio
async def test_submit_and_watch_rejected_submission(conn, chain, transport, registry):
    chain.errors["author_submitExtrinsic"] = RpcError(code=1014, message="Priority is too low")

    report = await submit_and_watch(conn, "0x0c040700", registry, timeout_s=2)

    assert report.to_dict() == {"found": False, "success": False, "errorInfo": "Priority is too low"}
    assert report.outcome is None
    assert "chain_subscribeNewHeads" not in transport.methods()
