import logging

import pytest

from polymesh_tx.errors import JsonRpcCode, RpcError, SubmissionFailure
from polymesh_tx.tx.encode import tx_hash
from polymesh_tx.tx.send import SubmissionResult, submit

SERIALIZED = "0x0c040500"


@pytest.mark.asyncio
async def test_submit_returns_hash(conn, chain, transport):
    result = await submit(conn, SERIALIZED)
    assert result.ok
    assert result.unwrap() == tx_hash(SERIALIZED)
    assert chain.submitted == [SERIALIZED]
    assert transport.methods() == ["author_submitExtrinsic"]


@pytest.mark.asyncio
async def test_node_rejection_is_returned_not_raised(conn, chain, transport, caplog):
    chain.errors["author_submitExtrinsic"] = RpcError(
        code=1010, message="Invalid Transaction", data="Transaction is outdated"
    )
    with caplog.at_level(logging.WARNING, logger="polymesh_tx.tx.send"):
        result = await submit(conn, SERIALIZED)
    assert "transaction pool rejected" in caplog.text
    assert not result.ok
    assert result.failure.code == 1010
    assert result.failure.data == "Transaction is outdated"
    assert not result.failure.transport
    assert transport.methods() == ["author_submitExtrinsic"]
    with pytest.raises(SubmissionFailure):
        result.unwrap()


@pytest.mark.asyncio
async def test_transport_failure_is_flagged(conn, chain, transport):
    chain.errors["author_submitExtrinsic"] = RpcError(
        code=JsonRpcCode.TRANSPORT_ERROR, message="RPC transport failed"
    )
    result = await submit(conn, SERIALIZED)
    assert result.failure.transport
    assert result.failure.code is None
    assert transport.methods().count("author_submitExtrinsic") == 1


@pytest.mark.asyncio
async def test_unexpected_result_is_a_failure(conn, transport, monkeypatch):
    monkeypatch.setattr(transport, "_author_submitExtrinsic", lambda serialized: None)
    result = await submit(conn, SERIALIZED)
    assert not result.ok
    assert "unexpected" in result.failure.message


def test_empty_result_unwrap():
    with pytest.raises(SubmissionFailure):
        SubmissionResult().unwrap()
