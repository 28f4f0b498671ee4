import asyncio

import pytest

from polymesh_tx.errors import (ExtrinsicFailedOnChain, JsonRpcCode, RpcError,
                                WatchTimeoutError)
from polymesh_tx.tx.encode import tx_hash
from polymesh_tx.tx.watch import (SYSTEM_EVENTS_KEY, InclusionWatcher,
                                  WatchState, find_extrinsic)

from conftest import block_hash

TARGET = "0x0c040700"
OTHER = "0x0c040500"


def header(number):
    return {"number": hex(number), "parentHash": block_hash(number - 1)}


def success(index):
    return {"phase": {"ApplyExtrinsic": index}, "module_id": "System", "event_id": "ExtrinsicSuccess", "attributes": {}}


def failed(index, dispatch_error):
    return {
        "phase": {"ApplyExtrinsic": index},
        "module_id": "System",
        "event_id": "ExtrinsicFailed",
        "attributes": {"dispatch_error": dispatch_error, "dispatch_info": {}},
    }


def test_find_extrinsic_by_hash():
    assert find_extrinsic([OTHER, TARGET], tx_hash(TARGET)) == 1
    assert find_extrinsic([OTHER], tx_hash(TARGET)) is None


@pytest.mark.asyncio
async def test_found_success(conn, chain, transport, registry):
    chain.add_block(101, [OTHER])
    chain.add_block(102, [OTHER, TARGET], [success(0), success(1)])
    transport.heads_on_subscribe = [header(101), header(102)]

    outcome = await InclusionWatcher(conn, registry, timeout_s=2).watch(tx_hash(TARGET))

    assert outcome.state is WatchState.FOUND_SUCCESS
    assert outcome.to_dict() == {"found": True, "success": True}
    assert (outcome.block_number, outcome.block_hash, outcome.extrinsic_index) == (102, block_hash(102), 1)
    assert outcome.raise_for_status() is outcome
    assert transport.unsubscribed and not transport.handlers
    assert ("state_getStorage", [SYSTEM_EVENTS_KEY, block_hash(102)]) in transport.calls


@pytest.mark.asyncio
async def test_found_module_failure(conn, chain, transport, registry):
    chain.add_block(101, [TARGET], [failed(0, {"Module": {"index": 7, "error": "0x05000000"}})])
    transport.heads_on_subscribe = [header(101)]

    outcome = await InclusionWatcher(conn, registry, timeout_s=2).watch(tx_hash(TARGET))

    assert outcome.state is WatchState.FOUND_FAILURE
    assert outcome.to_dict() == {"found": True, "success": False, "errorInfo": "Identity.AlreadyLinked"}
    with pytest.raises(ExtrinsicFailedOnChain) as ei:
        outcome.raise_for_status()
    assert ei.value.error_info == "Identity.AlreadyLinked"
    assert ei.value.block_hash == block_hash(101)
    assert transport.unsubscribed


@pytest.mark.asyncio
async def test_found_non_module_failure(conn, chain, transport, registry):
    chain.add_block(101, [TARGET], [failed(0, "BadOrigin")])
    transport.heads_on_subscribe = [header(101)]

    outcome = await InclusionWatcher(conn, registry, timeout_s=2).watch(tx_hash(TARGET))

    assert outcome.state is WatchState.FOUND_FAILURE
    assert outcome.error_info == "BadOrigin"


@pytest.mark.asyncio
async def test_events_of_other_extrinsics_are_ignored(conn, chain, transport, registry):
    chain.add_block(101, [OTHER, TARGET], [failed(0, "BadOrigin"), success(1)])
    transport.heads_on_subscribe = [header(101)]

    outcome = await InclusionWatcher(conn, registry, timeout_s=2).watch(tx_hash(TARGET))

    assert outcome.success


@pytest.mark.asyncio
async def test_timeout_unsubscribes_and_ignores_late_headers(conn, chain, transport, registry):
    chain.add_block(101, [OTHER])
    chain.add_block(102, [TARGET], [success(0)])
    transport.heads_on_subscribe = [header(101)]

    watcher = InclusionWatcher(conn, registry, timeout_s=0.05, poll_interval_s=0.01)
    outcome = await watcher.watch(tx_hash(TARGET))

    assert outcome.state is WatchState.TIMED_OUT
    assert outcome.to_dict() == {"found": False, "success": False}
    assert transport.unsubscribed == ["sub-1"]
    with pytest.raises(WatchTimeoutError):
        outcome.raise_for_status()

    seen = len(transport.calls)
    transport.emit(header(102))
    await asyncio.sleep(0.02)
    assert len(transport.calls) == seen


@pytest.mark.asyncio
async def test_duplicate_and_out_of_order_headers(conn, chain, transport, registry):
    chain.add_block(101, [OTHER])
    chain.add_block(102, [OTHER])
    chain.add_block(103, [TARGET], [success(0)])
    transport.heads_on_subscribe = [header(102), header(102), header(101), header(103), header(103)]

    outcome = await InclusionWatcher(conn, registry, timeout_s=2).watch(tx_hash(TARGET))

    assert outcome.success
    fetched = [p[0] for (m, p) in transport.calls if m == "chain_getBlock"]
    assert fetched.count(block_hash(102)) == 1
    assert fetched.count(block_hash(103)) <= 1


@pytest.mark.asyncio
async def test_missing_outcome_event_is_a_failure(conn, chain, transport, registry):
    chain.add_block(101, [TARGET], [])
    transport.heads_on_subscribe = [header(101)]

    outcome = await InclusionWatcher(conn, registry, timeout_s=2).watch(tx_hash(TARGET))

    assert outcome.found and not outcome.success


@pytest.mark.asyncio
async def test_rpc_error_while_inspecting_propagates(conn, chain, transport, registry):
    chain.errors["chain_getBlock"] = RpcError(code=JsonRpcCode.TRANSPORT_ERROR, message="socket closed")
    transport.heads_on_subscribe = [header(101)]

    with pytest.raises(RpcError):
        await InclusionWatcher(conn, registry, timeout_s=2).watch(tx_hash(TARGET))
    assert transport.unsubscribed


def test_watcher_rejects_bad_timing(conn, registry):
    with pytest.raises(ValueError):
        InclusionWatcher(conn, registry, timeout_s=0)
