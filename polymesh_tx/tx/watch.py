"""
polymesh_tx.tx.watch
====================

Watch new block headers until a submitted extrinsic shows up.

States
------
    WATCHING ──► FOUND_SUCCESS   extrinsic found, System.ExtrinsicSuccess emitted
             ├─► FOUND_FAILURE   extrinsic found, System.ExtrinsicFailed emitted
             └─► TIMED_OUT       deadline passed first; the outcome is unknown

A watch resolves exactly once. Header notifications race a deadline timer;
whichever settles the shared future first wins, the other is cancelled, and
the header subscription is closed on every exit path, errors included. A
header that arrives after resolution is ignored.

The node pushes the current best header right after subscribing, so an
extrinsic included between submission and subscription is still seen.

    watcher = InclusionWatcher(conn, registry, timeout_s=20)
    outcome = await watcher.watch(tx_hash)
    outcome.raise_for_status()     # WatchTimeoutError / ExtrinsicFailedOnChain
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..errors import ExtrinsicFailedOnChain, WatchTimeoutError
from ..utils.bytes import normalize_hex
from ..utils.hash import storage_key
from .encode import tx_hash as extrinsic_hash
from .events import (ChainEvent, ExtrinsicFailed, ExtrinsicSuccess,
                     describe_dispatch_error, events_for_extrinsic,
                     parse_event_record)

log = logging.getLogger(__name__)

SYSTEM_EVENTS_KEY = storage_key("System", "Events")
DEFAULT_TIMEOUT_S = 20.0
MISSING_OUTCOME = "no ExtrinsicSuccess or ExtrinsicFailed event for extrinsic"


class WatchState(str, Enum):
    WATCHING = "watching"
    FOUND_SUCCESS = "found_success"
    FOUND_FAILURE = "found_failure"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class InclusionOutcome:
    tx_hash: str
    state: WatchState
    block_hash: Optional[str] = None
    block_number: Optional[int] = None
    extrinsic_index: Optional[int] = None
    error_info: Optional[str] = None
    events: Tuple[ChainEvent, ...] = ()
    timeout_s: Optional[float] = None

    @property
    def found(self) -> bool:
        return self.state in (WatchState.FOUND_SUCCESS, WatchState.FOUND_FAILURE)

    @property
    def success(self) -> bool:
        return self.state is WatchState.FOUND_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"found": self.found, "success": self.success}
        if self.error_info is not None:
            out["errorInfo"] = self.error_info
        return out

    def raise_for_status(self) -> "InclusionOutcome":
        if self.state is WatchState.TIMED_OUT:
            raise WatchTimeoutError(self.tx_hash, self.timeout_s or 0.0)
        if self.state is WatchState.FOUND_FAILURE:
            raise ExtrinsicFailedOnChain(
                self.tx_hash, self.error_info or MISSING_OUTCOME, block_hash=self.block_hash
            )
        return self


def find_extrinsic(extrinsics: Iterable[str], target: str) -> Optional[int]:
    for index, ext in enumerate(extrinsics):
        if extrinsic_hash(ext) == target:
            return index
    return None


def _block_number(value: Any) -> int:
    if isinstance(value, int):
        return value
    s = str(value)
    return int(s, 16) if s.startswith(("0x", "0X")) else int(s)


class InclusionWatcher:
    def __init__(
        self,
        conn: Any,
        registry: Any,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        poll_interval_s: float = 1.0,
    ) -> None:
        if timeout_s <= 0 or poll_interval_s <= 0:
            raise ValueError("timeout_s and poll_interval_s must be positive")
        self._conn = conn
        self.registry = registry
        self.timeout_s = timeout_s
        self.poll_interval_s = poll_interval_s

    async def watch(self, tx_hash: str, timeout_s: Optional[float] = None) -> InclusionOutcome:
        """
        Resolve to the first terminal state for `tx_hash`.

        Always returns an `InclusionOutcome`; call `raise_for_status()` to turn
        timeouts and on-chain failures into exceptions. RPC errors while
        inspecting a block end the watch and propagate.
        """
        target = normalize_hex(tx_hash)
        timeout = self.timeout_s if timeout_s is None else float(timeout_s)
        loop = asyncio.get_running_loop()
        resolved: asyncio.Future = loop.create_future()
        seen: Set[str] = set()
        in_flight: Set[asyncio.Task] = set()

        def on_header(header: Any) -> None:
            if resolved.done():
                return
            task = loop.create_task(self._inspect(header, target, seen, resolved))
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)

        log.debug("watching for %s (timeout %.1fs)", target, timeout)
        sub_id = await self._conn.subscribe_new_heads(on_header)
        deadline = loop.create_task(self._deadline(loop.time() + timeout, target, timeout, resolved))
        try:
            outcome: InclusionOutcome = await resolved
        finally:
            deadline.cancel()
            pending = [t for t in in_flight if not t.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(deadline, *pending, return_exceptions=True)
            if not resolved.done():
                resolved.cancel()
            await self._unsubscribe(sub_id)

        if outcome.state is WatchState.TIMED_OUT:
            log.warning("timed out after %.1fs waiting for %s", timeout, target)
        else:
            log.info(
                "%s in block #%s %s: %s",
                target, outcome.block_number, outcome.block_hash, outcome.state.value,
            )
        return outcome

    # ------------- internals -------------------

    async def _unsubscribe(self, sub_id: str) -> None:
        try:
            await self._conn.unsubscribe_new_heads(sub_id)
        except Exception as e:  # the subscription may already be gone with the socket
            log.warning("failed to unsubscribe %s: %s", sub_id, e)

    async def _deadline(
        self, at: float, target: str, timeout: float, resolved: asyncio.Future
    ) -> None:
        loop = asyncio.get_running_loop()
        while not resolved.done():
            remaining = at - loop.time()
            if remaining <= 0:
                resolved.set_result(
                    InclusionOutcome(tx_hash=target, state=WatchState.TIMED_OUT, timeout_s=timeout)
                )
                return
            await asyncio.sleep(min(self.poll_interval_s, remaining))

    async def _inspect(
        self, header: Any, target: str, seen: Set[str], resolved: asyncio.Future
    ) -> None:
        try:
            outcome = await self._check_block(header, target, seen, resolved)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not resolved.done():
                resolved.set_exception(e)
            return
        if outcome is not None and not resolved.done():
            resolved.set_result(outcome)

    async def _check_block(
        self, header: Any, target: str, seen: Set[str], resolved: asyncio.Future
    ) -> Optional[InclusionOutcome]:
        number = _block_number(header["number"])
        block_hash = await self._conn.get_block_hash(number)
        if resolved.done() or block_hash in seen:
            return None
        seen.add(block_hash)

        block = await self._conn.get_block(block_hash)
        extrinsics = (block or {}).get("block", {}).get("extrinsics", [])
        index = find_extrinsic(extrinsics, target)
        if index is None:
            log.debug("block #%d %s: %s not included", number, block_hash, target)
            return None

        storage = await self._conn.get_storage(SYSTEM_EVENTS_KEY, block_hash)
        records = [parse_event_record(r) for r in self.registry.decode_events(storage)]
        events = events_for_extrinsic(records, index)
        return self._classify(target, block_hash, number, index, events)

    def _classify(
        self,
        target: str,
        block_hash: str,
        number: int,
        index: int,
        events: List[ChainEvent],
    ) -> InclusionOutcome:
        found = dict(
            tx_hash=target,
            block_hash=block_hash,
            block_number=number,
            extrinsic_index=index,
            events=tuple(events),
        )
        for event in events:
            if isinstance(event, ExtrinsicFailed):
                info = describe_dispatch_error(event.dispatch_error, self.registry)
                return InclusionOutcome(state=WatchState.FOUND_FAILURE, error_info=info, **found)
        for event in events:
            if isinstance(event, ExtrinsicSuccess):
                return InclusionOutcome(state=WatchState.FOUND_SUCCESS, **found)
        return InclusionOutcome(state=WatchState.FOUND_FAILURE, error_info=MISSING_OUTCOME, **found)


__all__ = [
    "WatchState",
    "InclusionOutcome",
    "InclusionWatcher",
    "find_extrinsic",
    "SYSTEM_EVENTS_KEY",
]
