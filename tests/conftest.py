"""
Shared fixtures: an in-memory node behind a real `ChainConnection`, and a
real registry built from the small runtime in `runtime_fixture`.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from substrateinterface import Keypair

from polymesh_tx.errors import RpcError
from polymesh_tx.registry import Registry, RegistryCache, build_registry
from polymesh_tx.rpc.connection import ChainConnection
from polymesh_tx.tx.context import ChainContext
from polymesh_tx.tx.encode import tx_hash

from runtime_fixture import METADATA_HEX

GENESIS_HASH = "0x" + "aa" * 32
ALICE_SEED = "0x" + "11" * 32
BOB_SEED = "0x" + "22" * 32
SPEC_NAME = "polymesh_testnet"
SPEC_VERSION = 5004000


def block_hash(number: int) -> str:
    return "0x" + number.to_bytes(32, "big").hex()


class FakeChain:
    """Chain state the fake transport answers from."""

    def __init__(self) -> None:
        self.head = 100
        self.nonces: Dict[str, int] = {}
        self.runtime = {
            "specName": SPEC_NAME,
            "specVersion": SPEC_VERSION,
            "transactionVersion": 4,
        }
        self.metadata = METADATA_HEX
        self.blocks: Dict[int, List[str]] = {}
        # keyed by block hash; the fake storage value of System.Events is the block hash
        self.events: Dict[str, List[Dict[str, Any]]] = {}
        self.authorizations: List[Dict[str, Any]] = []
        self.errors: Dict[str, RpcError] = {}
        self.submitted: List[str] = []

    def add_block(
        self,
        number: int,
        extrinsics: List[str],
        events: Optional[List[Dict[str, Any]]] = None,
    ) -> str:
        self.blocks[number] = list(extrinsics)
        self.events[block_hash(number)] = list(events or [])
        return block_hash(number)


class FakeTransport:
    """Implements the request/subscribe surface `ChainConnection` expects."""

    def __init__(self, chain: FakeChain) -> None:
        self.chain = chain
        self.calls: List[Tuple[str, List[Any]]] = []
        self.handlers: Dict[str, Callable[[Any], None]] = {}
        self.unsubscribed: List[str] = []
        self.heads_on_subscribe: List[Dict[str, Any]] = []
        self.closed = False

    def methods(self) -> List[str]:
        return [m for (m, _p) in self.calls]

    async def request(self, method: str, params: Any = None, *, idempotent: bool = True) -> Any:
        params = list(params or [])
        self.calls.append((method, params))
        await asyncio.sleep(0)
        err = self.chain.errors.get(method)
        if err is not None:
            raise err
        return getattr(self, "_" + method)(*params)

    async def subscribe(self, method: str, params: Any = None, *, on_event: Callable[[Any], None]) -> str:
        self.calls.append((method, list(params or [])))
        sub_id = f"sub-{len(self.calls)}"
        self.handlers[sub_id] = on_event
        loop = asyncio.get_running_loop()
        for header in self.heads_on_subscribe:
            loop.call_soon(self.emit, header)
        return sub_id

    async def unsubscribe(self, method: str, sub_id: str) -> bool:
        self.calls.append((method, [sub_id]))
        self.unsubscribed.append(sub_id)
        return self.handlers.pop(sub_id, None) is not None

    async def close(self) -> None:
        self.closed = True

    def emit(self, header: Dict[str, Any]) -> None:
        for handler in list(self.handlers.values()):
            handler(header)

    # --- node methods -----------------------------------------------------

    def _chain_getBlockHash(self, number: Optional[int] = None) -> str:
        if number is None:
            number = self.chain.head
        return GENESIS_HASH if number == 0 else block_hash(number)

    def _chain_getHeader(self, hash_: Optional[str] = None) -> Dict[str, Any]:
        number = self.chain.head if hash_ is None else int(hash_, 16)
        return {"number": hex(number), "parentHash": block_hash(max(number - 1, 0))}

    def _chain_getBlock(self, hash_: str) -> Dict[str, Any]:
        number = int(hash_, 16)
        return {
            "block": {
                "header": self._chain_getHeader(hash_),
                "extrinsics": self.chain.blocks.get(number, []),
            }
        }

    def _state_getRuntimeVersion(self, hash_: Optional[str] = None) -> Dict[str, Any]:
        return dict(self.chain.runtime)

    def _state_getMetadata(self, hash_: Optional[str] = None) -> str:
        return self.chain.metadata

    def _system_accountNextIndex(self, address: str) -> int:
        return self.chain.nonces.get(address, 0)

    def _state_getStorage(self, key: str, hash_: Optional[str] = None) -> Optional[str]:
        return hash_

    def _author_submitExtrinsic(self, serialized: str) -> str:
        self.chain.submitted.append(serialized)
        return tx_hash(serialized)

    def _identity_getFilteredAuthorizations(self, signatory: Any, allow_expired: bool, auth_type: Any = None) -> List[Dict[str, Any]]:
        return list(self.chain.authorizations)


class ChainRegistry(Registry):
    """
    The real registry over the fixture runtime, except that `System.Events`
    come from `FakeChain.events` as already-decoded records.
    """

    def __init__(self, base: Registry, chain: FakeChain) -> None:
        super().__init__(
            base.runtime_config,
            base.metadata,
            spec_name=base.spec_name,
            spec_version=base.spec_version,
            chain_name=base.chain_name,
            chain_properties=base.chain_properties,
        )
        self.chain = chain

    def decode_events(self, storage_hex: Optional[str]) -> List[Dict[str, Any]]:
        if storage_hex is None:
            return []
        return list(self.chain.events.get(storage_hex, []))


@pytest.fixture(scope="session")
def runtime_registry() -> Registry:
    return build_registry({"ss58Format": 42}, METADATA_HEX, SPEC_NAME, SPEC_VERSION, chain_name="testnet")


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def transport(chain: FakeChain) -> FakeTransport:
    return FakeTransport(chain)


@pytest.fixture
def conn(transport: FakeTransport) -> ChainConnection:
    return ChainConnection("ws://fake-node:9944", transport_factory=lambda: transport)


@pytest.fixture
def registry(runtime_registry: Registry, chain: FakeChain) -> ChainRegistry:
    return ChainRegistry(runtime_registry, chain)


@pytest.fixture
def registries(registry: ChainRegistry) -> RegistryCache:
    cache = RegistryCache({"ss58Format": 42})
    cache.put(registry)
    return cache


@pytest.fixture
def alice() -> Keypair:
    return Keypair.create_from_seed(ALICE_SEED, ss58_format=42)


@pytest.fixture
def bob() -> Keypair:
    return Keypair.create_from_seed(BOB_SEED, ss58_format=42)


@pytest.fixture
def make_context() -> Callable[..., ChainContext]:
    def _make(**overrides: Any) -> ChainContext:
        fields: Dict[str, Any] = dict(
            block_hash=block_hash(100),
            block_number=100,
            genesis_hash=GENESIS_HASH,
            metadata=METADATA_HEX,
            nonce=7,
            spec_name=SPEC_NAME,
            spec_version=SPEC_VERSION,
            transaction_version=4,
        )
        fields.update(overrides)
        return ChainContext(**fields)

    return _make
