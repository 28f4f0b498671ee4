"""
polymesh-tx: offline transaction pipeline for Polymesh / Substrate chains.
Convenience exports for the most common APIs.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import PipelineConfig, configure_logging  # noqa: F401
from .errors import (  # noqa: F401
    PolymeshTxError,
    RpcError,
    RegistryBuildError,
    ContextFetchError,
    UnsupportedCallError,
    UnsupportedExtensionError,
    SubmissionFailure,
    WatchTimeoutError,
    ExtrinsicFailedOnChain,
)

# RPC
from .rpc.connection import ChainConnection  # noqa: F401

# Registry & calls
from .registry import Registry, RegistryCache, build_registry  # noqa: F401
from .calls import CALLS, CallDescriptor, get_call, bind_args  # noqa: F401

# Pipeline stages
from .tx.context import ChainContext, fetch_chain_context  # noqa: F401
from .tx.build import TransactionAssembler, UnsignedTransaction, build_unsigned  # noqa: F401
from .tx.encode import decode_extrinsic, signing_payload, tx_hash  # noqa: F401
from .tx.sign import OfflineSigner, keypair_from_private_key, sign, verify  # noqa: F401
from .tx.send import SubmissionResult, submit  # noqa: F401
from .tx.watch import InclusionOutcome, InclusionWatcher, WatchState  # noqa: F401

# End-to-end helpers
from .authorizations import Authorization, get_pending_authorizations, latest_authorization  # noqa: F401
from .pipeline import TxReport, construct_serialized_tx, submit_and_watch  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "PipelineConfig", "configure_logging",
    "PolymeshTxError", "RpcError", "RegistryBuildError", "ContextFetchError",
    "UnsupportedCallError", "UnsupportedExtensionError", "SubmissionFailure", "WatchTimeoutError",
    "ExtrinsicFailedOnChain",
    # RPC
    "ChainConnection",
    # Registry & calls
    "Registry", "RegistryCache", "build_registry",
    "CALLS", "CallDescriptor", "get_call", "bind_args",
    # Stages
    "ChainContext", "fetch_chain_context",
    "TransactionAssembler", "UnsignedTransaction", "build_unsigned",
    "decode_extrinsic", "signing_payload", "tx_hash",
    "OfflineSigner", "keypair_from_private_key", "sign", "verify",
    "SubmissionResult", "submit",
    "InclusionOutcome", "InclusionWatcher", "WatchState",
    # End-to-end
    "Authorization", "get_pending_authorizations", "latest_authorization",
    "TxReport", "construct_serialized_tx", "submit_and_watch",
]
