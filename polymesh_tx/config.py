"""
Pipeline configuration: node endpoint, chain identity, transaction defaults,
watcher timing and logging.

- Loads sane defaults and supports overrides via environment variables (POLYMESH_*).
- Validates endpoint schemes and numeric ranges.

Environment variables (examples):
  POLYMESH_NODE_URL=wss://testnet-rpc.polymesh.live
  POLYMESH_CHAIN_NAME="Polymesh Testnet"
  POLYMESH_SS58_FORMAT=42
  POLYMESH_TOKEN_DECIMALS=6
  POLYMESH_TOKEN_SYMBOL=POLYX
  POLYMESH_CRYPTO_TYPE=sr25519
  POLYMESH_ERA_PERIOD=64
  POLYMESH_TIP=0
  POLYMESH_WATCH_TIMEOUT=20
  POLYMESH_POLL_INTERVAL=1
  POLYMESH_REQUEST_TIMEOUT=30
  POLYMESH_MAX_RETRIES=3
  POLYMESH_LOG_LEVEL=INFO
  POLYMESH_EXTRA_TYPES=/path/to/types.json
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

_DEFAULT_NODE_URL = "wss://testnet-rpc.polymesh.live"
_CRYPTO_TYPES = ("sr25519", "ed25519")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v


def _ensure_scheme(url: str, allowed: tuple[str, ...]) -> str:
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ValueError(f"URL must start with {allowed}, got: {url!r}")
    return url


@dataclass
class PipelineConfig:
    # Node
    node_url: str = _DEFAULT_NODE_URL
    request_timeout: float = 30.0
    max_retries: int = 3
    # Chain identity
    chain_name: str = "Polymesh Testnet"
    ss58_format: int = 42
    token_decimals: int = 6
    token_symbol: str = "POLYX"
    crypto_type: str = "sr25519"
    extra_types: Optional[str] = None
    # Transaction defaults
    era_period: int = 64
    tip: int = 0
    # Inclusion watcher
    watch_timeout: float = 20.0
    poll_interval: float = 1.0
    # Logging
    log_level: str = "INFO"
    _extra_types_cache: Optional[Dict[str, Any]] = field(
        init=False, default=None, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        _ensure_scheme(self.node_url, ("ws", "wss", "http", "https"))
        if self.crypto_type not in _CRYPTO_TYPES:
            raise ValueError(f"crypto_type must be one of {_CRYPTO_TYPES}")
        if self.era_period < 4:
            raise ValueError("era_period must be at least 4 blocks")
        if self.tip < 0:
            raise ValueError("tip must be non-negative")
        if self.watch_timeout <= 0 or self.poll_interval <= 0:
            raise ValueError("watch_timeout and poll_interval must be positive")

    @classmethod
    def from_env(cls, prefix: str = "POLYMESH_") -> "PipelineConfig":
        return cls(
            node_url=_env(f"{prefix}NODE_URL", _DEFAULT_NODE_URL),
            request_timeout=float(_env(f"{prefix}REQUEST_TIMEOUT", "30.0")),
            max_retries=int(_env(f"{prefix}MAX_RETRIES", "3")),
            chain_name=_env(f"{prefix}CHAIN_NAME", "Polymesh Testnet"),
            ss58_format=int(_env(f"{prefix}SS58_FORMAT", "42")),
            token_decimals=int(_env(f"{prefix}TOKEN_DECIMALS", "6")),
            token_symbol=_env(f"{prefix}TOKEN_SYMBOL", "POLYX"),
            crypto_type=_env(f"{prefix}CRYPTO_TYPE", "sr25519").lower(),
            extra_types=_env(f"{prefix}EXTRA_TYPES"),
            era_period=int(_env(f"{prefix}ERA_PERIOD", "64")),
            tip=int(_env(f"{prefix}TIP", "0")),
            watch_timeout=float(_env(f"{prefix}WATCH_TIMEOUT", "20.0")),
            poll_interval=float(_env(f"{prefix}POLL_INTERVAL", "1.0")),
            log_level=_env(f"{prefix}LOG_LEVEL", "INFO").upper(),
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["PipelineConfig"] = None, **overrides: Any
    ) -> "PipelineConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys are ignored.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        data.update({k: v for k, v in overrides.items() if k in data})
        return cls(**data)

    @property
    def is_websocket(self) -> bool:
        return self.node_url.lower().startswith(("ws://", "wss://"))

    def chain_properties(self) -> Dict[str, Any]:
        return {
            "ss58Format": self.ss58_format,
            "tokenDecimals": self.token_decimals,
            "tokenSymbol": self.token_symbol,
        }

    def load_extra_types(self) -> Optional[Dict[str, Any]]:
        """Read the optional JSON type-registry file named by `extra_types`."""
        if not self.extra_types:
            return None
        if self._extra_types_cache is None:
            path = Path(self.extra_types).expanduser()
            self._extra_types_cache = json.loads(path.read_text(encoding="utf-8"))
        return self._extra_types_cache

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("_extra_types_cache", None)
        return data


def configure_logging(level: str = "INFO") -> None:
    """Basic logging if the caller hasn't configured it."""
    if logging.getLogger().handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["PipelineConfig", "configure_logging"]
