"""
Typed views over decoded `System.Events` records.

scalecodec yields event records as plain dicts whose shape differs a little
between library versions (flat `module_id`/`event_id`/`attributes`, or the same
keys nested under `event`; phase as `{"ApplyExtrinsic": n}` or as a string
plus `extrinsic_idx`). `parse_event_record` normalizes both into an
`EventRecord` whose `event` is one of three variants:

- `ExtrinsicSuccess`
- `ExtrinsicFailed` (with a parsed `DispatchError`)
- `OtherEvent`
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

from ..utils.bytes import ensure_bytes

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchError:
    """`kind` is "Module" for pallet errors, otherwise the runtime's variant name."""

    kind: str
    module_index: Optional[int] = None
    error_index: Optional[int] = None
    detail: Any = None

    @property
    def is_module(self) -> bool:
        return self.kind == "Module" and self.module_index is not None


@dataclass(frozen=True)
class ExtrinsicSuccess:
    dispatch_info: Any = None


@dataclass(frozen=True)
class ExtrinsicFailed:
    dispatch_error: DispatchError
    dispatch_info: Any = None


@dataclass(frozen=True)
class OtherEvent:
    pallet: str
    name: str
    attributes: Any = None


ChainEvent = Union[ExtrinsicSuccess, ExtrinsicFailed, OtherEvent]


@dataclass(frozen=True)
class EventRecord:
    extrinsic_index: Optional[int]
    event: ChainEvent


# --- parsing ------------------------------------------------------------------


def _phase_index(raw: Mapping[str, Any]) -> Optional[int]:
    phase = raw.get("phase")
    if isinstance(phase, Mapping):
        if "ApplyExtrinsic" in phase:
            return int(phase["ApplyExtrinsic"])
        return None
    if phase == "ApplyExtrinsic" and raw.get("extrinsic_idx") is not None:
        return int(raw["extrinsic_idx"])
    return None


def _error_index(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        # ModuleError.error is [u8; 4] in newer runtimes; the first byte is the index
        return ensure_bytes(value)[0]
    if isinstance(value, (list, tuple, bytes, bytearray)):
        return int(value[0])
    raise ValueError(f"cannot read module error index from {value!r}")


def parse_dispatch_error(raw: Any) -> DispatchError:
    if isinstance(raw, str):
        return DispatchError(kind=raw)
    if isinstance(raw, Mapping) and len(raw) == 1:
        kind, inner = next(iter(raw.items()))
        if kind == "Module":
            if isinstance(inner, Mapping):
                return DispatchError(
                    kind="Module",
                    module_index=int(inner["index"]),
                    error_index=_error_index(inner["error"]),
                )
            if isinstance(inner, (list, tuple)) and len(inner) == 2:
                return DispatchError(
                    kind="Module",
                    module_index=int(inner[0]),
                    error_index=_error_index(inner[1]),
                )
        return DispatchError(kind=str(kind), detail=inner)
    return DispatchError(kind="Unknown", detail=raw)


def _failed_attributes(attributes: Any) -> tuple:
    if isinstance(attributes, Mapping):
        return attributes.get("dispatch_error"), attributes.get("dispatch_info")
    if isinstance(attributes, (list, tuple)) and attributes:
        return attributes[0], attributes[1] if len(attributes) > 1 else None
    return attributes, None


def _success_info(attributes: Any) -> Any:
    if isinstance(attributes, Mapping):
        return attributes.get("dispatch_info", attributes)
    if isinstance(attributes, (list, tuple)) and attributes:
        return attributes[0]
    return attributes


def parse_event_record(raw: Mapping[str, Any]) -> EventRecord:
    body = raw.get("event") if isinstance(raw.get("event"), Mapping) else raw
    pallet = body.get("module_id") or body.get("pallet") or ""
    name = body.get("event_id") or body.get("name") or ""
    attributes = body.get("attributes")

    event: ChainEvent
    if pallet == "System" and name == "ExtrinsicSuccess":
        event = ExtrinsicSuccess(dispatch_info=_success_info(attributes))
    elif pallet == "System" and name == "ExtrinsicFailed":
        error, info = _failed_attributes(attributes)
        event = ExtrinsicFailed(dispatch_error=parse_dispatch_error(error), dispatch_info=info)
    else:
        event = OtherEvent(pallet=pallet, name=name, attributes=attributes)
    return EventRecord(extrinsic_index=_phase_index(raw), event=event)


def events_for_extrinsic(records: Iterable[EventRecord], index: int) -> List[ChainEvent]:
    return [r.event for r in records if r.extrinsic_index == index]


def describe_dispatch_error(error: DispatchError, registry: Any) -> str:
    """
    "Pallet.ErrorName" for module errors the registry can resolve, otherwise
    the raw variant name (e.g. "BadOrigin", or "Token(NoFunds)").
    """
    if error.is_module:
        try:
            pallet, name = registry.resolve_module_error(error.module_index, error.error_index)
        except (LookupError, ValueError, AttributeError) as e:
            log.warning(
                "cannot resolve module error %s/%s: %s",
                error.module_index, error.error_index, e,
            )
            return f"Module(index={error.module_index}, error={error.error_index})"
        return f"{pallet}.{name}"
    if isinstance(error.detail, str):
        return f"{error.kind}({error.detail})"
    return error.kind


__all__ = [
    "DispatchError",
    "ExtrinsicSuccess",
    "ExtrinsicFailed",
    "OtherEvent",
    "ChainEvent",
    "EventRecord",
    "parse_dispatch_error",
    "parse_event_record",
    "events_for_extrinsic",
    "describe_dispatch_error",
]
