"""
Transaction validity window (mortal era) arithmetic.

The bytes of an era are written by scalecodec's `Era` type from the runtime
metadata; this module only decides which window a transaction gets and when
that window closes, so the assembler can report `valid_until` without a
registry at hand.

Period and phase
----------------
The period is a power of two in 4..=65536. The phase is the block number
modulo the period, quantized to multiples of period >> 12 for long periods.
Immortal transactions have no period.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

ScaleEra = Union[str, Tuple[int, int]]


@dataclass(frozen=True)
class Era:
    """A transaction validity window. `period is None` means immortal."""

    period: Optional[int] = None
    phase: int = 0

    @property
    def is_immortal(self) -> bool:
        return self.period is None

    @classmethod
    def mortal(cls, period: int, current: int) -> "Era":
        period = _clamp_period(period)
        phase = current % period
        quantize_factor = max(period >> 12, 1)
        return cls(period=period, phase=phase // quantize_factor * quantize_factor)

    def to_scale(self) -> ScaleEra:
        """Value accepted by scalecodec's `Era` type: "00" or (period, phase)."""
        if self.period is None:
            return "00"
        return (self.period, self.phase)

    @classmethod
    def from_scale(cls, value: Any) -> "Era":
        if value in (None, "00", "0x00"):
            return cls()
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(period=int(value[0]), phase=int(value[1]))
        if isinstance(value, dict) and "period" in value:
            return cls(period=int(value["period"]), phase=int(value.get("phase", 0)))
        raise ValueError(f"not an era: {value!r}")

    def birth(self, current: int) -> int:
        """First block of the window that contains `current`."""
        if self.period is None:
            return 0
        return (max(current, self.phase) - self.phase) // self.period * self.period + self.phase

    def death(self, current: int) -> Optional[int]:
        """First block at which a transaction in this era is no longer valid."""
        if self.period is None:
            return None
        return self.birth(current) + self.period


def _clamp_period(period: int) -> int:
    p = 1 << max(int(period) - 1, 1).bit_length()
    return max(4, min(p, 1 << 16))


__all__ = ["Era", "ScaleEra"]
