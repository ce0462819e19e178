"""Running heart-rate history.

Tracks the current, lowest and highest heart rate seen in a stream of
samples, as the weekly heart-rate screen does.  Until the first sample
arrives ``minimum`` is ``-1`` and ``maximum`` is ``0``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from StaminaBar.common.kinds import DataKind, Sample


@dataclass
class HeartRateHistory:
    current: int = 0
    minimum: int = -1
    maximum: int = 0

    @property
    def empty(self) -> bool:
        return self.minimum == -1 and self.maximum == 0

    def add(self, bpm: float) -> None:
        self.current = int(bpm)
        if self.maximum < self.current:
            self.maximum = self.current
        if self.minimum == -1 or self.minimum > self.current:
            self.minimum = self.current

    def process(self, samples: Iterable[Sample]) -> None:
        """Fold heart-rate ``samples`` into the history, ignoring other kinds."""

        for sample in samples:
            if sample.kind is DataKind.HEART_RATE:
                self.add(sample.value)

    def to_dict(self) -> Dict[str, object]:
        if self.empty:
            return {"current": None, "minimum": None, "maximum": None}
        return {"current": self.current, "minimum": self.minimum, "maximum": self.maximum}


__all__ = ["HeartRateHistory"]
