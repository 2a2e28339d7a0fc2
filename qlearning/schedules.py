"""
Decay schedules for the learning rate (alpha) and exploration rate (epsilon).
"""
from dataclasses import dataclass
from configuration import ConfigurationError, DecayKind


@dataclass(frozen=True)
class RateSchedule:
    """Non-increasing schedule for a rate, evaluated at step t."""
    initial: float
    decay: float = 1.0
    minimum: float = 0.0
    kind: DecayKind = DecayKind.EXPONENTIAL

    def value(self, t: int) -> float:
        if self.kind == DecayKind.CONSTANT or t <= 0:
            return self.initial
        if self.kind == DecayKind.EXPONENTIAL:
            rate = self.initial * self.decay ** t
        elif self.kind == DecayKind.INVERSE_TIME:
            rate = self.initial / (1.0 + self.decay * t)
        else:
            raise ConfigurationError(f"Unknown decay schedule: {self.kind!r}")
        return float(max(self.minimum, min(self.initial, rate)))
