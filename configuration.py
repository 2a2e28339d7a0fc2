from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum, auto


class ConfigurationError(ValueError):
    """Raised when an experiment is configured inconsistently."""


class InvariantError(RuntimeError):
    """Raised when a run violates one of its own invariants."""


class RewardSignal(Enum):
    """Reward signal that drives the Q-value update."""
    LOCAL = auto()        # Payoff of the agent's own lane
    GLOBAL = auto()       # Sum of every lane's payoff (same for all agents)
    DIFFERENCE = auto()   # Marginal contribution of one agent to its lane
    COORDINATED = auto()  # Superlane reward when the lane is over capacity


class DecayKind(Enum):
    """Decay schedules available for the learning and exploration rates."""
    EXPONENTIAL = auto()   # initial * decay ** t
    INVERSE_TIME = auto()  # initial / (1 + decay * t)
    CONSTANT = auto()      # initial


class Action(Enum):
    """Lane change chosen by an agent. The value is the Q-table column."""
    DECREASE = 0
    STAY = 1
    INCREASE = 2

    @property
    def offset(self) -> int:
        return self.value - 1


def _enum_by_name(enum_type, value):
    if not isinstance(value, str):
        return value
    try:
        return enum_type[value.upper().replace('-', '_')]
    except KeyError:
        choices = ', '.join(member.name.lower() for member in enum_type)
        raise ConfigurationError(f"Unknown {enum_type.__name__} '{value}' (choices: {choices})") from None


@dataclass
class Configuration:
    """Run-level configuration for the Beach Problem Domain experiments."""
    # Experiment size
    STAT_RUNS: int = 30
    EPISODES: int = 10000
    STEPS: int = 5
    NUM_AGENTS: int = 100

    # Highway
    LANES: int = 6
    CAPACITY: int = 6
    INITIAL_LANE: Optional[int] = None  # None starts every agent in the middle lane

    # Resource abstraction: explicit groups win over the preset name
    PARTITION_PRESET: str = "2+1+3"
    PARTITION: Optional[List[List[int]]] = None

    # Reward signal used for learning
    REWARD_SIGNAL: RewardSignal = RewardSignal.COORDINATED

    # Q-learning
    GAMMA: float = 0.9
    ALPHA_INITIAL: float = 0.1
    ALPHA_DECAY: float = 0.9999
    ALPHA_MINIMUM: float = 0.0
    ALPHA_SCHEDULE: DecayKind = DecayKind.EXPONENTIAL
    EPSILON_INITIAL: float = 0.05
    EPSILON_DECAY: float = 0.9999
    EPSILON_MINIMUM: float = 0.0
    EPSILON_SCHEDULE: DecayKind = DecayKind.EXPONENTIAL

    # Reproducibility: run i is seeded with SEED + i
    SEED: Optional[int] = None

    # Output
    PRETTY_PRINT: bool = True  # False records only every EPISODES // 1000 episodes
    OUTPUT_FILE: str = "global.txt"
    REPORT_DIR: str = "reports"
    REPORT_FILE: Optional[str] = None
    WORKERS: int = 1

    # Console
    PROGRESS_BAR: bool = True
    VERBOSE: bool = False

    ACTIONS: List[Action] = field(default_factory=lambda: list(Action))

    @property
    def NUM_ACTIONS(self) -> int:
        return len(self.ACTIONS)

    @property
    def STARTING_LANE(self) -> int:
        """Lane every agent occupies at the start of an episode."""
        if self.INITIAL_LANE is None:
            return self.LANES // 2
        return self.INITIAL_LANE

    @property
    def REPORT_INTERVAL(self) -> int:
        """Episodes between two recorded global rewards."""
        if self.PRETTY_PRINT:
            return 1
        return max(1, self.EPISODES // 1000)

    def __post_init__(self):
        # Enum values may arrive by name from the command line
        self.REWARD_SIGNAL = _enum_by_name(RewardSignal, self.REWARD_SIGNAL)
        self.ALPHA_SCHEDULE = _enum_by_name(DecayKind, self.ALPHA_SCHEDULE)
        self.EPSILON_SCHEDULE = _enum_by_name(DecayKind, self.EPSILON_SCHEDULE)

    def validate(self) -> None:
        """
        Checks the scalar parameters of the experiment.

        The superlane partition is validated separately when it is built,
        since it needs the lane count and capacity checked here first.

        Raises:
            ConfigurationError: if any parameter is out of range
        """
        for name in ('STAT_RUNS', 'EPISODES', 'STEPS', 'NUM_AGENTS', 'LANES', 'WORKERS'):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

        if self.CAPACITY <= 0:
            raise ConfigurationError(f"CAPACITY must be positive, got {self.CAPACITY!r}")

        if not 0 <= self.STARTING_LANE < self.LANES:
            raise ConfigurationError(
                f"INITIAL_LANE must be in [0, {self.LANES - 1}], got {self.INITIAL_LANE!r}"
            )

        if not isinstance(self.REWARD_SIGNAL, RewardSignal):
            raise ConfigurationError(f"Unknown reward signal: {self.REWARD_SIGNAL!r}")

        for name in ('ALPHA_SCHEDULE', 'EPSILON_SCHEDULE'):
            if not isinstance(getattr(self, name), DecayKind):
                raise ConfigurationError(f"Unknown decay schedule for {name}: {getattr(self, name)!r}")

        if self.SEED is not None and (not isinstance(self.SEED, int) or self.SEED < 0):
            raise ConfigurationError(f"SEED must be a non-negative integer, got {self.SEED!r}")

        if not 0.0 <= self.GAMMA <= 1.0:
            raise ConfigurationError(f"GAMMA must be in [0, 1], got {self.GAMMA!r}")

        for prefix in ('ALPHA', 'EPSILON'):
            initial = getattr(self, f"{prefix}_INITIAL")
            minimum = getattr(self, f"{prefix}_MINIMUM")
            decay = getattr(self, f"{prefix}_DECAY")
            if not 0.0 <= minimum <= initial <= 1.0:
                raise ConfigurationError(
                    f"{prefix} needs 0 <= minimum <= initial <= 1, got {minimum!r} and {initial!r}"
                )
            if decay < 0.0:
                raise ConfigurationError(f"{prefix}_DECAY must not be negative, got {decay!r}")
            if getattr(self, f"{prefix}_SCHEDULE") == DecayKind.EXPONENTIAL and decay > 1.0:
                raise ConfigurationError(f"{prefix}_DECAY above 1 would increase the rate")


# Singleton instance
CONFIG = Configuration()
