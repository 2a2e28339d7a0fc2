"""
Beach Problem Domain environment.
Tracks lane attendance and derives the local, global and difference rewards.
"""
import numpy as np
from typing import Iterable, List
from configuration import ConfigurationError, InvariantError


def build_payoff_table(max_occupancy: int, capacity: float) -> np.ndarray:
    """
    Builds the payoff lookup table so the exponential is evaluated once per run.

    Args:
        max_occupancy: Largest attendance a lane can have (the agent count)
        capacity: Attendance at which a lane pays the most

    Returns:
        Array with max_occupancy + 1 entries, table[x] = x * exp(-x / capacity)
    """
    if max_occupancy < 0:
        raise ConfigurationError(f"max_occupancy must not be negative, got {max_occupancy}")
    if capacity <= 0:
        raise ConfigurationError(f"capacity must be positive, got {capacity}")

    x = np.arange(max_occupancy + 1, dtype=np.float64)
    return x * np.exp(-x / capacity)


def format_attendance(attendance: Iterable[int]) -> str:
    """Attendance of every lane on one tab-separated console line."""
    return "\t".join(str(int(a)) for a in attendance)


class Highway:
    """Congestion model shared by every agent of a run."""

    def __init__(self, lanes: int, num_agents: int, capacity: float):
        if lanes <= 0:
            raise ConfigurationError(f"lanes must be positive, got {lanes}")
        if num_agents <= 0:
            raise ConfigurationError(f"num_agents must be positive, got {num_agents}")

        self.lanes = lanes
        self.num_agents = num_agents
        self.capacity = capacity
        self.payoff_table = build_payoff_table(num_agents, capacity)

        self.attendance = np.zeros(lanes, dtype=np.int64)
        self.lane_local = np.zeros(lanes, dtype=np.float64)
        self.lane_difference = np.zeros(lanes, dtype=np.float64)
        self.global_reward = 0.0
        self._attendance_ready = False

    def payoff(self, occupancy: int) -> float:
        return float(self.payoff_table[occupancy])

    def reset_step(self) -> None:
        """Clears the per-step vectors before attendance is recomputed."""
        self.attendance = np.zeros(self.lanes, dtype=np.int64)
        self.lane_local = np.zeros(self.lanes, dtype=np.float64)
        self.lane_difference = np.zeros(self.lanes, dtype=np.float64)
        self.global_reward = 0.0
        self._attendance_ready = False

    def compute_attendance(self, states: Iterable[int]) -> np.ndarray:
        """
        Counts how many agents occupy each lane.

        Args:
            states: Current lane of every agent

        Returns:
            Attendance per lane
        """
        states = np.fromiter(states, dtype=np.int64)
        if states.size and (states.min() < 0 or states.max() >= self.lanes):
            raise InvariantError(
                f"Agent lane outside [0, {self.lanes - 1}]: {states.min()}..{states.max()}"
            )
        if states.size > self.num_agents:
            raise InvariantError(f"{states.size} agents on a highway built for {self.num_agents}")

        self.attendance = np.bincount(states, minlength=self.lanes)
        self._attendance_ready = True
        return self.attendance

    def evaluate(self) -> None:
        """Evaluates local, global and difference rewards from the attendance."""
        if not self._attendance_ready:
            raise InvariantError("evaluate() called before compute_attendance()")

        self.lane_local = self.payoff_table[self.attendance]
        self.global_reward = float(self.lane_local.sum())

        # Payoff of the lane with one agent fewer; empty lanes contribute nothing
        previous = self.payoff_table[np.maximum(self.attendance - 1, 0)]
        self.lane_difference = np.where(self.attendance == 0, 0.0, self.lane_local - previous)

    def local(self, lane: int) -> float:
        return float(self.lane_local[lane])

    def difference(self, lane: int) -> float:
        return float(self.lane_difference[lane])

    def attendance_list(self) -> List[int]:
        return [int(a) for a in self.attendance]
