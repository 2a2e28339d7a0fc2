"""
Resource abstraction for the Beach Problem Domain.

Lanes are grouped into superlanes. Each superlane aggregates the attendance of
its member lanes and pays a group reward, which agents in an over-capacity
lane receive as their coordinated reward.
"""
import math
import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple
from configuration import ConfigurationError, Configuration


# Abstraction configurations used in the experiments
PARTITION_PRESETS: Dict[str, List[int]] = {
    # 6 lanes - 2 superlanes
    '3+3': [3, 3],
    '4+2': [4, 2],
    '5+1': [5, 1],
    # 6 lanes - 3 superlanes
    '2+2+2': [2, 2, 2],
    '3+2+1': [3, 2, 1],
    '1+3+2': [1, 3, 2],
    '2+1+3': [2, 1, 3],
    # 20 lanes - 3 superlanes
    '8+1+11': [8, 1, 11],
}


def group_reward(attendance: float, capacity: float) -> float:
    """Penalty -a * exp(-a / capacity) of a superlane with attendance a."""
    return -attendance * math.exp(-attendance / capacity)


def partition_from_sizes(sizes: Sequence[int]) -> List[List[int]]:
    """
    Builds contiguous groups from their sizes.

    Example:
        partition_from_sizes([2, 1, 3]) -> [[0, 1], [2], [3, 4, 5]]
    """
    groups = []
    start = 0
    for size in sizes:
        if size <= 0:
            raise ConfigurationError(f"Superlane sizes must be positive, got {list(sizes)}")
        groups.append(list(range(start, start + size)))
        start += size
    return groups


def parse_partition(text: str) -> List[List[int]]:
    """
    Parses a preset name or a size expression such as '2+1+3'.
    """
    text = text.strip()
    if text in PARTITION_PRESETS:
        return partition_from_sizes(PARTITION_PRESETS[text])
    try:
        sizes = [int(part) for part in text.split('+')]
    except ValueError:
        raise ConfigurationError(
            f"Invalid partition '{text}'. Use sizes like 2+1+3 or one of: {', '.join(PARTITION_PRESETS)}"
        ) from None
    return partition_from_sizes(sizes)


@dataclass
class Superlane:
    """A fixed group of lanes with its per-step attendance and reward."""
    id: int
    members: Tuple[int, ...]
    capacity: float
    attendance: int = 0
    reward: float = 0.0

    def reset(self) -> None:
        self.attendance = 0
        self.reward = 0.0

    def calc_attendance_reward(self, lane_attendance: np.ndarray) -> None:
        """Sums the member lanes' attendance and computes the group reward."""
        self.reset()
        self.attendance = int(sum(int(lane_attendance[lane]) for lane in self.members))
        self.reward = group_reward(self.attendance, self.capacity)


class SuperlanePartition:
    """Validated partition of the lanes into superlanes."""

    def __init__(self, superlanes: List[Superlane], lane_to_group: np.ndarray, lane_capacity: float):
        self.superlanes = superlanes
        self.lane_to_group = lane_to_group
        self.lane_capacity = lane_capacity

    @classmethod
    def define(cls, groups: Sequence[Sequence[int]], lane_count: int,
               lane_capacity: float) -> 'SuperlanePartition':
        """
        Creates the partition, checking that every lane belongs to exactly one group.

        Args:
            groups: Lane indices of each superlane, in superlane id order
            lane_count: Number of lanes on the highway
            lane_capacity: Capacity of a single lane

        Raises:
            ConfigurationError: if a group is empty, a lane is out of range,
                assigned twice or not assigned at all
        """
        if lane_capacity <= 0:
            raise ConfigurationError(f"Lane capacity must be positive, got {lane_capacity}")
        if not groups:
            raise ConfigurationError("A partition needs at least one superlane")

        lane_to_group = np.full(lane_count, -1, dtype=np.int64)
        superlanes = []
        for group_id, members in enumerate(groups):
            members = tuple(int(lane) for lane in members)
            if not members:
                raise ConfigurationError(f"Superlane {group_id} has no lanes")
            for lane in members:
                if not 0 <= lane < lane_count:
                    raise ConfigurationError(
                        f"Superlane {group_id} contains lane {lane}, outside [0, {lane_count - 1}]"
                    )
                if lane_to_group[lane] != -1:
                    raise ConfigurationError(
                        f"Lane {lane} assigned to superlanes {lane_to_group[lane]} and {group_id}"
                    )
                lane_to_group[lane] = group_id
            superlanes.append(Superlane(id=group_id, members=members,
                                        capacity=lane_capacity * len(members)))

        unassigned = np.flatnonzero(lane_to_group == -1)
        if unassigned.size:
            raise ConfigurationError(f"Lanes without a superlane: {unassigned.tolist()}")

        return cls(superlanes, lane_to_group, lane_capacity)

    @classmethod
    def from_config(cls, config: Configuration) -> 'SuperlanePartition':
        groups = config.PARTITION
        if groups is None:
            groups = parse_partition(config.PARTITION_PRESET)
        return cls.define(groups, config.LANES, config.CAPACITY)

    def __len__(self) -> int:
        return len(self.superlanes)

    def __iter__(self):
        return iter(self.superlanes)

    def __getitem__(self, group_id: int) -> Superlane:
        return self.superlanes[group_id]

    @property
    def total_capacity(self) -> float:
        return sum(superlane.capacity for superlane in self.superlanes)

    def capacity_of(self, group_id: int) -> float:
        return self.superlanes[group_id].capacity

    def resolve_group(self, lane: int) -> int:
        """Returns the id of the superlane that owns a lane."""
        if not 0 <= lane < len(self.lane_to_group):
            raise ConfigurationError(f"Lane {lane} is not covered by the partition")
        return int(self.lane_to_group[lane])

    def compute_group_attendance_and_reward(self, lane_attendance: np.ndarray) -> None:
        for superlane in self.superlanes:
            superlane.calc_attendance_reward(lane_attendance)

    def attendance_list(self) -> List[int]:
        return [superlane.attendance for superlane in self.superlanes]

    def reward_list(self) -> List[float]:
        return [superlane.reward for superlane in self.superlanes]

    def describe(self) -> str:
        return " | ".join(
            f"S{s.id}: lanes {list(s.members)} (capacity {s.capacity:g})" for s in self.superlanes
        )
