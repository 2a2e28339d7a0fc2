"""
Pydantic models for the experiment results written to the JSON report.
"""
from pydantic import BaseModel, Field
from typing import List, Optional


class RunSummary(BaseModel):
    """Outcome of one independent run."""
    run: int = Field(..., ge=0, description="Index of the run within the experiment")
    seed: int = Field(..., description="Seed of the run's random generator")
    final_global_reward: float = Field(..., description="Global reward of the last step of the last episode")
    lane_attendance: List[int] = Field(..., description="Final attendance of every lane")
    superlane_attendance: List[int] = Field(..., description="Final attendance of every superlane")
    superlane_rewards: List[float] = Field(..., description="Final reward of every superlane")
    final_epsilon: float = Field(..., ge=0.0, le=1.0, description="Exploration rate at the end of the run")
    final_alpha: float = Field(..., ge=0.0, le=1.0, description="Learning rate at the end of the run")
    global_rewards: List[float] = Field(default_factory=list, description="Recorded global reward per episode")


class ExperimentSettings(BaseModel):
    """Configuration the experiment was run with."""
    stat_runs: int = Field(..., gt=0)
    episodes: int = Field(..., gt=0)
    steps: int = Field(..., gt=0)
    num_agents: int = Field(..., gt=0)
    lanes: int = Field(..., gt=0)
    capacity: float = Field(..., gt=0)
    partition: List[List[int]] = Field(..., description="Lane indices of every superlane")
    reward_signal: str = Field(..., description="Reward signal used for learning")
    gamma: float
    alpha: dict
    epsilon: dict
    report_interval: int = Field(..., gt=0, description="Episodes between recorded global rewards")
    seed: Optional[int] = Field(None, description="Base seed; run i uses seed + i")


class ExperimentReport(BaseModel):
    """Complete report of an experiment."""
    started: str
    finished: str
    duration_seconds: float
    settings: ExperimentSettings
    runs: List[RunSummary]
    mean_final_global_reward: float
    std_final_global_reward: float
