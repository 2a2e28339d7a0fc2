"""
Tabular Q-learning agents for the Beach Problem Domain.
Simple and focused implementation.
"""

from .schedules import RateSchedule
from .q_learner import QLearner

__all__ = ["RateSchedule", "QLearner"]
