"""
Tabular Q-learning agent for the Beach Problem Domain.

Each agent picks one of three lane changes (decrease, stay, increase) every
step and learns from the reward signal configured for the run. The agent's
state is the lane it occupies.
"""

import numpy as np
from typing import Dict, Optional

from configuration import Action, Configuration, InvariantError, RewardSignal
from .schedules import RateSchedule


class QLearner:
    """Epsilon-greedy tabular Q-learner that moves between adjacent lanes."""

    NUM_ACTIONS = len(Action)

    def __init__(self,
                 agent_id: int,
                 lanes: int,
                 rng: np.random.Generator,
                 reward_signal: RewardSignal = RewardSignal.COORDINATED,
                 initial_lane: Optional[int] = None,
                 gamma: float = 0.9,
                 alpha_schedule: Optional[RateSchedule] = None,
                 epsilon_schedule: Optional[RateSchedule] = None):
        self.agent_id = agent_id
        self.lanes = lanes
        self.rng = rng
        self.reward_signal = reward_signal
        self.initial_lane = lanes // 2 if initial_lane is None else initial_lane
        self.gamma = gamma
        self.alpha_schedule = alpha_schedule or RateSchedule(initial=0.1)
        self.epsilon_schedule = epsilon_schedule or RateSchedule(initial=0.05)

        self.q_table: Optional[np.ndarray] = None
        self.state = self.initial_lane
        self.previous_state: Optional[int] = None
        self.action: Optional[int] = None
        self.absorbing = False
        self.t = 0
        self.alpha = self.alpha_schedule.value(0)
        self.epsilon = self.epsilon_schedule.value(0)
        self.rewards: Dict[RewardSignal, float] = {signal: 0.0 for signal in RewardSignal}

    @classmethod
    def from_config(cls, agent_id: int, config: Configuration, rng: np.random.Generator) -> 'QLearner':
        return cls(
            agent_id=agent_id,
            lanes=config.LANES,
            rng=rng,
            reward_signal=config.REWARD_SIGNAL,
            initial_lane=config.STARTING_LANE,
            gamma=config.GAMMA,
            alpha_schedule=RateSchedule(config.ALPHA_INITIAL, config.ALPHA_DECAY,
                                        config.ALPHA_MINIMUM, config.ALPHA_SCHEDULE),
            epsilon_schedule=RateSchedule(config.EPSILON_INITIAL, config.EPSILON_DECAY,
                                          config.EPSILON_MINIMUM, config.EPSILON_SCHEDULE),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Prepares the agent for a new run: empty Q-table and fresh rates."""
        self.q_table = np.zeros((self.lanes, self.NUM_ACTIONS), dtype=np.float64)
        self.t = 0
        self.alpha = self.alpha_schedule.value(0)
        self.epsilon = self.epsilon_schedule.value(0)
        self.restart()

    def restart(self) -> None:
        """Starts a new episode. The Q-table and the decayed rates are kept."""
        self.state = self.initial_lane
        self.previous_state = None
        self.action = None
        self.absorbing = False

    def sense(self) -> None:
        """Records the state the next update will be keyed on."""
        self.previous_state = self.state

    # ------------------------------------------------------------------
    # Acting
    # ------------------------------------------------------------------

    def decay_rates(self) -> None:
        self.t += 1
        self.alpha = min(self.alpha, self.alpha_schedule.value(self.t))
        self.epsilon = min(self.epsilon, self.epsilon_schedule.value(self.t))

    def choose_action(self, state: Optional[int] = None) -> int:
        """
        Epsilon-greedy action selection.

        Args:
            state: Lane to choose from (defaults to the current lane)

        Returns:
            0 (decrease lane), 1 (stay) or 2 (increase lane)
        """
        table = self._table()
        state = self.state if state is None else state
        if self.rng.random() < self.epsilon:
            action = int(self.rng.integers(self.NUM_ACTIONS))
        else:
            # np.argmax returns the first maximum, so ties go to the lowest action index
            action = int(np.argmax(table[state]))
        self.action = action
        return action

    def apply_transition(self, action: Optional[int] = None) -> int:
        """Moves one lane down, stays or moves one lane up, clamped to the highway."""
        action = self.action if action is None else action
        if action is None:
            raise InvariantError(f"Agent {self.agent_id} has no action to apply")
        self.state = min(max(self.state + action - 1, 0), self.lanes - 1)
        return self.state

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def receive_rewards(self, local: float, global_: float, difference: float, coordinated: float) -> None:
        self.rewards[RewardSignal.LOCAL] = local
        self.rewards[RewardSignal.GLOBAL] = global_
        self.rewards[RewardSignal.DIFFERENCE] = difference
        self.rewards[RewardSignal.COORDINATED] = coordinated

    def reward_for(self, signal: Optional[RewardSignal] = None) -> float:
        return self.rewards[signal or self.reward_signal]

    def update(self, previous_state: int, action: int, reward: float, new_state: int) -> float:
        """
        Q(s, a) += alpha * (r + gamma * max_a' Q(s', a') - Q(s, a))

        Returns:
            The temporal-difference error before the update
        """
        table = self._table()
        target = reward + self.gamma * float(np.max(table[new_state]))
        td_error = target - table[previous_state, action]
        table[previous_state, action] += self.alpha * td_error
        return float(td_error)

    def terminal_update(self, previous_state: int, action: int, reward: float) -> float:
        """Update toward the absorbing state, which has no future value."""
        table = self._table()
        td_error = reward - table[previous_state, action]
        table[previous_state, action] += self.alpha * td_error
        return float(td_error)

    def q_update(self) -> float:
        """Applies the step's update using the recorded previous state and action."""
        self._check_bookkeeping()
        return self.update(self.previous_state, self.action, self.reward_for(), self.state)

    def final_q_update(self) -> float:
        """Applies the final state -> absorbing state update of the episode."""
        self._check_bookkeeping()
        td_error = self.terminal_update(self.previous_state, self.action, self.reward_for())
        self.absorbing = True
        return td_error

    def _table(self) -> np.ndarray:
        if self.q_table is None:
            raise InvariantError(f"Agent {self.agent_id} has no Q-table; call start() first")
        return self.q_table

    def _check_bookkeeping(self) -> None:
        if self.previous_state is None or self.action is None:
            raise InvariantError(f"Agent {self.agent_id} updated before sensing and deciding")
