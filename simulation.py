"""
Episode driver for the Beach Problem Domain experiments.

A Simulation is one isolated run: a highway, its superlane partition and a
population of Q-learners sharing one seeded random generator. An Experiment
repeats the run STAT_RUNS times and persists the results.
"""
import time
from concurrent.futures import ProcessPoolExecutor
from datetime import datetime
from typing import List, Optional

from gymnasium.utils import seeding
from tqdm import tqdm

from configuration import CONFIG, Configuration
from highway import Highway, format_attendance
from metrics import MetricsManager
from models import RunSummary
from qlearning import QLearner
from superlanes import SuperlanePartition


MAX_SEED = 2 ** 31 - 1


def draw_seed() -> int:
    """Draws a fresh base seed from OS entropy."""
    rng, _ = seeding.np_random(None)
    return int(rng.integers(MAX_SEED))


class Simulation:
    """One independent run of the experiment."""

    def __init__(self, config: Configuration = CONFIG, run: int = 0, seed: Optional[int] = None):
        config.validate()
        self.config = config
        self.run_index = run
        self.rng, self.seed = seeding.np_random(draw_seed() if seed is None else seed)

        self.highway = Highway(config.LANES, config.NUM_AGENTS, config.CAPACITY)
        self.partition = SuperlanePartition.from_config(config)

        self.agents: List[QLearner] = []
        for i in range(config.NUM_AGENTS):
            agent = QLearner.from_config(i, config, self.rng)
            agent.start()
            self.agents.append(agent)

        self.episode = 0
        self.global_rewards: List[float] = []

    # ------------------------------------------------------------------
    # Interaction with the environment
    # ------------------------------------------------------------------

    def sense(self) -> None:
        for agent in self.agents:
            agent.sense()

    def decide(self) -> None:
        for agent in self.agents:
            agent.decay_rates()
            agent.choose_action()

    def act(self) -> None:
        """Moves every agent, then lets the highway observe the new population."""
        # Transition phase: the attendance must never see a partial population
        for agent in self.agents:
            agent.apply_transition()

        # Observation phase
        self.highway.reset_step()
        self.highway.compute_attendance(agent.state for agent in self.agents)

    def coordinated_reward(self, lane: int) -> float:
        """Superlane reward for an over-capacity lane, local reward otherwise."""
        if self.highway.attendance[lane] > self.config.CAPACITY:
            return self.partition[self.partition.resolve_group(lane)].reward
        return self.highway.local(lane)

    def react(self) -> None:
        """Computes every reward signal and updates the Q-values."""
        self.highway.evaluate()
        self.partition.compute_group_attendance_and_reward(self.highway.attendance)

        global_reward = self.highway.global_reward
        for agent in self.agents:
            lane = agent.state
            agent.receive_rewards(
                local=self.highway.local(lane),
                global_=global_reward,
                difference=self.highway.difference(lane),
                coordinated=self.coordinated_reward(lane)
            )
            agent.q_update()

    def step(self) -> None:
        self.sense()
        self.decide()
        self.act()
        self.react()

    def run_episode(self) -> float:
        """
        Runs STEPS steps followed by the transition to the absorbing state.

        Returns:
            Global reward of the episode's last step
        """
        for _ in range(self.config.STEPS):
            self.step()
        global_reward = self.highway.global_reward

        # The action picked in the final state leads to the absorbing state
        self.sense()
        self.decide()
        for agent in self.agents:
            agent.final_q_update()
            agent.restart()

        self.episode += 1
        return global_reward

    def run(self, progress: bool = False) -> RunSummary:
        """Runs every episode and returns the run summary."""
        interval = self.config.REPORT_INTERVAL
        episodes = range(self.config.EPISODES)
        if progress:
            episodes = tqdm(episodes, desc=f"Run {self.run_index}", unit="ep", leave=False)

        for episode in episodes:
            global_reward = self.run_episode()
            if episode % interval == 0:
                self.global_rewards.append(global_reward)

        return self.summary()

    def summary(self) -> RunSummary:
        sample = self.agents[0]
        return RunSummary(
            run=self.run_index,
            seed=self.seed,
            final_global_reward=self.highway.global_reward,
            lane_attendance=self.highway.attendance_list(),
            superlane_attendance=self.partition.attendance_list(),
            superlane_rewards=self.partition.reward_list(),
            final_epsilon=sample.epsilon,
            final_alpha=sample.alpha,
            global_rewards=list(self.global_rewards)
        )


def execute_run(config: Configuration, run: int, seed: int, progress: bool = False) -> RunSummary:
    """Builds and runs one Simulation. Module level so worker processes can pickle it."""
    return Simulation(config, run=run, seed=seed).run(progress=progress)


class Experiment:
    """Repeats the simulation STAT_RUNS times and persists the global reward series."""

    def __init__(self, config: Configuration = CONFIG):
        self.config = config
        self.metrics = MetricsManager(config)
        self.base_seed: Optional[int] = None

    def _prepare(self) -> None:
        # Configuration errors must surface before any step runs
        self.config.validate()
        SuperlanePartition.from_config(self.config)

        if self.config.SEED is None:
            self.base_seed = draw_seed()
        else:
            self.base_seed = self.config.SEED
        self.metrics.base_seed = self.base_seed

    def run_seeds(self) -> List[int]:
        return [self.base_seed + run for run in range(self.config.STAT_RUNS)]

    def run(self) -> List[RunSummary]:
        self._prepare()
        self.metrics.start_output()

        if self.config.VERBOSE:
            partition = SuperlanePartition.from_config(self.config)
            print(f"Reward signal: {self.config.REWARD_SIGNAL.name}")
            print(f"Superlanes: {partition.describe()}")
            print(f"Base seed: {self.base_seed}")

        seeds = self.run_seeds()
        if self.config.WORKERS > 1:
            self._run_parallel(seeds)
        else:
            self._run_sequential(seeds)

        self.metrics.finish()
        return self.metrics.runs

    def _run_sequential(self, seeds: List[int]) -> None:
        for run, seed in enumerate(seeds):
            summary = execute_run(self.config, run, seed, progress=self.config.PROGRESS_BAR)
            self._record(summary)

    def _run_parallel(self, seeds: List[int]) -> None:
        runs = range(len(seeds))
        with ProcessPoolExecutor(max_workers=self.config.WORKERS) as executor:
            results = executor.map(execute_run, [self.config] * len(seeds), runs, seeds)
            if self.config.PROGRESS_BAR:
                results = tqdm(results, total=len(seeds), desc="Runs", unit="run")
            # map() yields in submission order, so the series stay in run order
            for summary in results:
                self._record(summary)

    def _record(self, summary: RunSummary) -> None:
        self.metrics.record_run(summary)
        print(f"\nRun No.{summary.run} complete (seed {summary.seed})")
        print("Lane attendance:")
        print(format_attendance(summary.lane_attendance))
        if self.config.VERBOSE:
            print(f"Superlane attendance: {summary.superlane_attendance}")
            print(f"Final epsilon: {summary.final_epsilon:.5f} | final alpha: {summary.final_alpha:.5f}")
        print(f"Final performance = {summary.final_global_reward:.5f}")

    def save_report(self, filename: Optional[str] = None) -> str:
        return self.metrics.save_report(filename)


def run_experiment(config: Configuration = CONFIG, save_report: bool = True) -> Experiment:
    """Runs a whole experiment and prints a closing summary."""
    print("=" * 60)
    print("BEACH PROBLEM DOMAIN - RESOURCE ABSTRACTION")
    print("=" * 60)
    print(f"Runs: {config.STAT_RUNS} | Episodes: {config.EPISODES} | Steps: {config.STEPS}")
    print(f"Agents: {config.NUM_AGENTS} | Lanes: {config.LANES} | Capacity: {config.CAPACITY}")
    print(f"Learning from: {config.REWARD_SIGNAL.name.lower()} reward")
    print("-" * 60)

    start = time.time()
    experiment = Experiment(config)
    runs = experiment.run()
    duration = time.time() - start

    finals = experiment.metrics.final_rewards()
    print("=" * 60)
    print("EXPERIMENT COMPLETED!")
    print("=" * 60)
    print(f"Finished at: {datetime.now().strftime('%H:%M:%S')} ({duration:.2f}s)")
    print(f"Mean final performance: {finals.mean():.5f} ± {finals.std():.5f} over {len(runs)} runs")
    print(f"Global reward series saved to: {config.OUTPUT_FILE}")
    if save_report:
        print(f"Report saved to: {experiment.save_report()}")
    print("=" * 60)
    return experiment


