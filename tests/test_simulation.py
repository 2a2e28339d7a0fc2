"""
Tests for the episode driver and the multi-run experiment.
"""
import json
import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from configuration import Configuration, ConfigurationError, RewardSignal
from simulation import Experiment, Simulation


def small_config(**overrides) -> Configuration:
    settings = dict(
        STAT_RUNS=2,
        EPISODES=30,
        STEPS=5,
        NUM_AGENTS=20,
        LANES=6,
        CAPACITY=6,
        PARTITION=[[0, 1], [2], [3, 4, 5]],
        EPSILON_INITIAL=0.5,
        PROGRESS_BAR=False,
    )
    settings.update(overrides)
    return Configuration(**settings)


class TestStep:
    """Tests one step of the interaction cycle."""

    def setup_method(self):
        self.config = small_config(NUM_AGENTS=100)
        self.simulation = Simulation(self.config, seed=5)

    def _place_agents(self, attendance):
        lanes = [lane for lane, count in enumerate(attendance) for _ in range(count)]
        for agent, lane in zip(self.simulation.agents, lanes):
            agent.state = lane

    def test_beach_scenario(self):
        """Attendance [10, 20, 30, 15, 15, 10] with superlanes {0,1}, {2}, {3,4,5}."""
        self._place_agents([10, 20, 30, 15, 15, 10])
        self.simulation.sense()
        for agent in self.simulation.agents:
            agent.action = 1  # stay
        self.simulation.act()
        self.simulation.react()

        partition = self.simulation.partition
        assert self.simulation.highway.attendance_list() == [10, 20, 30, 15, 15, 10]
        assert partition.attendance_list() == [30, 30, 40]
        rewards = partition.reward_list()
        assert all(r < 0 for r in rewards)
        assert min(rewards) == rewards[2]

        # Every lane is over capacity, so every agent gets its superlane's reward
        for agent in self.simulation.agents:
            group = partition.resolve_group(agent.state)
            assert agent.reward_for(RewardSignal.COORDINATED) == pytest.approx(rewards[group])

    def test_coordinated_reward_falls_back_to_local(self):
        self._place_agents([3, 3, 40, 30, 20, 4])
        self.simulation.sense()
        for agent in self.simulation.agents:
            agent.action = 1
        self.simulation.act()
        self.simulation.react()

        highway = self.simulation.highway
        assert self.simulation.coordinated_reward(0) == pytest.approx(highway.local(0))
        assert self.simulation.coordinated_reward(5) == pytest.approx(highway.local(5))
        assert self.simulation.coordinated_reward(2) == pytest.approx(self.simulation.partition[1].reward)

    def test_step_preserves_population(self):
        for _ in range(10):
            self.simulation.step()
            highway = self.simulation.highway
            assert highway.attendance.sum() == self.config.NUM_AGENTS
            assert highway.global_reward == pytest.approx(highway.lane_local.sum())

    def test_rewards_reflect_post_transition_population(self):
        self.simulation.step()
        states = [agent.state for agent in self.simulation.agents]
        expected = np.bincount(states, minlength=self.config.LANES)
        assert self.simulation.highway.attendance.tolist() == expected.tolist()


class TestEpisode:
    """Tests the episode boundary."""

    def test_episode_ends_with_restart(self):
        config = small_config()
        simulation = Simulation(config, seed=3)
        simulation.run_episode()
        for agent in simulation.agents:
            assert agent.state == config.STARTING_LANE
            assert agent.previous_state is None
            assert not agent.absorbing
        assert simulation.episode == 1

    def test_learning_survives_episode_boundary(self):
        simulation = Simulation(small_config(), seed=3)
        simulation.run_episode()
        assert any(agent.q_table.any() for agent in simulation.agents)

    def test_rates_decay_once_per_decision(self):
        config = small_config(STEPS=4)
        simulation = Simulation(config, seed=3)
        simulation.run_episode()
        # STEPS decisions plus the one leading to the absorbing state
        assert all(agent.t == config.STEPS + 1 for agent in simulation.agents)

    def test_invalid_configuration_detected_before_running(self):
        with pytest.raises(ConfigurationError):
            Simulation(small_config(PARTITION=[[0, 1], [2]]), seed=1)
        with pytest.raises(ConfigurationError):
            Simulation(small_config(NUM_AGENTS=0), seed=1)


class TestReproducibility:
    """Tests that runs are isolated by their seed."""

    def test_same_seed_same_series(self):
        config = small_config()
        first = Simulation(config, seed=11).run()
        second = Simulation(config, seed=11).run()
        assert first.global_rewards == second.global_rewards
        assert first.lane_attendance == second.lane_attendance

    def test_different_seed_different_series(self):
        config = small_config()
        first = Simulation(config, seed=11).run()
        second = Simulation(config, seed=12).run()
        assert first.global_rewards != second.global_rewards

    def test_series_records_every_episode(self):
        config = small_config(EPISODES=12)
        summary = Simulation(config, seed=2).run()
        assert len(summary.global_rewards) == 12
        assert summary.final_global_reward == pytest.approx(summary.global_rewards[-1])


class TestExperiment:
    """Tests the multi-run experiment and its outputs."""

    def _config(self, tmp_path, **overrides):
        settings = dict(
            EPISODES=10,
            SEED=100,
            OUTPUT_FILE=str(tmp_path / "global.txt"),
            REPORT_DIR=str(tmp_path / "reports"),
        )
        settings.update(overrides)
        return small_config(**settings)

    def test_series_file_has_one_line_per_run(self, tmp_path):
        config = self._config(tmp_path)
        experiment = Experiment(config)
        runs = experiment.run()

        with open(config.OUTPUT_FILE, encoding='utf-8') as f:
            lines = f.read().split("\n")
        assert lines[-1] == ""
        assert len(lines) == config.STAT_RUNS + 1
        for line, summary in zip(lines, runs):
            values = line.split("\t")
            assert values[-1] == ""
            assert len(values) == config.EPISODES + 1
            assert [float(v) for v in values[:-1]] == pytest.approx(summary.global_rewards, abs=1e-5)

    def test_runs_use_consecutive_seeds(self, tmp_path):
        experiment = Experiment(self._config(tmp_path))
        runs = experiment.run()
        assert [run.seed for run in runs] == [100, 101]
        assert [run.run for run in runs] == [0, 1]

    def test_experiment_is_reproducible(self, tmp_path):
        first = Experiment(self._config(tmp_path)).run()
        second = Experiment(self._config(tmp_path)).run()
        assert [r.global_rewards for r in first] == [r.global_rewards for r in second]

    def test_parallel_runs_match_sequential(self, tmp_path):
        sequential = Experiment(self._config(tmp_path)).run()
        parallel = Experiment(self._config(tmp_path, WORKERS=2)).run()
        assert [r.global_rewards for r in parallel] == [r.global_rewards for r in sequential]

    def test_report_is_written(self, tmp_path):
        config = self._config(tmp_path, REPORT_FILE="report.json")
        experiment = Experiment(config)
        experiment.run()
        path = experiment.save_report()

        assert path == os.path.join(config.REPORT_DIR, "report.json")
        with open(path, encoding='utf-8') as f:
            report = json.load(f)
        assert len(report['runs']) == config.STAT_RUNS
        assert report['settings']['partition'] == [[0, 1], [2], [3, 4, 5]]
        assert report['settings']['reward_signal'] == 'coordinated'

    def test_invalid_partition_stops_before_output(self, tmp_path):
        config = self._config(tmp_path, PARTITION=[[0, 1, 2], [2, 3, 4, 5]])
        with pytest.raises(ConfigurationError):
            Experiment(config).run()
        assert not os.path.exists(config.OUTPUT_FILE)

    def test_drawn_seed_is_reported(self, tmp_path):
        experiment = Experiment(self._config(tmp_path, SEED=None, STAT_RUNS=1))
        runs = experiment.run()
        report = experiment.metrics.build_report()
        assert report.settings.seed is not None
        assert report.settings.seed == experiment.base_seed == runs[0].seed

    def test_run_prints_lane_attendance(self, tmp_path, capsys):
        runs = Experiment(self._config(tmp_path, STAT_RUNS=1)).run()
        out = capsys.readouterr().out
        assert "\t".join(str(a) for a in runs[0].lane_attendance) in out.splitlines()
        assert f"Final performance = {runs[0].final_global_reward:.5f}" in out
