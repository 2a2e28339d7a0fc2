"""
Tests for the experiment configuration and the command line interface.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from configuration import CONFIG, Action, Configuration, ConfigurationError, DecayKind, RewardSignal
from main import build_configuration, main, parse_arguments


class TestConfiguration:
    """Tests validation of the run-level parameters."""

    def test_defaults_are_valid(self):
        CONFIG.validate()
        assert CONFIG.REWARD_SIGNAL == RewardSignal.COORDINATED
        assert CONFIG.STARTING_LANE == 3

    @pytest.mark.parametrize("field", ['STAT_RUNS', 'EPISODES', 'STEPS', 'NUM_AGENTS', 'LANES', 'WORKERS'])
    def test_sizes_must_be_positive(self, field):
        with pytest.raises(ConfigurationError):
            Configuration(**{field: 0}).validate()

    def test_capacity_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            Configuration(CAPACITY=0).validate()

    def test_initial_lane_must_be_on_highway(self):
        with pytest.raises(ConfigurationError):
            Configuration(LANES=6, INITIAL_LANE=6).validate()

    def test_rates_must_be_consistent(self):
        with pytest.raises(ConfigurationError):
            Configuration(EPSILON_INITIAL=1.5).validate()
        with pytest.raises(ConfigurationError):
            Configuration(ALPHA_INITIAL=0.1, ALPHA_MINIMUM=0.2).validate()
        with pytest.raises(ConfigurationError):
            Configuration(ALPHA_DECAY=1.01).validate()

    def test_enum_names_are_accepted(self):
        config = Configuration(REWARD_SIGNAL='difference', ALPHA_SCHEDULE='inverse-time')
        assert config.REWARD_SIGNAL == RewardSignal.DIFFERENCE
        assert config.ALPHA_SCHEDULE == DecayKind.INVERSE_TIME

    def test_unknown_reward_signal(self):
        with pytest.raises(ConfigurationError):
            Configuration(REWARD_SIGNAL='local+global')

    @pytest.mark.parametrize("schedules", [
        {'ALPHA_SCHEDULE': None},
        {'EPSILON_SCHEDULE': 3},
        {'ALPHA_SCHEDULE': None, 'EPSILON_SCHEDULE': 3},
    ])
    def test_decay_schedules_must_be_known(self, schedules):
        with pytest.raises(ConfigurationError):
            Configuration(**schedules).validate()

    def test_unknown_schedule_name(self):
        with pytest.raises(ConfigurationError):
            Configuration(EPSILON_SCHEDULE='linear')

    def test_report_interval(self):
        assert Configuration(EPISODES=10000, PRETTY_PRINT=True).REPORT_INTERVAL == 1
        assert Configuration(EPISODES=10000, PRETTY_PRINT=False).REPORT_INTERVAL == 10
        assert Configuration(EPISODES=500, PRETTY_PRINT=False).REPORT_INTERVAL == 1

    def test_action_offsets(self):
        assert [action.offset for action in Action] == [-1, 0, 1]
        assert CONFIG.NUM_ACTIONS == 3


class TestCommandLine:
    """Tests the argument parsing and the entry point."""

    def test_arguments_build_configuration(self):
        args = parse_arguments(['--runs', '3', '--reward', 'local', '--partition', '3+3',
                                '--coarse', '--seed', '9'])
        config = build_configuration(args)
        assert config.STAT_RUNS == 3
        assert config.REWARD_SIGNAL == RewardSignal.LOCAL
        assert config.PARTITION == [[0, 1, 2], [3, 4, 5]]
        assert config.PRETTY_PRINT is False
        assert config.SEED == 9

    def test_rate_decays_set_separately(self):
        config = build_configuration(parse_arguments(['--decay', '0.99', '--alpha-decay', '0.5',
                                                      '--epsilon-schedule', 'constant']))
        assert config.ALPHA_DECAY == 0.5
        assert config.EPSILON_DECAY == 0.99
        assert config.ALPHA_SCHEDULE == DecayKind.EXPONENTIAL
        assert config.EPSILON_SCHEDULE == DecayKind.CONSTANT

    def test_global_configuration_untouched(self):
        build_configuration(parse_arguments(['--runs', '3']))
        assert CONFIG.STAT_RUNS == 30

    def test_invalid_partition_returns_error(self, tmp_path):
        code = main(['--partition', '2+2', '--output', str(tmp_path / 'global.txt'), '--no-report'])
        assert code == 1
        assert not (tmp_path / 'global.txt').exists()

    def test_small_experiment(self, tmp_path):
        output = tmp_path / 'global.txt'
        code = main(['--runs', '1', '--episodes', '5', '--agents', '10', '--seed', '1',
                     '--output', str(output), '--report-dir', str(tmp_path / 'reports'),
                     '--report', 'report.json', '--no-progress'])
        assert code == 0
        assert output.read_text(encoding='utf-8').count("\t") == 5
        assert (tmp_path / 'reports' / 'report.json').exists()


class TestSeed:
    """Tests the seed parameter."""

    def test_negative_seed_rejected(self):
        with pytest.raises(ConfigurationError):
            Configuration(SEED=-1).validate()

    def test_seed_accepted(self):
        Configuration(SEED=0).validate()
