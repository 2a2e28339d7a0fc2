"""
Main entry point for the Beach Problem Domain experiments.
Runs independent Q-learning agents on the congestion game, optionally with
resource abstraction (superlanes), and writes the global reward series.
"""
import argparse
import time
from dataclasses import replace
from datetime import datetime
from configuration import CONFIG, Configuration, ConfigurationError, RewardSignal
from superlanes import PARTITION_PRESETS, parse_partition
from simulation import run_experiment


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Beach Problem Domain - Resource Abstraction for multiagent congestion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  python main.py                                # 30 runs, coordinated reward, 2+1+3 superlanes
  python main.py --reward difference            # Learn from the difference reward
  python main.py --partition 3+3 --runs 10      # Two superlanes of three lanes
  python main.py --lanes 20 --partition 8+1+11  # 20 lanes, three superlanes
  python main.py --episodes 1000 --seed 7 -o results/global.txt
  python main.py --workers 4 --coarse           # Parallel runs, sparse output

Partition presets: {', '.join(PARTITION_PRESETS)}
        """
    )

    # Experiment size
    parser.add_argument('--runs', type=int, default=CONFIG.STAT_RUNS, metavar='N',
                        help=f'Number of independent runs (default: {CONFIG.STAT_RUNS})')
    parser.add_argument('--episodes', type=int, default=CONFIG.EPISODES, metavar='N',
                        help=f'Episodes per run (default: {CONFIG.EPISODES})')
    parser.add_argument('--steps', type=int, default=CONFIG.STEPS, metavar='N',
                        help=f'Steps per episode (default: {CONFIG.STEPS})')
    parser.add_argument('--agents', type=int, default=CONFIG.NUM_AGENTS, metavar='N',
                        help=f'Number of agents (default: {CONFIG.NUM_AGENTS})')

    # Highway and resource abstraction
    parser.add_argument('--lanes', type=int, default=CONFIG.LANES, metavar='N',
                        help=f'Number of lanes (default: {CONFIG.LANES})')
    parser.add_argument('--capacity', type=int, default=CONFIG.CAPACITY, metavar='N',
                        help=f'Capacity of a single lane (default: {CONFIG.CAPACITY})')
    parser.add_argument('--initial-lane', type=int, default=CONFIG.INITIAL_LANE, metavar='LANE',
                        help='Lane every agent starts an episode in (default: middle lane)')
    parser.add_argument('--partition', type=str, default=CONFIG.PARTITION_PRESET, metavar='SIZES',
                        help=f'Superlane sizes such as 2+1+3, or a preset (default: {CONFIG.PARTITION_PRESET})')
    parser.add_argument('--reward', type=str, default=CONFIG.REWARD_SIGNAL.name.lower(),
                        choices=[signal.name.lower() for signal in RewardSignal],
                        help=f'Reward signal to learn from (default: {CONFIG.REWARD_SIGNAL.name.lower()})')

    # Learning
    parser.add_argument('--gamma', type=float, default=CONFIG.GAMMA,
                        help=f'Discount factor (default: {CONFIG.GAMMA})')
    parser.add_argument('--alpha', type=float, default=CONFIG.ALPHA_INITIAL,
                        help=f'Initial learning rate (default: {CONFIG.ALPHA_INITIAL})')
    parser.add_argument('--epsilon', type=float, default=CONFIG.EPSILON_INITIAL,
                        help=f'Initial exploration rate (default: {CONFIG.EPSILON_INITIAL})')
    parser.add_argument('--decay', type=float, default=CONFIG.EPSILON_DECAY,
                        help=f'Per-step decay of both rates (default: {CONFIG.EPSILON_DECAY})')
    parser.add_argument('--schedule', type=str, default=CONFIG.EPSILON_SCHEDULE.name.lower(),
                        choices=['exponential', 'inverse_time', 'constant'],
                        help='Decay schedule of both rates (default: exponential)')
    parser.add_argument('--alpha-decay', type=float,
                        help='Per-step decay of the learning rate only (overrides --decay)')
    parser.add_argument('--epsilon-decay', type=float,
                        help='Per-step decay of the exploration rate only (overrides --decay)')
    parser.add_argument('--alpha-schedule', type=str, choices=['exponential', 'inverse_time', 'constant'],
                        help='Decay schedule of the learning rate only (overrides --schedule)')
    parser.add_argument('--epsilon-schedule', type=str, choices=['exponential', 'inverse_time', 'constant'],
                        help='Decay schedule of the exploration rate only (overrides --schedule)')
    parser.add_argument('--seed', type=int, default=CONFIG.SEED,
                        help='Base seed; run i uses seed + i (default: random)')

    # Output
    parser.add_argument('--output', '-o', type=str, default=CONFIG.OUTPUT_FILE, metavar='FILE',
                        help=f'Global reward series file (default: {CONFIG.OUTPUT_FILE})')
    parser.add_argument('--report', type=str, metavar='FILE',
                        help='Name of the JSON report (default: auto-generated)')
    parser.add_argument('--report-dir', type=str, default=CONFIG.REPORT_DIR, metavar='DIR',
                        help=f'Directory of the JSON report (default: {CONFIG.REPORT_DIR})')
    parser.add_argument('--no-report', action='store_true',
                        help='Do not write the JSON report')
    parser.add_argument('--coarse', action='store_true',
                        help='Record only every EPISODES/1000 episodes instead of every episode')
    parser.add_argument('--workers', type=int, default=CONFIG.WORKERS, metavar='N',
                        help='Worker processes for independent runs (default: 1)')
    parser.add_argument('--no-progress', action='store_true',
                        help='Hide the progress bars')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Show detailed information while running')

    return parser.parse_args(argv)


def _first_set(value, fallback):
    return fallback if value is None else value


def build_configuration(args) -> Configuration:
    """Creates the experiment configuration from the parsed arguments."""
    return replace(
        CONFIG,
        STAT_RUNS=args.runs,
        EPISODES=args.episodes,
        STEPS=args.steps,
        NUM_AGENTS=args.agents,
        LANES=args.lanes,
        CAPACITY=args.capacity,
        INITIAL_LANE=args.initial_lane,
        PARTITION_PRESET=args.partition,
        PARTITION=parse_partition(args.partition),
        REWARD_SIGNAL=args.reward,
        GAMMA=args.gamma,
        ALPHA_INITIAL=args.alpha,
        ALPHA_DECAY=_first_set(args.alpha_decay, args.decay),
        ALPHA_SCHEDULE=_first_set(args.alpha_schedule, args.schedule),
        EPSILON_INITIAL=args.epsilon,
        EPSILON_DECAY=_first_set(args.epsilon_decay, args.decay),
        EPSILON_SCHEDULE=_first_set(args.epsilon_schedule, args.schedule),
        SEED=args.seed,
        PRETTY_PRINT=not args.coarse,
        OUTPUT_FILE=args.output,
        REPORT_DIR=args.report_dir,
        REPORT_FILE=args.report,
        WORKERS=args.workers,
        PROGRESS_BAR=not args.no_progress,
        VERBOSE=args.verbose
    )


def print_duration(start_time: float, start_str: str) -> None:
    end_time = time.time()
    end_str = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    duration = end_time - start_time
    hours = int(duration // 3600)
    minutes = int((duration % 3600) // 60)
    seconds = int(duration % 60)
    milliseconds = int((duration % 1) * 1000)
    print(f"\n{'='*60}")
    print(f"PROGRAM START TIME: {start_str}")
    print(f"PROGRAM END TIME: {end_str}")
    print(f"TOTAL DURATION: {hours:02d}h {minutes:02d}m {seconds:02d}s {milliseconds:03d}ms")
    print(f"TOTAL DURATION (seconds): {duration:.6f}")
    print(f"{'='*60}\n")


def main(argv=None) -> int:
    """Main function with command line interface."""
    start_time = time.time()
    start_str = datetime.now().strftime("%H:%M:%S.%f")[:-3]  # Hours:Minutes:Seconds.Milliseconds

    print(f"\n{'='*60}")
    print(f"PROGRAM START TIME: {start_str}")
    print(f"{'='*60}\n")

    args = parse_arguments(argv)

    try:
        config = build_configuration(args)
        config.validate()
        run_experiment(config, save_report=not args.no_report)
        return 0
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nExperiment interrupted by user")
        return 1
    finally:
        print_duration(start_time, start_str)


if __name__ == "__main__":
    exit(main())
