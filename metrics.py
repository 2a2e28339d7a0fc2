"""
Collection and persistence of experiment results.
"""
import os
import numpy as np
from datetime import datetime
from typing import List, Optional
from configuration import Configuration
from models import ExperimentReport, ExperimentSettings, RunSummary
from superlanes import SuperlanePartition


def format_series(values: List[float]) -> str:
    """One run of the global reward series: '%.5f\\t' per value and a newline."""
    return "".join(f"{value:.5f}\t" for value in values) + "\n"


class MetricsManager:
    """Gathers the run summaries and writes the series file and the JSON report."""

    def __init__(self, config: Configuration):
        self.config = config
        self.runs: List[RunSummary] = []
        self.started = datetime.now()
        self.finished: Optional[datetime] = None
        self.base_seed: Optional[int] = config.SEED

    def start_output(self) -> str:
        """Creates (or truncates) the global reward series file."""
        directory = os.path.dirname(self.config.OUTPUT_FILE)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.config.OUTPUT_FILE, 'w', encoding='utf-8'):
            pass
        return self.config.OUTPUT_FILE

    def record_run(self, summary: RunSummary) -> None:
        """Stores a run and appends its series to the output file, in run order."""
        self.runs.append(summary)
        with open(self.config.OUTPUT_FILE, 'a', encoding='utf-8') as f:
            f.write(format_series(summary.global_rewards))

    def finish(self) -> None:
        self.finished = datetime.now()

    def final_rewards(self) -> np.ndarray:
        return np.array([run.final_global_reward for run in self.runs], dtype=np.float64)

    def build_report(self) -> ExperimentReport:
        finished = self.finished or datetime.now()
        finals = self.final_rewards()
        config = self.config
        partition = SuperlanePartition.from_config(config)

        settings = ExperimentSettings(
            stat_runs=config.STAT_RUNS,
            episodes=config.EPISODES,
            steps=config.STEPS,
            num_agents=config.NUM_AGENTS,
            lanes=config.LANES,
            capacity=config.CAPACITY,
            partition=[list(superlane.members) for superlane in partition],
            reward_signal=config.REWARD_SIGNAL.name.lower(),
            gamma=config.GAMMA,
            alpha={
                'initial': config.ALPHA_INITIAL,
                'decay': config.ALPHA_DECAY,
                'minimum': config.ALPHA_MINIMUM,
                'schedule': config.ALPHA_SCHEDULE.name.lower()
            },
            epsilon={
                'initial': config.EPSILON_INITIAL,
                'decay': config.EPSILON_DECAY,
                'minimum': config.EPSILON_MINIMUM,
                'schedule': config.EPSILON_SCHEDULE.name.lower()
            },
            report_interval=config.REPORT_INTERVAL,
            seed=self.base_seed
        )

        return ExperimentReport(
            started=self.started.isoformat(),
            finished=finished.isoformat(),
            duration_seconds=(finished - self.started).total_seconds(),
            settings=settings,
            runs=self.runs,
            mean_final_global_reward=float(finals.mean()) if finals.size else 0.0,
            std_final_global_reward=float(finals.std()) if finals.size else 0.0
        )

    def save_report(self, filename: Optional[str] = None) -> str:
        """Writes the JSON report into REPORT_DIR and returns its path."""
        filename = filename or self.config.REPORT_FILE
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"report_{self.config.REWARD_SIGNAL.name.lower()}_{timestamp}.json"

        os.makedirs(self.config.REPORT_DIR, exist_ok=True)
        full_path = os.path.join(self.config.REPORT_DIR, filename)
        with open(full_path, 'w', encoding='utf-8') as f:
            f.write(self.build_report().model_dump_json(indent=2))
        return full_path
