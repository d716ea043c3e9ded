import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


MODE_PRACTICE = "practice"
MODE_MAIN = "main"
MODES = (MODE_PRACTICE, MODE_MAIN)

GROUP_NAMES = {
    1: "Control Group",
    2: "Single Audio Group",
    3: "Dual Audio Group",
}


@dataclass(frozen=True)
class WindowConfig:
    width: int = 1280
    height: int = 720
    fps: int = 120
    title: str = "Number & Tone Task"
    fullscreen: bool = True


@dataclass(frozen=True)
class TimingConfig:
    stimulus_min_ms: int = 500
    stimulus_max_ms: int = 1000
    fixation_ms: int = 500
    feedback_ms: int = 1000  # practice only
    countdown_steps: int = 3
    countdown_step_ms: int = 1000


@dataclass(frozen=True)
class TrialCounts:
    visual: int = 0
    audio1: int = 0
    audio2: int = 0

    @property
    def total(self) -> int:
        return self.visual + self.audio1 + self.audio2


# (group, mode) -> counts
TRIAL_COUNTS: Dict[Tuple[int, str], TrialCounts] = {
    (1, MODE_PRACTICE): TrialCounts(visual=50, audio1=0, audio2=0),
    (2, MODE_PRACTICE): TrialCounts(visual=30, audio1=10, audio2=0),
    (3, MODE_PRACTICE): TrialCounts(visual=25, audio1=12, audio2=13),
    (1, MODE_MAIN): TrialCounts(visual=500, audio1=0, audio2=0),
    (2, MODE_MAIN): TrialCounts(visual=375, audio1=125, audio2=0),
    (3, MODE_MAIN): TrialCounts(visual=250, audio1=125, audio2=125),
}


@dataclass(frozen=True)
class RunConfig:
    group: int
    mode: str
    counts: TrialCounts
    timing: TimingConfig = field(default_factory=TimingConfig)

    @property
    def is_practice(self) -> bool:
        return self.mode == MODE_PRACTICE


@dataclass(frozen=True)
class SinkConfig:
    endpoint_url: str = ""
    api_key: str = ""
    table: str = "experiment_results"
    timeout_sec: float = 10.0


def build_run_config(group: int, mode: str, timing: Optional[TimingConfig] = None) -> RunConfig:
    if mode not in MODES:
        raise ValueError(f"Unsupported mode: {mode}")
    counts = TRIAL_COUNTS.get((group, mode))
    if counts is None:
        raise ValueError(f"Unsupported group: {group}")
    return RunConfig(group=group, mode=mode, counts=counts, timing=timing or TimingConfig())


def estimate_minutes(config: RunConfig) -> int:
    t = config.timing
    avg_trial_ms = (t.stimulus_min_ms + t.stimulus_max_ms) / 2 + t.fixation_ms
    return math.ceil(config.counts.total * avg_trial_ms / 1000 / 60)
