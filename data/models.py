from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


STIMULUS_VISUAL = "visual"
STIMULUS_AUDIO1 = "audio1"
STIMULUS_AUDIO2 = "audio2"
STIMULUS_TYPES = (STIMULUS_VISUAL, STIMULUS_AUDIO1, STIMULUS_AUDIO2)

SOUND_1 = "sound1"
SOUND_2 = "sound2"

# Input kinds double as the "response_given" strings stored with each trial
INPUT_PRIMARY = "spacebar"
INPUT_SECONDARY_LEFT = "arrowleft"
INPUT_SECONDARY_RIGHT = "arrowright"
INPUT_KINDS = (INPUT_PRIMARY, INPUT_SECONDARY_LEFT, INPUT_SECONDARY_RIGHT)

SDT_HIT = "hit"
SDT_MISS = "miss"
SDT_FALSE_ALARM = "false_alarm"
SDT_CORRECT_REJECTION = "correct_rejection"
SDT_CATEGORIES = (SDT_HIT, SDT_MISS, SDT_FALSE_ALARM, SDT_CORRECT_REJECTION)


@dataclass(frozen=True)
class TrialSpec:
    """
    What to present in one trial: a digit 1..9 or a sound id.
    """
    stimulus_type: str
    stimulus_value: Union[int, str]


@dataclass(frozen=True)
class InputEvent:
    kind: str
    time_ms: int


@dataclass(frozen=True)
class TrialOutcome:
    """
    What happened in one trial. Built once, when the trial resolves.
    """
    index: int
    spec: TrialSpec
    response: Optional[str]           # None if nothing was pressed
    reaction_time_ms: Optional[int]   # None if nothing was pressed
    stimulus_start_ms: int
    stimulus_end_ms: int
    sdt_category: str

    def __post_init__(self) -> None:
        if (self.reaction_time_ms is None) != (self.response is None):
            raise ValueError("reaction_time_ms must be set exactly when a response is set")
        if self.sdt_category not in SDT_CATEGORIES:
            raise ValueError(f"Unknown SDT category: {self.sdt_category}")

    @property
    def is_correct(self) -> bool:
        return self.sdt_category in (SDT_HIT, SDT_CORRECT_REJECTION)


@dataclass(frozen=True)
class AggregateMetrics:
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int
    hit_rate: float
    false_alarm_rate: float
    corrected_hit_rate: float
    corrected_false_alarm_rate: float
    z_hit: float
    z_false_alarm: float
    d_prime: float
    criterion: float
    average_reaction_time_ms: Optional[int]

    @property
    def signal_trials(self) -> int:
        return self.hits + self.misses

    @property
    def noise_trials(self) -> int:
        return self.false_alarms + self.correct_rejections

    @property
    def total(self) -> int:
        return self.signal_trials + self.noise_trials


@dataclass
class RunRecord:
    """
    Finished main run, in the shape the results store accepts.
    """
    unique_id: str
    assigned_group: int
    total_trials: int
    total_hits: int
    total_misses: int
    total_false_alarms: int
    total_correct_rejections: int
    average_reaction_time: Optional[int]
    completed_at: str
    session_start_time: str
    hit_rate: float
    false_alarm_rate: float
    corrected_hit_rate: float
    corrected_false_alarm_rate: float
    d_prime: float
    criterion: float
    trials: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unique_id": self.unique_id,
            "assigned_group": self.assigned_group,
            "total_trials": self.total_trials,
            "total_hits": self.total_hits,
            "total_misses": self.total_misses,
            "total_false_alarms": self.total_false_alarms,
            "total_correct_rejections": self.total_correct_rejections,
            "average_reaction_time": self.average_reaction_time,
            "completed_at": self.completed_at,
            "session_start_time": self.session_start_time,
            "hit_rate": self.hit_rate,
            "false_alarm_rate": self.false_alarm_rate,
            "corrected_hit_rate": self.corrected_hit_rate,
            "corrected_false_alarm_rate": self.corrected_false_alarm_rate,
            "d_prime": self.d_prime,
            "criterion": self.criterion,
            "trials": [dict(t) for t in self.trials],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "RunRecord":
        return cls(
            unique_id=str(payload["unique_id"]),
            assigned_group=int(payload["assigned_group"]),
            total_trials=int(payload["total_trials"]),
            total_hits=int(payload["total_hits"]),
            total_misses=int(payload["total_misses"]),
            total_false_alarms=int(payload["total_false_alarms"]),
            total_correct_rejections=int(payload["total_correct_rejections"]),
            average_reaction_time=payload.get("average_reaction_time"),
            completed_at=str(payload["completed_at"]),
            session_start_time=str(payload.get("session_start_time", "")),
            hit_rate=float(payload.get("hit_rate", 0.0)),
            false_alarm_rate=float(payload.get("false_alarm_rate", 0.0)),
            corrected_hit_rate=float(payload.get("corrected_hit_rate", 0.0)),
            corrected_false_alarm_rate=float(payload.get("corrected_false_alarm_rate", 0.0)),
            d_prime=float(payload.get("d_prime", 0.0)),
            criterion=float(payload.get("criterion", 0.0)),
            trials=list(payload.get("trials") or []),
        )
