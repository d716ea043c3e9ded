import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from config.settings import RunConfig
from data.models import INPUT_KINDS, AggregateMetrics, TrialOutcome, TrialSpec
from experiment.clock import TrialClock, draw_stimulus_duration
from experiment.response_gate import ResponseGate
from experiment.sdt import classify
from experiment.session_metrics import MetricsAggregator


logger = logging.getLogger(__name__)

PHASE_IDLE = "IDLE"
PHASE_COUNTDOWN = "COUNTDOWN"          # 3..2..1 before the first trial only
PHASE_PRESENTING = "PRESENTING"
PHASE_AWAITING = "AWAITING_RESPONSE"   # stimulus on screen, gate armed
PHASE_RESOLVING = "RESOLVING"
PHASE_FEEDBACK = "FEEDBACK"            # practice only
PHASE_ITI = "ITI"                      # fixation cross between trials
PHASE_COMPLETED = "COMPLETED"
PHASE_ABORTED = "ABORTED"

TERMINAL_PHASES = (PHASE_COMPLETED, PHASE_ABORTED)

STIMULUS_SLOT = "stimulus"


@dataclass
class RunContext:
    """
    Everything one run owns. Built once per run and handed to the state machine;
    nothing here is shared between runs.
    """
    config: RunConfig
    trials: List[TrialSpec]
    clock: TrialClock
    gate: ResponseGate = field(default_factory=ResponseGate)
    metrics: MetricsAggregator = field(default_factory=MetricsAggregator)
    rng: random.Random = field(default_factory=random.Random)
    outcomes: List[TrialOutcome] = field(default_factory=list)
    on_present: Optional[Callable[[int, TrialSpec], None]] = None
    on_outcome: Optional[Callable[[TrialOutcome], None]] = None
    on_complete: Optional[Callable[[Optional[AggregateMetrics]], None]] = None
    # wall-clock ms at clock time 0, set on start()
    epoch_origin_ms: int = 0

    def to_epoch_ms(self, clock_ms: int) -> int:
        return self.epoch_origin_ms + clock_ms


class TrialStateMachine:
    """
    Drives one run trial by trial:

    IDLE -> COUNTDOWN -> PRESENTING -> AWAITING_RESPONSE -> RESOLVING
         -> FEEDBACK (practice) -> ITI -> PRESENTING ... -> COMPLETED

    abort() jumps to ABORTED from anywhere. Every timer callback carries the
    token that was current when it was scheduled and does nothing if the
    machine has moved on since.
    """

    def __init__(self, context: RunContext) -> None:
        self.ctx = context
        self.phase: str = PHASE_IDLE
        self.trial_index: int = 0
        self.countdown_remaining: int = 0
        self.stimulus_start_ms: Optional[int] = None
        self.last_outcome: Optional[TrialOutcome] = None
        self.summary: Optional[AggregateMetrics] = None
        # bumped whenever a trial starts or ends; timers carry the value they saw
        self._token: int = 0
        # the stimulus timeout, canceled when a key wins the gate
        self._stimulus_handle: Optional[int] = None

    # --------------------------
    # public surface
    # --------------------------

    @property
    def current_trial(self) -> Optional[TrialSpec]:
        if self.trial_index < len(self.ctx.trials):
            return self.ctx.trials[self.trial_index]
        return None

    @property
    def total_trials(self) -> int:
        return len(self.ctx.trials)

    def is_finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def start(self) -> None:
        if self.phase != PHASE_IDLE:
            raise RuntimeError(f"cannot start from phase {self.phase}")
        clock = self.ctx.clock
        # anchor clock time 0 to wall time for the saved record
        self.ctx.epoch_origin_ms = int(time.time() * 1000) - clock.now()
        logger.info(
            "Starting %s run: group %d, %d trials",
            self.ctx.config.mode,
            self.ctx.config.group,
            self.total_trials,
        )

        # countdown only before the first trial of a non-empty run
        steps = self.ctx.config.timing.countdown_steps
        if steps > 0 and self.total_trials > 0:
            self.phase = PHASE_COUNTDOWN
            self.countdown_remaining = steps
            self._schedule(self.ctx.config.timing.countdown_step_ms, self._on_countdown_step, PHASE_COUNTDOWN)
            return
        self._present_or_complete()

    def update(self, now_ms: Optional[int] = None) -> None:
        """Called every frame: lets due timers fire."""
        if self.is_finished():
            return
        self.ctx.clock.update(now_ms)

    def handle_input(self, kind: str, time_ms: Optional[int] = None) -> bool:
        # keys only count while the stimulus is up
        if self.phase != PHASE_AWAITING or kind not in INPUT_KINDS:
            return False
        t = self.ctx.clock.now() if time_ms is None else int(time_ms)
        # first press wins; repeats and late keys are dropped
        if not self.ctx.gate.capture(kind, t):
            return False

        # stop the timeout so it cannot resolve the trial twice
        self.ctx.clock.cancel(self._stimulus_handle)
        self._stimulus_handle = None
        start = self.stimulus_start_ms if self.stimulus_start_ms is not None else t
        self._resolve(response=kind, reaction_time_ms=max(0, t - start), end_ms=t)
        return True

    def abort(self) -> None:
        if self.is_finished():
            return
        # synchronous: no timer or key can act after this returns
        self.ctx.clock.cancel_all()
        self.ctx.gate.disarm()
        self._stimulus_handle = None
        self._token += 1
        logger.info("Run aborted at trial %d/%d in phase %s", self.trial_index + 1, self.total_trials, self.phase)
        self.phase = PHASE_ABORTED

    # --------------------------
    # scheduling helpers
    # --------------------------

    def _schedule(self, delay_ms: int, handler: Callable[[], None], expected_phase: str, slot: Optional[str] = None) -> int:
        token = self._token

        def fire() -> None:
            # stale: the machine moved on since this was scheduled
            if token != self._token or self.phase != expected_phase:
                return
            handler()

        return self.ctx.clock.schedule(delay_ms, fire, slot=slot)

    # --------------------------
    # phases
    # --------------------------

    def _on_countdown_step(self) -> None:
        self.countdown_remaining -= 1
        # one timer per step, the last one starts trial 1
        if self.countdown_remaining > 0:
            self._schedule(self.ctx.config.timing.countdown_step_ms, self._on_countdown_step, PHASE_COUNTDOWN)
            return
        self._present_or_complete()

    def _present_or_complete(self) -> None:
        if self.trial_index >= self.total_trials:
            self._complete()
            return

        self._token += 1
        self.phase = PHASE_PRESENTING
        spec = self.ctx.trials[self.trial_index]
        clock = self.ctx.clock

        # RT is measured from here
        self.stimulus_start_ms = clock.now()
        self.ctx.gate.arm()
        # drawn before the hook runs
        duration = draw_stimulus_duration(self.ctx.config.timing, self.ctx.rng)
        if self.ctx.on_present is not None:
            self.ctx.on_present(self.trial_index, spec)
            # a hook may have aborted the run
            if self.is_finished():
                return

        # window open until a key or the timeout
        self.phase = PHASE_AWAITING
        self._stimulus_handle = self._schedule(duration, self._on_stimulus_timeout, PHASE_AWAITING, slot=STIMULUS_SLOT)

    def _on_stimulus_timeout(self) -> None:
        # a key already won the gate
        if not self.ctx.gate.expire():
            return
        self._stimulus_handle = None
        self._resolve(response=None, reaction_time_ms=None, end_ms=self.ctx.clock.now())

    def _resolve(self, response: Optional[str], reaction_time_ms: Optional[int], end_ms: int) -> None:
        self.phase = PHASE_RESOLVING
        spec = self.ctx.trials[self.trial_index]
        outcome = TrialOutcome(
            index=self.trial_index,
            spec=spec,
            response=response,
            reaction_time_ms=reaction_time_ms,
            stimulus_start_ms=self.stimulus_start_ms if self.stimulus_start_ms is not None else end_ms,
            stimulus_end_ms=end_ms,
            sdt_category=classify(spec.stimulus_type, spec.stimulus_value, response),
        )
        # kept for the practice feedback screen
        self.last_outcome = outcome
        self.ctx.outcomes.append(outcome)

        # practice trials never reach the saved metrics
        if not self.ctx.config.is_practice:
            self.ctx.metrics.add_outcome(outcome)

        logger.debug(
            "Trial %d: %s %s -> %s (%s, rt=%s)",
            outcome.index + 1,
            spec.stimulus_type,
            spec.stimulus_value,
            response,
            outcome.sdt_category,
            reaction_time_ms,
        )
        if self.ctx.on_outcome is not None:
            self.ctx.on_outcome(outcome)

        # a hook may have aborted the run
        if self.is_finished():
            return

        # timers from the stimulus window are stale from here on
        self._token += 1
        if self.ctx.config.is_practice:
            self.phase = PHASE_FEEDBACK
            self._schedule(self.ctx.config.timing.feedback_ms, self._begin_iti, PHASE_FEEDBACK)
        else:
            self._begin_iti()

    def _begin_iti(self) -> None:
        # straight after the response in a main run, after feedback in practice
        self.phase = PHASE_ITI
        self._schedule(self.ctx.config.timing.fixation_ms, self._on_iti_done, PHASE_ITI)

    def _on_iti_done(self) -> None:
        # next trial, or complete when none are left
        self.trial_index += 1
        self._present_or_complete()

    def _complete(self) -> None:
        self._token += 1
        self.ctx.gate.disarm()
        self.phase = PHASE_COMPLETED
        # practice runs have no summary
        if not self.ctx.config.is_practice:
            self.summary = self.ctx.metrics.finalize()
        logger.info("Run completed: %d outcomes", len(self.ctx.outcomes))
        if self.ctx.on_complete is not None:
            self.ctx.on_complete(self.summary)
