import random
from typing import List, Optional

from config.settings import RunConfig
from data.logger import JsonlLogger
from data.models import STIMULUS_VISUAL, AggregateMetrics, TrialOutcome, TrialSpec
from experiment.audio import SoundBank
from experiment.clock import TimeSource, TrialClock
from experiment.input import InputManager
from experiment.renderer import Renderer
from experiment.state_machine import (
    PHASE_AWAITING,
    PHASE_COUNTDOWN,
    PHASE_FEEDBACK,
    PHASE_ITI,
    PHASE_PRESENTING,
    PHASE_RESOLVING,
    RunContext,
    TrialStateMachine,
)
from experiment.trial_generator import generate_sequence


class TrialScene:
    """
    One run (practice or main) hosted inside the pygame frame loop.

    The app feeds it pygame events and calls update() every frame. Queued key
    presses are replayed in arrival order, with the clock advanced to each
    press first, so a stimulus that had already timed out is never answered
    late.
    """

    def __init__(
        self,
        renderer: Optional[Renderer],
        input_manager: InputManager,
        config: RunConfig,
        sounds: Optional[SoundBank] = None,
        unique_id: str = "",
        event_log: Optional[JsonlLogger] = None,
        rng: Optional[random.Random] = None,
        time_source: Optional[TimeSource] = None,
        trials: Optional[List[TrialSpec]] = None,
    ):
        self.renderer = renderer
        self.input = input_manager
        self.config = config
        self.sounds = sounds
        self.unique_id = unique_id
        self.event_log = event_log

        rng = rng or random.Random()
        if trials is None:
            trials = generate_sequence(config, rng)
        self.context = RunContext(
            config=config,
            trials=trials,
            clock=TrialClock(time_source),
            rng=rng,
            on_present=self._on_present,
            on_outcome=self._on_outcome,
            on_complete=self._on_complete,
        )
        self.sm = TrialStateMachine(self.context)
        self.summary: Optional[AggregateMetrics] = None

    # -----------------------
    # lifecycle
    # -----------------------

    def start(self) -> None:
        # drop presses queued before the run
        self.input.reset()
        self.sm.start()

    def handle_event(self, event) -> None:
        # stamped on the trial clock, consumed in update()
        self.input.process_pygame_event(event, self.context.clock.now())

    def update(self, now_ms: Optional[int] = None) -> None:
        if self.sm.is_finished():
            return
        # replay presses in order, firing due timers up to each one first
        for press in self.input.poll_events():
            self.sm.update(press.time_ms)
            self.sm.handle_input(press.kind, press.time_ms)
        # then everything due by now
        self.sm.update(self.context.clock.now() if now_ms is None else now_ms)

    def abort(self) -> None:
        self.sm.abort()
        # a tone may still be playing
        if self.sounds is not None:
            self.sounds.stop_all()

    def is_finished(self) -> bool:
        return self.sm.is_finished()

    @property
    def outcomes(self) -> List[TrialOutcome]:
        return self.context.outcomes

    # -----------------------
    # hooks from the state machine
    # -----------------------

    def _on_present(self, index: int, spec: TrialSpec) -> None:
        # digits are drawn in render(); tones play once here
        if spec.stimulus_type != STIMULUS_VISUAL and self.sounds is not None:
            self.sounds.play(str(spec.stimulus_value))

    def _on_outcome(self, outcome: TrialOutcome) -> None:
        # only main-run trials go to the trial log
        if self.config.is_practice or self.event_log is None:
            return
        self.event_log.write(
            {
                "unique_id": self.unique_id,
                "group": self.config.group,
                "mode": self.config.mode,
                "trial_number": outcome.index + 1,
                "stimulus_type": outcome.spec.stimulus_type,
                "stimulus_value": outcome.spec.stimulus_value,
                "response_given": outcome.response,
                "reaction_time_ms": outcome.reaction_time_ms,
                "sdt_category": outcome.sdt_category,
                "stimulus_start_time": self.context.to_epoch_ms(outcome.stimulus_start_ms),
                "stimulus_end_time": self.context.to_epoch_ms(outcome.stimulus_end_ms),
            }
        )

    def _on_complete(self, summary: Optional[AggregateMetrics]) -> None:
        self.summary = summary

    # -----------------------
    # drawing
    # -----------------------

    def render(self) -> None:
        if self.renderer is None:
            return
        r = self.renderer
        phase = self.sm.phase
        r.clear()

        if phase == PHASE_COUNTDOWN:
            r.draw_countdown(self.sm.countdown_remaining)
        elif phase in (PHASE_PRESENTING, PHASE_AWAITING, PHASE_RESOLVING):
            self._draw_stimulus(self.sm.current_trial, None)
        elif phase == PHASE_FEEDBACK and self.sm.last_outcome is not None:
            # practice: same stimulus, coloured by correctness
            self._draw_stimulus(self.sm.last_outcome.spec, self.sm.last_outcome.is_correct)
        elif phase == PHASE_ITI:
            r.draw_fixation()

        # "trial n of N", hidden during the countdown
        if phase != PHASE_COUNTDOWN and not self.sm.is_finished():
            r.draw_progress(min(self.sm.trial_index + 1, self.sm.total_trials), self.sm.total_trials)
        r.present()

    def _draw_stimulus(self, spec: Optional[TrialSpec], is_correct: Optional[bool]) -> None:
        if spec is None:
            return
        # None means no feedback: default colour
        color = self.renderer.feedback_color(is_correct)
        if spec.stimulus_type == STIMULUS_VISUAL:
            self.renderer.draw_digit(int(spec.stimulus_value), color)
        else:
            self.renderer.draw_audio_glyph(color)
