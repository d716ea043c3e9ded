import json
import logging
import random
from pathlib import Path
from typing import List, Optional

import pygame

from config.settings import (
    GROUP_NAMES,
    MODE_MAIN,
    MODE_PRACTICE,
    RunConfig,
    TimingConfig,
    WindowConfig,
    build_run_config,
    estimate_minutes,
)
from data.logger import JsonlLogger
from experiment.audio import SoundBank
from experiment.input import InputManager
from experiment.renderer import Renderer
from experiment.scene import TrialScene
from experiment.session_metrics import summarize_outcomes
from experiment.submission import RecordSink, SubmissionResult, build_run_record, submit_run


logger = logging.getLogger(__name__)

SCREEN_INTRO = "intro"
SCREEN_PRACTICE = "practice"
SCREEN_CONFIRM = "confirm"
SCREEN_FINAL_CONFIRM = "final_confirm"
SCREEN_MAIN = "main"
SCREEN_DONE = "done"
SCREEN_SAVE_ERROR = "save_error"


def reminder_lines(group: int) -> List[str]:
    lines = [
        "Press SPACEBAR for all numbers except 3.",
        "Do NOT press anything when you see 3.",
    ]
    if group > 1:
        lines.append("Press LEFT ARROW for the first sound.")
    if group == 3:
        lines.append("Press RIGHT ARROW for the second sound.")
    return lines


class ExperimentApp:
    """
    Practice run (with feedback, not saved), confirmation, main run (saved).
    ESC or closing the window aborts whatever run is in progress; an aborted
    main run is not submitted.
    """

    def __init__(
        self,
        window: WindowConfig,
        participant_id: str,
        group: int,
        client: RecordSink,
        pending_path: Path,
        trial_log_path: Path,
        timing: Optional[TimingConfig] = None,
        skip_practice: bool = False,
    ) -> None:
        self.window = window
        self.participant_id = participant_id
        self.group = group
        self.client = client
        self.pending_path = pending_path
        self.skip_practice = skip_practice

        self.practice_config: RunConfig = build_run_config(group, MODE_PRACTICE, timing)
        self.main_config: RunConfig = build_run_config(group, MODE_MAIN, timing)

        pygame.init()
        flags = pygame.FULLSCREEN if window.fullscreen else 0
        self.screen = pygame.display.set_mode((window.width, window.height), flags)
        pygame.display.set_caption(window.title)
        self.frame_clock = pygame.time.Clock()

        self.renderer = Renderer(self.screen)
        self.input = InputManager()
        self.sounds = SoundBank()
        self.sounds.load()
        self.trial_log = JsonlLogger(trial_log_path)
        self.rng = random.Random()

        self.screen_id = SCREEN_INTRO
        self.scene: Optional[TrialScene] = None
        self.result: Optional[SubmissionResult] = None
        self.running = True

    # -----------------------
    # main loop
    # -----------------------

    def run(self) -> Optional[SubmissionResult]:
        logger.info(
            "Participant %s, group %d (%s)",
            self.participant_id,
            self.group,
            GROUP_NAMES[self.group],
        )
        while self.running:
            self.frame_clock.tick(self.window.fps)

            for event in pygame.event.get():
                if event.type == pygame.QUIT or (event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE):
                    self._quit()
                    break
                if self.scene is not None:
                    self.scene.handle_event(event)
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE:
                    self._advance()

            if not self.running:
                break

            if self.scene is not None:
                self.scene.update()
                self.scene.render()
                if self.scene.is_finished():
                    self._on_scene_finished()
            else:
                self._render_prompt()

        self.sounds.stop_all()
        pygame.quit()
        return self.result

    # -----------------------
    # flow
    # -----------------------

    def _advance(self) -> None:
        if self.screen_id == SCREEN_INTRO:
            self._start_run(SCREEN_MAIN if self.skip_practice else SCREEN_PRACTICE)
        elif self.screen_id == SCREEN_CONFIRM:
            self.screen_id = SCREEN_FINAL_CONFIRM
        elif self.screen_id == SCREEN_FINAL_CONFIRM:
            self._start_run(SCREEN_MAIN)
        elif self.screen_id in (SCREEN_DONE, SCREEN_SAVE_ERROR):
            self.running = False

    def _start_run(self, screen_id: str) -> None:
        config = self.main_config if screen_id == SCREEN_MAIN else self.practice_config
        self.screen_id = screen_id
        self.scene = TrialScene(
            renderer=self.renderer,
            input_manager=self.input,
            config=config,
            sounds=self.sounds,
            unique_id=self.participant_id,
            event_log=self.trial_log,
            rng=self.rng,
        )
        self.scene.start()

    def _on_scene_finished(self) -> None:
        scene = self.scene
        self.scene = None
        if self.screen_id == SCREEN_PRACTICE:
            logger.info("Practice finished: %d trials", len(scene.outcomes))
            self.screen_id = SCREEN_CONFIRM
            return
        self._save_main_run(scene)

    def _save_main_run(self, scene: TrialScene) -> None:
        logger.info("Main run summary: %s", summarize_outcomes(scene.outcomes))
        record = build_run_record(
            unique_id=self.participant_id,
            group=self.group,
            outcomes=scene.outcomes,
            metrics=scene.summary,
            epoch_origin_ms=scene.context.epoch_origin_ms,
        )
        self._render_simple("Saving...", ["Please wait while your results are saved."])
        self.result = submit_run(record, self.client, self.pending_path)
        if not self.result.ok and self.result.pending_path is None:
            # last copy: the console log
            logger.error("Unsaved run record: %s", json.dumps(record.to_dict(), ensure_ascii=False))
        self.screen_id = SCREEN_DONE if self.result.ok else SCREEN_SAVE_ERROR

    def _quit(self) -> None:
        if self.scene is not None:
            logger.warning("Run aborted by participant during %s", self.screen_id)
            self.scene.abort()
            self.scene = None
        self.running = False

    # -----------------------
    # prompts
    # -----------------------

    def _render_simple(self, title: str, lines: List[str], hint: str = "") -> None:
        self.renderer.clear()
        self.renderer.draw_message(title, lines, hint)
        self.renderer.present()

    def _render_prompt(self) -> None:
        group_line = f"Group {self.group}: {GROUP_NAMES[self.group]}"
        if self.screen_id == SCREEN_INTRO:
            if self.skip_practice:
                title = "Actual Experiment"
                first = (
                    f"You will now complete {self.main_config.counts.total} trials. "
                    f"This will take approximately {estimate_minutes(self.main_config)} minutes."
                )
            else:
                title = "Practice Trial"
                first = (
                    f"You will now complete {self.practice_config.counts.total} practice trials "
                    "with feedback enabled."
                )
            lines = [group_line, first, "", "Remember:"] + reminder_lines(self.group)
            self._render_simple(title, lines, "Press SPACEBAR to begin")
        elif self.screen_id == SCREEN_CONFIRM:
            lines = [
                group_line,
                "Great! You've completed the practice trials.",
                f"The actual experiment will take approximately {estimate_minutes(self.main_config)} minutes "
                "and will not provide feedback.",
                "",
                "Are you ready to begin the actual experiment?",
            ]
            self._render_simple("Practice Complete!", lines, "Press SPACEBAR to continue")
        elif self.screen_id == SCREEN_FINAL_CONFIRM:
            lines = [
                f"The experiment will take approximately {estimate_minutes(self.main_config)} minutes.",
                "Please ensure you won't be interrupted.",
                "",
                "Remember:",
            ] + reminder_lines(self.group)
            self._render_simple("Begin Actual Experiment?", lines, "Press SPACEBAR to begin, ESC to quit")
        elif self.screen_id == SCREEN_DONE:
            lines = [
                "Thank you for participating.",
                "Your responses have been saved.",
                "",
                f"Session ID: {self.participant_id}",
            ]
            self._render_simple("Experiment Complete", lines, "Press SPACEBAR to exit")
        elif self.screen_id == SCREEN_SAVE_ERROR:
            lines = [
                "There was an error saving your data. Please contact the researcher.",
                "",
                f"Session ID: {self.participant_id}",
                f"Trials completed: {self.main_config.counts.total}",
                self._kept_in_line(),
            ]
            self._render_simple("Save Error", lines, "Please contact the researcher")

    def _kept_in_line(self) -> str:
        if self.result is not None and self.result.pending_path is None:
            return "Results could not be written to disk; they are in the console log."
        return f"Results kept in: {self.pending_path}"
