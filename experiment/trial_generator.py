import logging
import random
from typing import Dict, List, Optional

from config.settings import RunConfig
from data.models import (
    SOUND_1,
    SOUND_2,
    STIMULUS_AUDIO1,
    STIMULUS_AUDIO2,
    STIMULUS_TYPES,
    STIMULUS_VISUAL,
    TrialSpec,
)


logger = logging.getLogger(__name__)

DIGITS = range(1, 10)


def shuffle_in_place(items: list, rng: random.Random) -> list:
    """Fisher-Yates: walk from the end, swap each slot with a random earlier-or-same one."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def generate_sequence(config: RunConfig, rng: Optional[random.Random] = None) -> List[TrialSpec]:
    """
    Builds the trial list for one run.

    - counts.visual digits, each drawn uniformly from 1..9 (3 included)
    - counts.audio1 sound1 trials and counts.audio2 sound2 trials
    - then one uniform shuffle over the whole list, so types are interleaved
    """
    rng = rng or random.Random()
    counts = config.counts

    trials: List[TrialSpec] = []
    for _ in range(counts.visual):
        trials.append(TrialSpec(stimulus_type=STIMULUS_VISUAL, stimulus_value=rng.choice(DIGITS)))
    for _ in range(counts.audio1):
        trials.append(TrialSpec(stimulus_type=STIMULUS_AUDIO1, stimulus_value=SOUND_1))
    for _ in range(counts.audio2):
        trials.append(TrialSpec(stimulus_type=STIMULUS_AUDIO2, stimulus_value=SOUND_2))

    shuffle_in_place(trials, rng)
    logger.debug(
        "Generated %d %s trials for group %d: %s",
        len(trials),
        config.mode,
        config.group,
        count_by_type(trials),
    )
    return trials


def count_by_type(trials: List[TrialSpec]) -> Dict[str, int]:
    counts = {t: 0 for t in STIMULUS_TYPES}
    for trial in trials:
        counts[trial.stimulus_type] += 1
    return counts
