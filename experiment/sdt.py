from typing import Optional, Union

from data.models import (
    INPUT_PRIMARY,
    INPUT_SECONDARY_LEFT,
    INPUT_SECONDARY_RIGHT,
    SDT_CORRECT_REJECTION,
    SDT_FALSE_ALARM,
    SDT_HIT,
    SDT_MISS,
    STIMULUS_AUDIO1,
    STIMULUS_AUDIO2,
    STIMULUS_VISUAL,
)


NON_TARGET_DIGIT = 3

_AUDIO_KEYS = {
    STIMULUS_AUDIO1: INPUT_SECONDARY_LEFT,
    STIMULUS_AUDIO2: INPUT_SECONDARY_RIGHT,
}


def expected_response(stimulus_type: str, stimulus_value: Union[int, str]) -> Optional[str]:
    """Key the participant should press, or None when they should hold still."""
    if stimulus_type == STIMULUS_VISUAL:
        if stimulus_value == NON_TARGET_DIGIT:
            return None
        return INPUT_PRIMARY
    if stimulus_type in _AUDIO_KEYS:
        return _AUDIO_KEYS[stimulus_type]
    raise ValueError(f"Unsupported stimulus_type: {stimulus_type}")


def classify(stimulus_type: str, stimulus_value: Union[int, str], response: Optional[str]) -> str:
    expected = expected_response(stimulus_type, stimulus_value)

    # the digit 3: any key at all is a false alarm
    if expected is None:
        return SDT_CORRECT_REJECTION if response is None else SDT_FALSE_ALARM

    if response is None:
        return SDT_MISS
    if response == expected:
        return SDT_HIT
    return SDT_FALSE_ALARM
