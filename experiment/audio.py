import logging
import math
from array import array
from pathlib import Path
from typing import Dict, Optional

import pygame

from data.models import SOUND_1, SOUND_2
from experiment.runtime.paths import resource_path


logger = logging.getLogger(__name__)

SOUND_FILES = {
    SOUND_1: "sound1.wav",
    SOUND_2: "sound2.wav",
}

# used when the wav file is not shipped
FALLBACK_TONES_HZ = {
    SOUND_1: 440.0,
    SOUND_2: 880.0,
}
TONE_MS = 300


def synth_tone(freq_hz: float, duration_ms: int, sample_rate: int, channels: int, volume: float = 0.4) -> bytes:
    """Signed 16-bit sine with a short linear fade at both ends."""
    n = int(sample_rate * duration_ms / 1000)
    fade = max(1, int(sample_rate * 0.01))
    samples = array("h")
    for i in range(n):
        env = min(1.0, i / fade, (n - 1 - i) / fade)
        value = int(32767 * volume * env * math.sin(2 * math.pi * freq_hz * i / sample_rate))
        samples.extend([value] * channels)
    return samples.tobytes()


class SoundBank:
    def __init__(self, assets_dir: Optional[Path] = None) -> None:
        self.assets_dir = assets_dir or resource_path("experiment", "assets")
        self.sounds: Dict[str, pygame.mixer.Sound] = {}

    def load(self) -> None:
        if not pygame.mixer.get_init():
            try:
                pygame.mixer.init()
            except pygame.error as exc:
                logger.warning("Audio disabled, mixer failed to start: %s", exc)
                return
        for sound_id, filename in SOUND_FILES.items():
            path = self.assets_dir / filename
            if path.exists():
                try:
                    self.sounds[sound_id] = pygame.mixer.Sound(str(path))
                    continue
                except pygame.error as exc:
                    logger.warning("Could not load %s: %s", path, exc)
            tone = self._tone(sound_id)
            if tone is not None:
                self.sounds[sound_id] = tone

    def _tone(self, sound_id: str) -> Optional[pygame.mixer.Sound]:
        frequency, size, channels = pygame.mixer.get_init()
        if size != -16:
            logger.warning("No %s file and mixer format %s cannot take a generated tone", sound_id, size)
            return None
        logger.info("Using generated %.0f Hz tone for %s", FALLBACK_TONES_HZ[sound_id], sound_id)
        return pygame.mixer.Sound(buffer=synth_tone(FALLBACK_TONES_HZ[sound_id], TONE_MS, frequency, channels))

    def play(self, sound_id: str) -> None:
        sound = self.sounds.get(sound_id)
        if sound is None:
            return
        sound.stop()
        sound.play()

    def stop_all(self) -> None:
        for sound in self.sounds.values():
            sound.stop()
