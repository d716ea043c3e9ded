from array import array

from experiment.audio import synth_tone


def test_tone_length_and_channels():
    raw = synth_tone(440.0, 100, sample_rate=1000, channels=2)
    assert len(raw) == 100 * 2 * 2
    samples = array("h")
    samples.frombytes(raw)
    assert samples[0] == samples[1] == 0
    assert samples[-1] == 0
    assert max(samples) > 10000
