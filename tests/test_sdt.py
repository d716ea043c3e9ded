import pytest

from data.models import SDT_CORRECT_REJECTION, SDT_FALSE_ALARM, SDT_HIT, SDT_MISS
from experiment.sdt import classify, expected_response


@pytest.mark.parametrize("digit", [1, 2, 4, 5, 6, 7, 8, 9])
def test_go_digit(digit):
    assert expected_response("visual", digit) == "spacebar"
    assert classify("visual", digit, "spacebar") == SDT_HIT
    assert classify("visual", digit, None) == SDT_MISS
    assert classify("visual", digit, "arrowleft") == SDT_FALSE_ALARM


def test_digit_three_is_no_go():
    assert expected_response("visual", 3) is None
    assert classify("visual", 3, None) == SDT_CORRECT_REJECTION
    for key in ("spacebar", "arrowleft", "arrowright"):
        assert classify("visual", 3, key) == SDT_FALSE_ALARM


TRUTH_TABLE = [
    # go digit
    ("visual", 7, None, SDT_MISS),
    ("visual", 7, "spacebar", SDT_HIT),
    ("visual", 7, "arrowleft", SDT_FALSE_ALARM),
    ("visual", 7, "arrowright", SDT_FALSE_ALARM),
    # no-go digit
    ("visual", 3, None, SDT_CORRECT_REJECTION),
    ("visual", 3, "spacebar", SDT_FALSE_ALARM),
    ("visual", 3, "arrowleft", SDT_FALSE_ALARM),
    ("visual", 3, "arrowright", SDT_FALSE_ALARM),
    # first tone
    ("audio1", "sound1", None, SDT_MISS),
    ("audio1", "sound1", "arrowleft", SDT_HIT),
    ("audio1", "sound1", "spacebar", SDT_FALSE_ALARM),
    ("audio1", "sound1", "arrowright", SDT_FALSE_ALARM),
    # second tone
    ("audio2", "sound2", None, SDT_MISS),
    ("audio2", "sound2", "arrowright", SDT_HIT),
    ("audio2", "sound2", "spacebar", SDT_FALSE_ALARM),
    ("audio2", "sound2", "arrowleft", SDT_FALSE_ALARM),
]


@pytest.mark.parametrize("stype,value,response,expected", TRUTH_TABLE)
def test_full_truth_table(stype, value, response, expected):
    assert classify(stype, value, response) == expected


def test_unknown_type_raises():
    with pytest.raises(ValueError):
        classify("tactile", 1, None)
