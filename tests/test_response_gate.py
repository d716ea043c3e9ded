from experiment.response_gate import GATE_CAPTURED, GATE_CLOSED, GATE_EXPIRED, ResponseGate


def test_closed_gate_rejects_everything():
    gate = ResponseGate()
    assert gate.state == GATE_CLOSED
    assert not gate.capture("spacebar", 10)
    assert not gate.expire()
    assert gate.response is None


def test_first_capture_wins():
    gate = ResponseGate()
    gate.arm()
    assert gate.capture("spacebar", 100)
    assert not gate.capture("arrowleft", 120)
    assert not gate.expire()
    assert gate.state == GATE_CAPTURED
    assert gate.response == "spacebar"
    assert gate.response_time_ms == 100


def test_expire_blocks_late_capture():
    gate = ResponseGate()
    gate.arm()
    assert gate.expire()
    assert not gate.capture("spacebar", 900)
    assert gate.state == GATE_EXPIRED
    assert gate.response is None


def test_unknown_kind_does_not_latch():
    gate = ResponseGate()
    gate.arm()
    assert not gate.capture("enter", 50)
    assert gate.is_armed
    assert gate.capture("arrowright", 60)


def test_rearm_clears_previous_response():
    gate = ResponseGate()
    gate.arm()
    gate.capture("spacebar", 10)
    gate.arm()
    assert gate.is_armed
    assert gate.response is None
    assert gate.response_time_ms is None
