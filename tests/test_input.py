import pygame

from experiment.input import InputManager, read_input_kind


def test_maps_three_keys():
    assert read_input_kind(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_SPACE)) == "spacebar"
    assert read_input_kind(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_LEFT)) == "arrowleft"
    assert read_input_kind(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_RIGHT)) == "arrowright"


def test_ignores_other_events():
    assert read_input_kind(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_a)) is None
    assert read_input_kind(pygame.event.Event(pygame.KEYUP, key=pygame.K_SPACE)) is None
    assert read_input_kind(pygame.event.Event(pygame.MOUSEBUTTONDOWN, button=1, pos=(0, 0))) is None


def test_queues_every_press_in_order():
    im = InputManager()
    im.process_pygame_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_SPACE), 10)
    im.process_pygame_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_q), 11)
    im.process_pygame_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_LEFT), 12)
    events = im.poll_events()
    assert [(e.kind, e.time_ms) for e in events] == [("spacebar", 10), ("arrowleft", 12)]
    assert im.poll_events() == []


def test_reset_drops_queue():
    im = InputManager()
    im.process_pygame_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_RIGHT), 5)
    im.reset()
    assert im.poll_events() == []
