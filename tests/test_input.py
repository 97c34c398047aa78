"""Tests for keyboard tap input and listener plugin registration."""

import pygame

from conftest import FakeClock, RecordingListener

from rhythmtap.midi_input import TWO_PLAYER_KEYS, InputSource, KeyboardInput
from rhythmtap.plugins.manager import PluginManager


def _key(kind, key):
    return pygame.event.Event(kind, key=key)


def test_keyboard_press_and_release_are_timestamped():
    clock = FakeClock(0)
    kb = KeyboardInput(clock)
    kb.feed_event(_key(pygame.KEYDOWN, pygame.K_SPACE))
    clock.advance(250)
    kb.feed_event(_key(pygame.KEYUP, pygame.K_SPACE))

    down = kb.poll()
    up = kb.poll()
    assert (down.player, down.timestamp, down.is_press) == ("player1", 0, True)
    assert (up.player, up.timestamp, up.is_press) == ("player1", 250, False)
    assert kb.poll() is None


def test_key_repeat_is_suppressed():
    kb = KeyboardInput(FakeClock())
    for _ in range(3):
        kb.feed_event(_key(pygame.KEYDOWN, pygame.K_t))
    assert kb.poll() is not None
    assert kb.poll() is None


def test_two_player_keys_and_unmapped_keys():
    kb = KeyboardInput(FakeClock(), TWO_PLAYER_KEYS)
    kb.feed_event(_key(pygame.KEYDOWN, pygame.K_k))
    kb.feed_event(_key(pygame.KEYDOWN, pygame.K_SPACE))
    kb.feed_event(_key(pygame.KEYDOWN, pygame.K_t))
    assert [kb.poll().player, kb.poll().player] == ["player2", "player1"]
    assert kb.poll() is None
    assert isinstance(kb, InputSource)


def test_plugin_manager_registers_listeners_only():
    pm = PluginManager()
    listener = RecordingListener()
    pm.register(listener)
    pm.register(object())
    assert pm.get_listeners() == [listener]


def test_plugin_with_a_single_listener_method_is_accepted():
    class BeatLight:
        def on_beat(self, beat_index, is_downbeat):
            pass

    pm = PluginManager()
    plugin = BeatLight()
    pm.register(plugin)
    assert pm.get_listeners() == [plugin]


def test_discover_with_no_installed_plugins():
    pm = PluginManager()
    pm.discover(group="rhythmtap.tests.nothing-here")
    assert pm.get_listeners() == []
