"""Mapping of key presses to user actions.

A key code is either a single character (``"q"``, ``"+"``) or the name of a
special key: ``"Tab"``, ``"BackTab"``, ``"Up"``, ``"Down"``, ``"Left"``,
``"Right"``, ``"Enter"``, ``"Esc"`` or a function key such as ``"F2"``.
"""

from __future__ import annotations

from enum import Enum, Flag, auto


class KeyModifiers(Flag):
    """Modifier keys held during a key press."""

    NONE = 0
    SHIFT = auto()
    CONTROL = auto()
    ALT = auto()


class InputEvent(Enum):
    """A user action triggered from the keyboard."""

    NEXT_PANEL = auto()
    PREV_PANEL = auto()
    NEXT_ITEM = auto()
    PREV_ITEM = auto()
    NEXT_DEVICE = auto()
    PREV_DEVICE = auto()

    SHOW_OPTIONS = auto()
    SAVE_SETTINGS = auto()
    RELOAD_SETTINGS = auto()

    QUIT = auto()
    RESET = auto()
    PAUSE = auto()

    TOGGLE_TRAFFIC_UNITS = auto()
    TOGGLE_DATA_UNITS = auto()
    TOGGLE_GRAPHS = auto()
    TOGGLE_MULTIPLE = auto()
    ZOOM_IN = auto()
    ZOOM_OUT = auto()

    INCREASE_REFRESH = auto()
    DECREASE_REFRESH = auto()
    INCREASE_AVERAGE = auto()
    DECREASE_AVERAGE = auto()

    UNKNOWN = auto()


_ANY_MODIFIER = {
    "BackTab": InputEvent.PREV_PANEL,
    "Down": InputEvent.NEXT_ITEM,
    "j": InputEvent.NEXT_ITEM,
    "Up": InputEvent.PREV_ITEM,
    "k": InputEvent.PREV_ITEM,
    "Right": InputEvent.NEXT_DEVICE,
    "l": InputEvent.NEXT_DEVICE,
    "Left": InputEvent.PREV_DEVICE,
    "h": InputEvent.PREV_DEVICE,
    "Enter": InputEvent.TOGGLE_MULTIPLE,
    "F2": InputEvent.SHOW_OPTIONS,
    "F5": InputEvent.SAVE_SETTINGS,
    "F6": InputEvent.RELOAD_SETTINGS,
    "q": InputEvent.QUIT,
    "r": InputEvent.RESET,
    " ": InputEvent.PAUSE,
    "u": InputEvent.TOGGLE_TRAFFIC_UNITS,
    "U": InputEvent.TOGGLE_DATA_UNITS,
    "g": InputEvent.TOGGLE_GRAPHS,
    "+": InputEvent.ZOOM_IN,
    "-": InputEvent.ZOOM_OUT,
    ">": InputEvent.INCREASE_REFRESH,
    "<": InputEvent.DECREASE_REFRESH,
    "]": InputEvent.INCREASE_AVERAGE,
    "[": InputEvent.DECREASE_AVERAGE,
    "Esc": InputEvent.QUIT,
}


def event_from_key(
    code: str, modifiers: KeyModifiers | int = KeyModifiers.NONE
) -> InputEvent:
    """Translate a key press into the action it triggers."""
    modifiers = KeyModifiers(modifiers)
    if code == "Tab":
        if modifiers == KeyModifiers.NONE:
            return InputEvent.NEXT_PANEL
        if modifiers == KeyModifiers.SHIFT:
            return InputEvent.PREV_PANEL
        return InputEvent.UNKNOWN
    return _ANY_MODIFIER.get(code, InputEvent.UNKNOWN)