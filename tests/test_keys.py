import pytest

from netwatch.keys import InputEvent, KeyModifiers, event_from_key


def test_tab_without_modifier_is_next_panel():
    assert event_from_key("Tab", KeyModifiers.NONE) is InputEvent.NEXT_PANEL


def test_shift_tab_is_prev_panel():
    assert event_from_key("Tab", KeyModifiers.SHIFT) is InputEvent.PREV_PANEL


def test_tab_with_other_modifier_is_unknown():
    assert event_from_key("Tab", KeyModifiers.CONTROL) is InputEvent.UNKNOWN


@pytest.mark.parametrize(
    "modifiers", [KeyModifiers.NONE, KeyModifiers.SHIFT, KeyModifiers.CONTROL]
)
def test_backtab_ignores_modifiers(modifiers):
    assert event_from_key("BackTab", modifiers) is InputEvent.PREV_PANEL


@pytest.mark.parametrize(
    "code, expected",
    [
        ("Down", InputEvent.NEXT_ITEM),
        ("j", InputEvent.NEXT_ITEM),
        ("Up", InputEvent.PREV_ITEM),
        ("k", InputEvent.PREV_ITEM),
        ("Right", InputEvent.NEXT_DEVICE),
        ("l", InputEvent.NEXT_DEVICE),
        ("Left", InputEvent.PREV_DEVICE),
        ("h", InputEvent.PREV_DEVICE),
        ("Enter", InputEvent.TOGGLE_MULTIPLE),
        ("F2", InputEvent.SHOW_OPTIONS),
        ("F5", InputEvent.SAVE_SETTINGS),
        ("F6", InputEvent.RELOAD_SETTINGS),
        ("q", InputEvent.QUIT),
        ("r", InputEvent.RESET),
        (" ", InputEvent.PAUSE),
        ("u", InputEvent.TOGGLE_TRAFFIC_UNITS),
        ("U", InputEvent.TOGGLE_DATA_UNITS),
        ("g", InputEvent.TOGGLE_GRAPHS),
        ("+", InputEvent.ZOOM_IN),
        ("-", InputEvent.ZOOM_OUT),
        (">", InputEvent.INCREASE_REFRESH),
        ("<", InputEvent.DECREASE_REFRESH),
        ("]", InputEvent.INCREASE_AVERAGE),
        ("[", InputEvent.DECREASE_AVERAGE),
        ("Esc", InputEvent.QUIT),
    ],
)
def test_key_mapping(code, expected):
    assert event_from_key(code) is expected


@pytest.mark.parametrize("code", ["x", "F1", "F3", "Home", "R", "Q"])
def test_unmapped_keys_are_unknown(code):
    assert event_from_key(code) is InputEvent.UNKNOWN


def test_modifiers_do_not_change_plain_keys():
    combined = KeyModifiers.CONTROL | KeyModifiers.ALT
    assert event_from_key("q", combined) is event_from_key("q")
    assert event_from_key("j", KeyModifiers.SHIFT) is event_from_key("Down")


def test_integer_modifiers_accepted():
    assert event_from_key("Tab", 0) is InputEvent.NEXT_PANEL
    assert event_from_key("Tab", KeyModifiers.SHIFT.value) is InputEvent.PREV_PANEL