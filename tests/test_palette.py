from __future__ import annotations

import allure

from agent_console.session.palette import (
    DEFAULT_COMMANDS,
    accept,
    cycle,
    filter_commands,
    open_palette,
    set_filter,
)
from agent_console.session.state import PaletteState

pytestmark = [
    allure.epic("Session Engine"),
    allure.feature("Command palette"),
]


def test_filter_is_case_insensitive_substring() -> None:
    assert filter_commands("") == DEFAULT_COMMANDS
    assert filter_commands("   ") == DEFAULT_COMMANDS
    assert filter_commands("PRO") == ("/provider",)
    assert filter_commands("o") == ("/model", "/auto", "/off", "/provider", "/jobs")
    assert filter_commands("zzz") == ()


def test_filter_keeps_selection_in_range() -> None:
    palette = cycle(cycle(open_palette(), 1), 5)
    assert palette.selection == 5

    narrowed = set_filter(palette, "/p")
    assert narrowed.matches == ("/plan", "/provider")
    assert narrowed.selection == 0

    empty = set_filter(narrowed, "zzz")
    assert empty.selection == -1
    assert cycle(empty, 1).selection == -1


def test_cycle_wraps_in_both_directions() -> None:
    palette = open_palette(("/a", "/b", "/c"))

    assert cycle(palette, 1).selection == 0
    assert cycle(palette, -1).selection == 2
    assert cycle(cycle(palette, -1), 1).selection == 0
    assert cycle(cycle(palette, 1), -1).selection == 2


def test_accept_uses_highlight_or_first_match() -> None:
    palette = open_palette(("/a", "/b"))

    assert accept(cycle(palette, -1)) == PaletteState(selected="/b")
    assert accept(palette).selected == "/a"
    assert accept(PaletteState(visible=True)).selected == ""
