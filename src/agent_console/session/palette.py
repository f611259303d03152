"""Slash-command palette: filtering, cycling and acceptance."""

from __future__ import annotations

from dataclasses import replace

from agent_console.session.state import PaletteState

DEFAULT_COMMANDS: tuple[str, ...] = (
    "/model",
    "/plan",
    "/auto",
    "/off",
    "/provider",
    "/status",
    "/jobs",
    "/run",
    "/bg",
    "/ask",
    "/help",
)


def filter_commands(text: str, commands: tuple[str, ...] = DEFAULT_COMMANDS) -> tuple[str, ...]:
    """Case-insensitive substring match; a blank filter keeps every command."""

    if not text.strip():
        return commands
    needle = text.lower()
    return tuple(command for command in commands if needle in command.lower())


def open_palette(commands: tuple[str, ...] = DEFAULT_COMMANDS) -> PaletteState:
    return PaletteState(visible=True, matches=commands)


def set_filter(palette: PaletteState, text: str) -> PaletteState:
    matches = filter_commands(text)
    selection = palette.selection
    if not matches:
        selection = -1
    elif selection < 0 or selection >= len(matches):
        selection = 0
    return replace(palette, filter=text, matches=matches, selection=selection, selected="")


def cycle(palette: PaletteState, delta: int) -> PaletteState:
    """Move the highlight with wrap-around; the first move picks an end."""

    count = len(palette.matches)
    if count == 0:
        return replace(palette, selection=-1)
    if palette.selection < 0:
        selection = 0 if delta >= 0 else count - 1
    else:
        selection = (palette.selection + delta) % count
    return replace(palette, selection=selection)


def accept(palette: PaletteState) -> PaletteState:
    """Close the palette remembering the highlighted (or first) match."""

    selected = ""
    if palette.matches:
        index = palette.selection if palette.selection >= 0 else 0
        selected = palette.matches[index]
    return PaletteState(selected=selected)
