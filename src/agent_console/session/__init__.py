"""Session state, pure transitions and the loop that owns them."""

from agent_console.session.loop import SessionLoop, provider_infos
from agent_console.session.state import SessionState, StreamBlock
from agent_console.session.transitions import Transition, apply, initial_state

__all__ = [
    "SessionLoop",
    "SessionState",
    "StreamBlock",
    "Transition",
    "apply",
    "initial_state",
    "provider_infos",
]
