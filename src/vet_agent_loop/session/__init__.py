from vet_agent_loop.session.models import Session
from vet_agent_loop.session.store import SessionStore
from vet_agent_loop.session.trimming import split_turns, trim_turns

__all__ = [
    "Session",
    "SessionStore",
    "split_turns",
    "trim_turns",
]
