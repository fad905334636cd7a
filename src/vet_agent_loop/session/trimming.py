from __future__ import annotations

from loguru import logger

from vet_agent_loop.session.models import is_user_text


def split_turns(messages: list[dict]) -> tuple[list[dict], list[list[dict]]]:
    """Partition a log into (orphans, turns).

    A turn starts at a plain user message and runs until the next one. Anything
    before the first user message has no originating turn and is returned as
    orphans.
    """
    orphans: list[dict] = []
    turns: list[list[dict]] = []
    for message in messages:
        if is_user_text(message):
            turns.append([message])
        elif turns:
            turns[-1].append(message)
        else:
            orphans.append(message)
    return orphans, turns


def trim_turns(messages: list[dict], max_turns: int) -> list[dict]:
    orphans, turns = split_turns(messages)
    if orphans:
        logger.warning(f"Dropping {len(orphans)} message(s) that precede the first user message")
    if max_turns > 0 and len(turns) > max_turns:
        dropped = len(turns) - max_turns
        logger.info(f"Session trimmed - removed {dropped} oldest turn(s) to keep {max_turns}")
        turns = turns[-max_turns:]
    return [m for turn in turns for m in turn]
