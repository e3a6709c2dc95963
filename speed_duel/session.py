from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .clock import Clock
from .duel_core import DuelRules, Player, RoundEngine, SeededRng
from .question_bank import (
    difficulty_profile,
    load_question_feed,
    select_round,
    select_tie_breaker,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMES = ("Player 1", "Player 2")
PLAYER_COLORS = ("blue", "green", "yellow", "pink", "purple")


@dataclass(frozen=True, slots=True)
class DuelSetup:
    player_names: tuple[str, str]
    player_colors: tuple[str, str] = ("blue", "green")
    skill: str = ""
    difficulty: str = "medium"

    def resolved_names(self) -> tuple[str, str]:
        a, b = (n.strip() for n in self.player_names)
        return (a or DEFAULT_NAMES[0], b or DEFAULT_NAMES[1])


def start_duel(
    setup: DuelSetup,
    *,
    clock: Clock,
    seed: int,
    data_dir: Path | None = None,
    rules: DuelRules | None = None,
) -> RoundEngine:
    """Factory for a duel: load the skill's feed, draw a round, build the engine.

    Feed and supply errors propagate before any engine exists. Call again with
    a fresh seed for a rematch.
    """

    profile = difficulty_profile(setup.difficulty)
    feed = load_question_feed(setup.skill, data_dir=data_dir)

    rng = SeededRng(seed)
    questions = select_round(feed.questions, profile, rng=rng)
    tie_breaker = select_tie_breaker(feed.questions, exclude=questions, rng=rng)
    if tie_breaker is None:
        logger.info("%s has no spare question for sudden death", setup.skill)

    names = setup.resolved_names()
    players = [Player(name=names[i], color=setup.player_colors[i]) for i in range(2)]
    return RoundEngine(
        title=feed.title,
        questions=questions,
        players=players,
        clock=clock,
        rules=rules,
        tie_breaker=tie_breaker,
    )
