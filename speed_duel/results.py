from __future__ import annotations

from dataclasses import dataclass

from .duel_core import AnswerEvent, AnswerOutcome, DuelStatus, RoundEngine

BASE_POINTS_PER_QUESTION = 10


@dataclass(frozen=True, slots=True)
class PerformanceRating:
    label: str
    stars: int


@dataclass(frozen=True, slots=True)
class PlayerResult:
    name: str
    color: str
    score: int
    correct: int
    incorrect: int
    mean_rt_ms: float | None
    rating: PerformanceRating


@dataclass(frozen=True, slots=True)
class DuelResult:
    """Summary + event log for a finished duel."""

    title: str
    question_count: int
    sudden_death: bool
    winner: int | None
    is_tie: bool
    players: tuple[PlayerResult, ...]
    events: tuple[AnswerEvent, ...]


def performance_rating(score: int, question_count: int) -> PerformanceRating:
    """Rate a score against a base of 10 points per question."""

    possible = question_count * BASE_POINTS_PER_QUESTION
    pct = 0.0 if possible <= 0 else (score / possible) * 100.0
    if pct >= 80.0:
        return PerformanceRating("Excellent!", 3)
    if pct >= 60.0:
        return PerformanceRating("Good!", 2)
    return PerformanceRating("Keep Practicing!", 1)


def duel_result_from_engine(engine: RoundEngine) -> DuelResult:
    """Build a DuelResult from a finished RoundEngine."""

    if engine.status is not DuelStatus.FINISHED:
        raise ValueError("duel is not finished")

    events = engine.events()
    question_count = len(engine.questions)
    players: list[PlayerResult] = []
    for idx, player in enumerate(engine.players):
        mine = [e for e in events if e.player_index == idx]
        rts_ms = [e.response_time_s * 1000.0 for e in mine]
        players.append(
            PlayerResult(
                name=player.name,
                color=player.color,
                score=player.score,
                correct=sum(1 for e in mine if e.outcome is AnswerOutcome.CORRECT),
                incorrect=sum(1 for e in mine if e.outcome is not AnswerOutcome.CORRECT),
                mean_rt_ms=None if not rts_ms else sum(rts_ms) / len(rts_ms),
                rating=performance_rating(player.score, question_count),
            )
        )

    return DuelResult(
        title=engine.title,
        question_count=question_count,
        sudden_death=engine.sudden_death_played,
        winner=engine.winner,
        is_tie=engine.is_tie,
        players=tuple(players),
        events=tuple(events),
    )
