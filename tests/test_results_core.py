from __future__ import annotations

from dataclasses import dataclass

import pytest

from speed_duel.duel_core import DuelRules, Player, Question, RoundEngine
from speed_duel.results import duel_result_from_engine, performance_rating


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@pytest.mark.parametrize(
    "score,label,stars",
    [
        (100, "Excellent!", 3),
        (80, "Excellent!", 3),
        (79, "Good!", 2),
        (60, "Good!", 2),
        (59, "Keep Practicing!", 1),
        (-40, "Keep Practicing!", 1),
    ],
)
def test_performance_rating_thresholds(score: int, label: str, stars: int) -> None:
    rating = performance_rating(score, 10)
    assert rating.label == label
    assert rating.stars == stars


def test_rating_with_no_questions_is_lowest() -> None:
    assert performance_rating(5, 0).stars == 1


def test_result_requires_finished_duel() -> None:
    clock = FakeClock()
    q = Question(text="1+1", choices=("2", "3", "4", "5"), answer="2", points=10)
    engine = RoundEngine(title="t", questions=[q], players=[Player("A", "blue"), Player("B", "green")], clock=clock)
    with pytest.raises(ValueError):
        duel_result_from_engine(engine)


def test_result_summarises_both_players() -> None:
    clock = FakeClock()
    rules = DuelRules(feedback_s=1.0, failed_s=1.0)
    qs = [
        Question(text=f"{i}+1", choices=(str(i + 1), "x", "y", "z"), answer=str(i + 1), points=10)
        for i in range(2)
    ]
    engine = RoundEngine(title="Adding", questions=qs, players=[Player("A", "blue"), Player("B", "green")], clock=clock, rules=rules)

    clock.advance(0.5)
    engine.submit_answer(1, 1)
    clock.advance(0.5)
    engine.submit_answer(0, 0)
    clock.advance(1.0)
    engine.update()

    clock.advance(1.0)
    engine.submit_answer(0, 0)
    clock.advance(1.0)
    engine.update()

    result = duel_result_from_engine(engine)
    assert result.title == "Adding"
    assert result.winner == 0
    assert result.is_tie is False
    assert result.sudden_death is False
    assert result.question_count == 2

    a, b = result.players
    assert (a.score, a.correct, a.incorrect) == (20, 2, 0)
    assert (b.score, b.correct, b.incorrect) == (-10, 0, 1)
    assert a.mean_rt_ms == pytest.approx(1000.0)
    assert b.mean_rt_ms == pytest.approx(500.0)
    assert a.rating.stars == 3
    assert b.rating.stars == 1
    assert len(result.events) == 3
