from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from pathlib import Path

import pytest

from speed_duel.duel_core import DuelStatus
from speed_duel.question_bank import HARD, InsufficientQuestionsError, QuestionFeedUnavailable
from speed_duel.session import DuelSetup, start_duel


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_start_duel_from_bundled_feed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SPEED_DUEL_DATA_DIR", raising=False)
    setup = DuelSetup(
        player_names=("  ", "Zoe"),
        player_colors=("purple", "yellow"),
        skill="addition-facts",
        difficulty="hard",
    )

    engine = start_duel(setup, clock=FakeClock(), seed=11)

    assert engine.title == "Addition Facts"
    assert engine.status is DuelStatus.PLAYING
    assert len(engine.questions) == 10
    assert [p.name for p in engine.players] == ["Player 1", "Zoe"]
    assert [p.color for p in engine.players] == ["purple", "yellow"]
    assert engine.scores() == (0, 0)

    counts = Counter(q.wave for q in engine.questions)
    assert [counts.get(w, 0) for w in range(1, 6)] == list(HARD.wave_counts)


def test_rematch_uses_a_fresh_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SPEED_DUEL_DATA_DIR", raising=False)
    setup = DuelSetup(player_names=("A", "B"), skill="multiplication-facts")
    clock = FakeClock()

    first = start_duel(setup, clock=clock, seed=1)
    q = first.current_question()
    assert q is not None
    first.submit_answer(0, q.answer_index)
    first.dispose()

    second = start_duel(setup, clock=clock, seed=2)
    assert second is not first
    assert second.scores() == (0, 0)
    assert second.current_index == 0


def test_start_duel_surfaces_feed_errors(tmp_path: Path) -> None:
    setup = DuelSetup(player_names=("A", "B"), skill="nope")
    with pytest.raises(QuestionFeedUnavailable):
        start_duel(setup, clock=FakeClock(), seed=1, data_dir=tmp_path)


def test_start_duel_surfaces_short_supply(tmp_path: Path) -> None:
    (tmp_path / "questions").mkdir()
    (tmp_path / "questions" / "tiny.json").write_text(
        '{"title": "Tiny", "questions": ['
        '{"wave": 1, "question": "1+1", "choices": ["2", "3", "4", "5"], "answer": "2"}]}',
        encoding="utf-8",
    )
    setup = DuelSetup(player_names=("A", "B"), skill="tiny", difficulty="easy")
    with pytest.raises(InsufficientQuestionsError):
        start_duel(setup, clock=FakeClock(), seed=1, data_dir=tmp_path)


def test_unknown_difficulty_rejected(tmp_path: Path) -> None:
    setup = DuelSetup(player_names=("A", "B"), skill="addition-facts", difficulty="insane")
    with pytest.raises(ValueError):
        start_duel(setup, clock=FakeClock(), seed=1, data_dir=tmp_path)
