from __future__ import annotations

import json
from collections import Counter
from pathlib import Path

import pytest

from speed_duel.duel_core import Question, SeededRng
from speed_duel.question_bank import (
    DIFFICULTY_PROFILES,
    DifficultyProfile,
    EASY,
    HARD,
    MEDIUM,
    InsufficientQuestionsError,
    QuestionFeedUnavailable,
    default_data_dir,
    difficulty_profile,
    load_question_feed,
    load_skill_catalog,
    parse_question_feed,
    select_round,
    select_tie_breaker,
)


def _pool(per_wave: int = 5) -> list[Question]:
    out: list[Question] = []
    for wave in range(1, 6):
        for n in range(per_wave):
            base = wave * 100 + n
            out.append(
                Question(
                    text=f"w{wave} q{n}",
                    choices=(str(base), str(base + 1), str(base + 2), str(base + 3)),
                    answer=str(base),
                    points=wave,
                    wave=wave,
                )
            )
    return out


def test_profiles_all_draw_ten() -> None:
    assert EASY.wave_counts == (3, 3, 3, 1, 0)
    assert MEDIUM.wave_counts == (2, 2, 2, 2, 2)
    assert HARD.wave_counts == (1, 1, 2, 3, 3)
    assert all(p.total == 10 for p in DIFFICULTY_PROFILES.values())


def test_difficulty_lookup_is_case_insensitive() -> None:
    assert difficulty_profile(" Hard ") is HARD
    with pytest.raises(ValueError):
        difficulty_profile("nightmare")


@pytest.mark.parametrize("profile", [EASY, MEDIUM, HARD])
def test_select_round_matches_profile_wave_counts(profile) -> None:
    picked = select_round(_pool(), profile, rng=SeededRng(7))

    assert len(picked) == 10
    counts = Counter(q.wave for q in picked)
    for wave, wanted in zip(range(1, 6), profile.wave_counts):
        assert counts.get(wave, 0) == wanted

    waves = [q.wave for q in picked]
    assert waves == sorted(waves)
    assert len({q.text for q in picked}) == 10


def test_select_round_is_deterministic_for_same_seed() -> None:
    a = select_round(_pool(), MEDIUM, rng=SeededRng(123))
    b = select_round(_pool(), MEDIUM, rng=SeededRng(123))
    assert a == b


def test_shuffled_choices_keep_answer_by_value() -> None:
    positions: set[int] = set()
    for seed in range(40):
        for q in select_round(_pool(), MEDIUM, rng=SeededRng(seed)):
            assert sum(1 for c in q.choices if c == q.answer) == 1
            assert q.choices[q.answer_index] == q.answer
            assert sorted(q.choices) == sorted(str(int(q.answer) + k) for k in range(4))
            positions.add(q.answer_index)
    assert len(positions) > 1


def test_insufficient_wave_raises_before_round() -> None:
    pool = [q for q in _pool() if not (q.wave == 5 and q.text != "w5 q0")]

    with pytest.raises(InsufficientQuestionsError) as info:
        select_round(pool, HARD, rng=SeededRng(1))
    assert info.value.wave == 5
    assert info.value.requested == 3
    assert info.value.available == 1

    short = select_round(pool, HARD, rng=SeededRng(1), allow_short=True)
    assert len(short) == 8


def test_questions_without_wave_are_never_drawn() -> None:
    loose = Question(text="loose", choices=("1", "2", "3", "4"), answer="1")
    picked = select_round([*_pool(), loose], MEDIUM, rng=SeededRng(3))
    assert all(q.text != "loose" for q in picked)


def test_tie_breaker_prefers_hardest_unused_wave() -> None:
    pool = _pool(per_wave=3)
    round_qs = select_round(pool, MEDIUM, rng=SeededRng(4))

    extra = select_tie_breaker(pool, exclude=round_qs, rng=SeededRng(4))
    assert extra is not None
    assert extra.wave == 5
    assert extra.text not in {q.text for q in round_qs}

    assert select_tie_breaker(pool, exclude=pool, rng=SeededRng(4)) is None


def test_question_rejects_bad_shapes() -> None:
    with pytest.raises(ValueError):
        Question(text="x", choices=("1", "2", "3"), answer="1")
    with pytest.raises(ValueError):
        Question(text="x", choices=("1", "1", "3", "4"), answer="1")
    with pytest.raises(ValueError):
        Question(text="x", choices=("1", "2", "3", "4"), answer="5")
    with pytest.raises(ValueError):
        Question(text="x", choices=("1", "2", "3", "4"), answer="1", points=0)


def test_parse_feed_defaults_points_and_title() -> None:
    feed = parse_question_feed(
        {"questions": [{"wave": 2, "question": "1 + 1?", "choices": ["2", "3", "4", "5"], "answer": "2"}]},
        skill="easy-adding",
    )
    assert feed.title == "easy adding"
    assert feed.questions[0].points == 1
    assert feed.questions[0].wave == 2


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"title": "x"},
        {"questions": ["nope"]},
        {"questions": [{"wave": 1, "question": "q", "choices": "abcd", "answer": "a"}]},
        {"questions": [{"wave": 1, "question": "q", "choices": ["a", "b", "c", "d"], "answer": "z"}]},
        {"questions": [{"wave": 1, "choices": ["a", "b", "c", "d"], "answer": "a"}]},
    ],
)
def test_parse_feed_rejects_malformed_documents(payload) -> None:
    with pytest.raises(QuestionFeedUnavailable):
        parse_question_feed(payload, skill="broken")


def test_load_feed_missing_or_corrupt_file(tmp_path: Path) -> None:
    with pytest.raises(QuestionFeedUnavailable):
        load_question_feed("missing", data_dir=tmp_path)

    (tmp_path / "questions").mkdir()
    (tmp_path / "questions" / "bad.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(QuestionFeedUnavailable):
        load_question_feed("bad", data_dir=tmp_path)


def test_skill_catalog_from_custom_dir(tmp_path: Path) -> None:
    (tmp_path / "skills.json").write_text(json.dumps({"g1": ["a", "b"], "bad": "x"}), encoding="utf-8")
    assert load_skill_catalog(data_dir=tmp_path) == {"g1": ["a", "b"]}

    with pytest.raises(QuestionFeedUnavailable):
        load_skill_catalog(data_dir=tmp_path / "nowhere")


def test_data_dir_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SPEED_DUEL_DATA_DIR", str(tmp_path))
    assert default_data_dir() == tmp_path


def test_bundled_feeds_support_every_difficulty(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SPEED_DUEL_DATA_DIR", raising=False)
    catalog = load_skill_catalog()
    skills = {s for group in catalog.values() for s in group}
    assert skills

    for skill in skills:
        feed = load_question_feed(skill)
        assert feed.title
        for profile in DIFFICULTY_PROFILES.values():
            picked = select_round(feed.questions, profile, rng=SeededRng(1))
            assert len(picked) == 10
            assert select_tie_breaker(feed.questions, exclude=picked, rng=SeededRng(1)) is not None


@pytest.mark.parametrize("counts", [(2, 2, 2, 2), (2, 2, 2, 2, 2, 2), (3, 3, 3, 2, -1)])
def test_difficulty_profile_needs_one_non_negative_count_per_wave(counts) -> None:
    with pytest.raises(ValueError):
        DifficultyProfile("custom", counts)
