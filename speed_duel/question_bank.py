from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .duel_core import Question, SeededRng

logger = logging.getLogger(__name__)

WAVES = (1, 2, 3, 4, 5)
ROUND_LENGTH = 10
DATA_DIR_ENV = "SPEED_DUEL_DATA_DIR"


class QuestionFeedUnavailable(RuntimeError):
    """A skill's question feed could not be read or parsed."""


class InsufficientQuestionsError(ValueError):
    def __init__(self, *, wave: int, requested: int, available: int) -> None:
        super().__init__(f"wave {wave} needs {requested} question(s) but only {available} available")
        self.wave = wave
        self.requested = requested
        self.available = available


@dataclass(frozen=True, slots=True)
class DifficultyProfile:
    name: str
    wave_counts: tuple[int, ...]  # draws for waves 1..5

    def __post_init__(self) -> None:
        if len(self.wave_counts) != len(WAVES):
            raise ValueError(f"wave_counts needs one entry per wave ({len(WAVES)})")
        if any(n < 0 for n in self.wave_counts):
            raise ValueError("wave_counts must be non-negative")

    @property
    def total(self) -> int:
        return sum(self.wave_counts)


EASY = DifficultyProfile("easy", (3, 3, 3, 1, 0))
MEDIUM = DifficultyProfile("medium", (2, 2, 2, 2, 2))
HARD = DifficultyProfile("hard", (1, 1, 2, 3, 3))

DIFFICULTY_PROFILES: dict[str, DifficultyProfile] = {p.name: p for p in (EASY, MEDIUM, HARD)}


def difficulty_profile(name: str) -> DifficultyProfile:
    key = name.strip().lower()
    try:
        return DIFFICULTY_PROFILES[key]
    except KeyError:
        raise ValueError(f"unknown difficulty: {name!r}") from None


@dataclass(frozen=True, slots=True)
class QuestionFeed:
    skill: str
    title: str
    questions: tuple[Question, ...]


def default_data_dir() -> Path:
    explicit = os.environ.get(DATA_DIR_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path(__file__).resolve().parent / "data"


def skill_title(skill: str) -> str:
    return skill.replace("-", " ")


def parse_question_feed(payload: object, *, skill: str) -> QuestionFeed:
    """Build a QuestionFeed from decoded JSON.

    Expected shape: {"title": str, "questions": [{"wave", "question",
    "choices", "answer", "points"?, "id"?}, ...]}.
    """

    if not isinstance(payload, dict):
        raise QuestionFeedUnavailable(f"{skill}: feed must be a JSON object")
    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list):
        raise QuestionFeedUnavailable(f"{skill}: feed has no question list")

    title = str(payload.get("title") or "").strip() or skill_title(skill)
    questions: list[Question] = []
    for n, item in enumerate(raw_questions, start=1):
        if not isinstance(item, dict):
            raise QuestionFeedUnavailable(f"{skill}: question #{n} is not an object")
        choices = item.get("choices")
        if not isinstance(choices, list):
            raise QuestionFeedUnavailable(f"{skill}: question #{n} has no choice list")
        try:
            wave = item.get("wave")
            points = item.get("points")
            raw_id = item.get("id")
            questions.append(
                Question(
                    text=str(item["question"]),
                    choices=tuple(str(c) for c in choices),
                    answer=str(item["answer"]),
                    points=1 if points is None else int(points),
                    wave=None if wave is None else int(wave),
                    question_id=None if raw_id is None else int(raw_id),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise QuestionFeedUnavailable(f"{skill}: question #{n} is invalid: {exc}") from exc

    return QuestionFeed(skill=skill, title=title, questions=tuple(questions))


def load_question_feed(skill: str, *, data_dir: Path | None = None) -> QuestionFeed:
    path = (data_dir or default_data_dir()) / "questions" / f"{skill}.json"
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("question feed %s unavailable: %s", path, exc)
        raise QuestionFeedUnavailable(f"failed to load questions for {skill!r}") from exc
    return parse_question_feed(payload, skill=skill)


def load_skill_catalog(*, data_dir: Path | None = None) -> dict[str, list[str]]:
    """Read skills.json: skill-group id -> ordered skill ids."""

    path = (data_dir or default_data_dir()) / "skills.json"
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("skill catalog %s unavailable: %s", path, exc)
        raise QuestionFeedUnavailable("failed to load the skill catalog") from exc
    if not isinstance(payload, dict):
        raise QuestionFeedUnavailable("skill catalog must be a JSON object")

    catalog: dict[str, list[str]] = {}
    for group, skills in payload.items():
        if not isinstance(skills, list):
            continue
        catalog[str(group)] = [str(s) for s in skills]
    return catalog


def group_by_wave(questions: Iterable[Question]) -> dict[int, list[Question]]:
    waves: dict[int, list[Question]] = {}
    for q in questions:
        if q.wave is None:
            continue
        waves.setdefault(q.wave, []).append(q)
    return waves


def select_round(
    questions: Sequence[Question],
    profile: DifficultyProfile,
    *,
    rng: SeededRng,
    allow_short: bool = False,
) -> list[Question]:
    """Draw a round: per-wave random picks, wave-ascending, choices shuffled.

    Raises InsufficientQuestionsError when a wave cannot supply its count,
    unless ``allow_short`` opts into taking whatever that wave has.
    """

    waves = group_by_wave(questions)
    picked: list[Question] = []
    for wave, wanted in zip(WAVES, profile.wave_counts):
        if wanted <= 0:
            continue
        pool = waves.get(wave, [])
        if len(pool) < wanted and not allow_short:
            raise InsufficientQuestionsError(wave=wave, requested=wanted, available=len(pool))
        picked.extend(rng.shuffled(pool)[:wanted])

    return [q.with_shuffled_choices(rng) for q in picked]


def select_tie_breaker(
    questions: Sequence[Question],
    *,
    exclude: Iterable[Question],
    rng: SeededRng,
) -> Question | None:
    """Pick one unused question for sudden death, hardest wave first."""

    used = {(q.text, q.answer) for q in exclude}
    waves = group_by_wave(q for q in questions if (q.text, q.answer) not in used)
    for wave in sorted(waves, reverse=True):
        pool = waves[wave]
        if pool:
            return rng.shuffled(pool)[0].with_shuffled_choices(rng)
    return None
