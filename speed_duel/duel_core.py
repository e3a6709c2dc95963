from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum

from .clock import Clock, DelayScheduler, TimerHandle

logger = logging.getLogger(__name__)

PLAYER_COUNT = 2
CHOICE_COUNT = 4
FAILED_MESSAGE = "Failed to answer. No points awarded."


class DuelStatus(str, Enum):
    PLAYING = "playing"
    SUDDEN_DEATH = "sudden_death"
    FINISHED = "finished"


class TieBreakPolicy(str, Enum):
    SUDDEN_DEATH = "sudden_death"
    DRAW = "draw"


class AnswerOutcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    FAILED = "failed"  # third distinct wrong option; question is skipped


class _Stage(str, Enum):
    OPEN = "open"
    FEEDBACK = "feedback"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Question:
    text: str
    choices: tuple[str, ...]
    answer: str  # by value, survives reshuffling
    points: int = 1
    wave: int | None = None
    question_id: int | None = None

    def __post_init__(self) -> None:
        if len(self.choices) != CHOICE_COUNT:
            raise ValueError(f"question {self.text!r} must have {CHOICE_COUNT} choices")
        if len(set(self.choices)) != len(self.choices):
            raise ValueError(f"question {self.text!r} has duplicate choices")
        if self.answer not in self.choices:
            raise ValueError(f"question {self.text!r}: answer {self.answer!r} is not a choice")
        if self.points <= 0:
            raise ValueError(f"question {self.text!r}: points must be > 0")

    @property
    def answer_index(self) -> int:
        return self.choices.index(self.answer)

    def is_correct(self, option_index: int) -> bool:
        return self.choices[option_index] == self.answer

    def with_shuffled_choices(self, rng: "SeededRng") -> "Question":
        return replace(self, choices=tuple(rng.shuffled(self.choices)))


@dataclass(slots=True)
class Player:
    name: str
    color: str
    score: int = 0


@dataclass(frozen=True, slots=True)
class DuelRules:
    feedback_s: float = 2.5
    failed_s: float = 3.0
    three_wrong_rule: bool = True
    tie_break: TieBreakPolicy = TieBreakPolicy.SUDDEN_DEATH


@dataclass(frozen=True, slots=True)
class AnswerEvent:
    question_index: int
    player_index: int
    option_index: int
    choice: str
    outcome: AnswerOutcome
    score_delta: int
    presented_at_s: float
    answered_at_s: float
    response_time_s: float


@dataclass(frozen=True, slots=True)
class PlayerSnapshot:
    name: str
    color: str
    score: int
    selection: int | None
    selection_correct: bool | None


@dataclass(frozen=True, slots=True)
class DuelSnapshot:
    """View model for the UI (pure data)."""

    title: str
    status: DuelStatus
    question_number: int
    question_count: int
    prompt: str
    choices: tuple[str, ...]
    points: int
    players: tuple[PlayerSnapshot, ...]
    disabled_options: tuple[int, ...]
    locked: bool
    accepting_input: bool
    message: str | None = None
    winner: int | None = None
    is_tie: bool = False


class RoundEngine:
    """Two-player answer race over a fixed question sequence.

    - Each player answers independently; scores move by the question's points.
    - A correct answer opens the feedback window, then the question advances.
    - A wrong answer disables that option and blocks only that player until
      their feedback window closes.
    - With the three-wrong rule, the third distinct wrong option fails the
      question: nothing is scored and it advances after the failed window.
    - Time is entirely via injected Clock; delays fire from update().
    """

    def __init__(
        self,
        *,
        title: str,
        questions: Sequence[Question],
        players: Sequence[Player],
        clock: Clock,
        rules: DuelRules | None = None,
        tie_breaker: Question | None = None,
    ) -> None:
        if len(players) != PLAYER_COUNT:
            raise ValueError(f"exactly {PLAYER_COUNT} players are required")
        if any(not p.name.strip() for p in players):
            raise ValueError("player names must be non-empty")
        if not questions:
            raise ValueError("questions must not be empty")
        rules = rules or DuelRules()
        if rules.feedback_s <= 0.0:
            raise ValueError("feedback_s must be > 0")
        if rules.failed_s <= 0.0:
            raise ValueError("failed_s must be > 0")

        self._title = title
        self._questions: list[Question] = list(questions)
        self._players: list[Player] = list(players)
        self._clock = clock
        self._rules = rules
        self._tie_breaker = tie_breaker
        self._timers = DelayScheduler(clock)

        self._status = DuelStatus.PLAYING
        self._winner: int | None = None
        self._index = 0
        self._selections: list[int | None] = [None] * PLAYER_COUNT
        self._disabled: set[int] = set()
        self._stage = _Stage.OPEN
        self._stage_opened_at_s: float | None = None
        self._retry_timers: list[TimerHandle | None] = [None] * PLAYER_COUNT
        self._advance_timer: TimerHandle | None = None
        self._presented_at_s = clock.now()
        self._events: list[AnswerEvent] = []
        self._sudden_death_played = False
        self._disposed = False

        logger.info(
            "duel started: %r, %d questions, %s vs %s",
            title,
            len(self._questions),
            self._players[0].name,
            self._players[1].name,
        )

    @property
    def title(self) -> str:
        return self._title

    @property
    def rules(self) -> DuelRules:
        return self._rules

    @property
    def status(self) -> DuelStatus:
        return self._status

    @property
    def winner(self) -> int | None:
        return self._winner

    @property
    def is_tie(self) -> bool:
        return self._status is DuelStatus.FINISHED and self._winner is None

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def questions(self) -> tuple[Question, ...]:
        return tuple(self._questions)

    @property
    def players(self) -> tuple[Player, ...]:
        return tuple(self._players)

    @property
    def disabled_options(self) -> frozenset[int]:
        return frozenset(self._disabled)

    @property
    def selections(self) -> tuple[int | None, ...]:
        return tuple(self._selections)

    @property
    def locked(self) -> bool:
        return self._stage is _Stage.FAILED

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def sudden_death_played(self) -> bool:
        return self._sudden_death_played

    def scores(self) -> tuple[int, int]:
        return self._players[0].score, self._players[1].score

    def current_question(self) -> Question | None:
        if self._index >= len(self._questions):
            return None
        return self._questions[self._index]

    def events(self) -> list[AnswerEvent]:
        return list(self._events)

    def pending_timers(self) -> int:
        return self._timers.pending_count()

    def submit_answer(self, player_index: int, option_index: int) -> bool:
        """Record a player's pick. Returns True if accepted.

        Rejected picks are no-ops: they model keypress races, not errors.
        """

        if self._disposed or self._status is DuelStatus.FINISHED:
            return False
        if not (0 <= player_index < PLAYER_COUNT):
            return False
        question = self._questions[self._index]
        if not (0 <= option_index < len(question.choices)):
            return False
        if self._stage is _Stage.FAILED:
            return False
        if self._stage is _Stage.FEEDBACK and not self._in_opening_instant():
            return False
        if option_index in self._disabled:
            return False
        if self._selections[player_index] is not None:
            return False

        if question.is_correct(option_index):
            self._selections[player_index] = option_index
            self._players[player_index].score += question.points
            self._record(player_index, option_index, AnswerOutcome.CORRECT, question.points)
            if self._stage is _Stage.OPEN:
                self._open_window(_Stage.FEEDBACK, self._rules.feedback_s)
            return True

        would_exhaust = len(self._disabled) >= CHOICE_COUNT - 2
        if self._rules.three_wrong_rule and would_exhaust:
            self._disabled.add(option_index)
            self._record(player_index, option_index, AnswerOutcome.FAILED, 0)
            if self._stage is _Stage.OPEN:
                self._open_window(_Stage.FAILED, self._rules.failed_s)
            else:
                # The correct answer's advance timer is already running.
                self._selections[player_index] = option_index
            return True

        self._selections[player_index] = option_index
        self._players[player_index].score -= question.points
        self._disabled.add(option_index)
        self._record(player_index, option_index, AnswerOutcome.INCORRECT, -question.points)
        self._retry_timers[player_index] = self._timers.call_later(
            self._rules.feedback_s,
            lambda: self._release_player(player_index),
        )
        return True

    def update(self) -> None:
        if self._disposed:
            return
        self._timers.poll()

    def dispose(self) -> None:
        """Cancel all pending delays; the engine never changes again."""

        if self._disposed:
            return
        cancelled = self._timers.pending_count()
        self._timers.close()
        self._retry_timers = [None] * PLAYER_COUNT
        self._advance_timer = None
        self._disposed = True
        logger.debug("duel disposed, %d pending timer(s) cancelled", cancelled)

    def snapshot(self) -> DuelSnapshot:
        question = self.current_question()
        players = tuple(
            PlayerSnapshot(
                name=p.name,
                color=p.color,
                score=p.score,
                selection=self._selections[i],
                selection_correct=(
                    None
                    if question is None or self._selections[i] is None
                    else question.is_correct(self._selections[i])
                ),
            )
            for i, p in enumerate(self._players)
        )
        accepting = not self._disposed and self._status is not DuelStatus.FINISHED and self._stage is _Stage.OPEN
        return DuelSnapshot(
            title=self._title,
            status=self._status,
            question_number=min(self._index + 1, len(self._questions)),
            question_count=len(self._questions),
            prompt="" if question is None else question.text,
            choices=() if question is None else question.choices,
            points=0 if question is None else question.points,
            players=players,
            disabled_options=tuple(sorted(self._disabled)),
            locked=self.locked,
            accepting_input=accepting,
            message=self._message(),
            winner=self._winner,
            is_tie=self.is_tie,
        )

    def _message(self) -> str | None:
        if self._status is DuelStatus.FINISHED:
            if self._winner is None:
                return "It's a tie!"
            return f"{self._players[self._winner].name} wins!"
        if self._stage is _Stage.FAILED:
            return FAILED_MESSAGE
        return None

    def _in_opening_instant(self) -> bool:
        # Presses in the same instant as the resolving answer still count.
        return self._stage_opened_at_s is not None and self._clock.now() <= self._stage_opened_at_s

    def _open_window(self, stage: _Stage, duration_s: float) -> None:
        self._stage = stage
        self._stage_opened_at_s = self._clock.now()
        self._advance_timer = self._timers.call_later(duration_s, self._advance)

    def _release_player(self, player_index: int) -> None:
        self._retry_timers[player_index] = None
        self._selections[player_index] = None

    def _record(self, player_index: int, option_index: int, outcome: AnswerOutcome, delta: int) -> None:
        question = self._questions[self._index]
        answered_at_s = self._clock.now()
        self._events.append(
            AnswerEvent(
                question_index=self._index,
                player_index=player_index,
                option_index=option_index,
                choice=question.choices[option_index],
                outcome=outcome,
                score_delta=delta,
                presented_at_s=self._presented_at_s,
                answered_at_s=answered_at_s,
                response_time_s=max(0.0, answered_at_s - self._presented_at_s),
            )
        )
        logger.debug(
            "q%d player %d picked %d: %s (%+d)",
            self._index + 1,
            player_index,
            option_index,
            outcome.value,
            delta,
        )

    def _advance(self) -> None:
        self._advance_timer = None
        for handle in self._retry_timers:
            self._timers.cancel(handle)
        self._retry_timers = [None] * PLAYER_COUNT
        self._selections = [None] * PLAYER_COUNT
        self._disabled.clear()
        self._stage = _Stage.OPEN
        self._stage_opened_at_s = None

        if self._index + 1 < len(self._questions):
            self._index += 1
            self._presented_at_s = self._clock.now()
            logger.debug("advanced to question %d of %d", self._index + 1, len(self._questions))
            return
        self._resolve_round_end()

    def _resolve_round_end(self) -> None:
        a, b = self.scores()
        if a != b:
            self._finish(0 if a > b else 1)
            return

        extra = self._tie_breaker
        can_break = (
            self._status is DuelStatus.PLAYING
            and self._rules.tie_break is TieBreakPolicy.SUDDEN_DEATH
            and extra is not None
        )
        if not can_break or extra is None:
            self._finish(None)
            return

        self._questions.append(extra)
        self._index += 1
        self._status = DuelStatus.SUDDEN_DEATH
        self._sudden_death_played = True
        self._presented_at_s = self._clock.now()
        logger.info("scores level at %d, sudden death question appended", a)

    def _finish(self, winner: int | None) -> None:
        self._status = DuelStatus.FINISHED
        self._winner = winner
        self._index = len(self._questions)
        self._timers.cancel_all()
        a, b = self.scores()
        if winner is None:
            logger.info("duel finished in a tie at %d", a)
        else:
            logger.info("duel finished %d-%d, winner: %s", a, b, self._players[winner].name)


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def shuffled(self, seq: Sequence[object]) -> list:
        """Fisher-Yates permutation of a copy of ``seq``."""

        items = list(seq)
        for i in range(len(items) - 1, 0, -1):
            j = self._rng.randint(0, i)
            items[i], items[j] = items[j], items[i]
        return items
