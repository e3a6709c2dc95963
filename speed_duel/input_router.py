from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .duel_core import CHOICE_COUNT


class AnswerSink(Protocol):
    def submit_answer(self, player_index: int, option_index: int) -> bool: ...


@dataclass(frozen=True, slots=True)
class KeyMap:
    """Two disjoint ordered key groups, one per player.

    Keys are pygame key names (``pygame.key.name``), stored lower-case.
    """

    player_keys: tuple[tuple[str, ...], tuple[str, ...]]

    def __post_init__(self) -> None:
        normalized = tuple(tuple(k.lower() for k in keys) for keys in self.player_keys)
        object.__setattr__(self, "player_keys", normalized)
        for keys in self.player_keys:
            if len(keys) != CHOICE_COUNT:
                raise ValueError(f"each player needs exactly {CHOICE_COUNT} keys")
            if len(set(keys)) != len(keys):
                raise ValueError("a player's keys must be distinct")
        if set(self.player_keys[0]) & set(self.player_keys[1]):
            raise ValueError("player key groups must not overlap")

    def lookup(self, key: str) -> tuple[int, int] | None:
        key = key.lower()
        for player_index, keys in enumerate(self.player_keys):
            if key in keys:
                return player_index, keys.index(key)
        return None

    def label(self, player_index: int, option_index: int) -> str:
        return self.player_keys[player_index][option_index].upper()


DEFAULT_KEYMAP = KeyMap(player_keys=(("q", "w", "e", "r"), ("u", "i", "o", "p")))


class InputRouter:
    """Forwards key presses to the engine. No debouncing here: the engine's
    own preconditions decide what is accepted."""

    def __init__(self, engine: AnswerSink, *, keymap: KeyMap = DEFAULT_KEYMAP) -> None:
        self._engine = engine
        self._keymap = keymap

    @property
    def keymap(self) -> KeyMap:
        return self._keymap

    def route(self, key: str) -> bool:
        hit = self._keymap.lookup(key)
        if hit is None:
            return False
        player_index, option_index = hit
        return self._engine.submit_answer(player_index, option_index)
