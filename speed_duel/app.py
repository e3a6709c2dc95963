"""Pygame UI shell for Speed Duel.

Screens: skill group -> skill -> difficulty -> player setup -> duel -> results.
Deterministic timing/scoring/RNG/state lives in speed_duel/* (core modules);
this module only routes keys and draws snapshots.
"""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pygame

from .clock import RealClock
from .duel_core import DuelSnapshot, DuelStatus, RoundEngine
from .input_router import DEFAULT_KEYMAP, InputRouter
from .question_bank import (
    DIFFICULTY_PROFILES,
    InsufficientQuestionsError,
    QuestionFeedUnavailable,
    default_data_dir,
    load_question_feed,
    load_skill_catalog,
    skill_title,
)
from .results import duel_result_from_engine
from .session import PLAYER_COLORS, DuelSetup, start_duel

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "SPEED_DUEL_LOG_LEVEL"
WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

COLOR_RGB: dict[str, tuple[int, int, int]] = {
    "blue": (0, 123, 255),
    "green": (40, 167, 69),
    "yellow": (255, 193, 7),
    "pink": (232, 62, 140),
    "purple": (111, 66, 193),
}

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
DISABLED_BG = (40, 44, 70)
FAIL_TEXT = (255, 110, 110)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _rgb(color: str) -> tuple[int, int, int]:
    return COLOR_RGB.get(color, (150, 150, 160))


def _tint(color: tuple[int, int, int], alpha: float) -> tuple[int, int, int]:
    # Blend toward the panel background; pygame draw calls ignore alpha.
    return tuple(int(PANEL_BG[i] + (color[i] - PANEL_BG[i]) * alpha) for i in range(3))  # type: ignore[return-value]


def _fit_label(font: pygame.font.Font, label: str, max_width: int) -> str:
    if max_width <= 0:
        return ""
    if font.size(label)[0] <= max_width:
        return label
    clipped = label
    while clipped and font.size(f"{clipped}...")[0] > max_width:
        clipped = clipped[:-1]
    return f"{clipped}..." if clipped else "..."


def _draw_frame(surface: pygame.Surface, title: str, font: pygame.font.Font) -> pygame.Rect:
    w, h = surface.get_size()
    surface.fill(BG)
    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)
    text = font.render(_fit_label(font, title, frame.w - 24), True, TEXT_MAIN)
    surface.blit(text, text.get_rect(midtop=(frame.centerx, frame.y + 12)))
    return frame


class MessageScreen:
    def __init__(self, app: App, title: str, lines: list[str]) -> None:
        self._app = app
        self._title = title
        self._lines = lines
        self._title_font = pygame.font.Font(None, 42)
        self._font = pygame.font.Font(None, 28)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN, pygame.K_KP_ENTER):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        frame = _draw_frame(surface, self._title, self._title_font)
        y = frame.y + 80
        for line in [*self._lines, "", "Press Enter or Esc to go back."]:
            text = self._font.render(line, True, TEXT_MUTED)
            surface.blit(text, (frame.x + 30, y))
            y += 32


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        frame = _draw_frame(surface, self._title, self._title_font)
        row_h = 40
        gap = 8
        y = frame.y + 70
        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 30, y, frame.w - 60, row_h)
            selected = idx == self._selected
            if selected:
                pygame.draw.rect(surface, (244, 248, 255), row)
            else:
                pygame.draw.rect(surface, (9, 20, 106), row)
                pygame.draw.rect(surface, (62, 84, 152), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            label = _fit_label(self._item_font, item.label, row.w - 20)
            text = self._item_font.render(label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h + gap

        footer = "Up/Down: Move  |  Enter/Space: Select  |  Esc/Backspace: Back"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class PlayerSetupScreen:
    """Names and colors for both players. Tab switches player, Left/Right
    cycles the color (never the other player's), Enter starts."""

    def __init__(self, app: App, *, on_start: Callable[[tuple[str, str], tuple[str, str]], None]) -> None:
        self._app = app
        self._on_start = on_start
        self._names = ["", ""]
        self._colors = [PLAYER_COLORS[0], PLAYER_COLORS[1]]
        self._focus = 0
        self._title_font = pygame.font.Font(None, 42)
        self._font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def names(self) -> tuple[str, str]:
        return self._names[0], self._names[1]

    @property
    def colors(self) -> tuple[str, str]:
        return self._colors[0], self._colors[1]

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_ESCAPE:
            self._app.pop()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._on_start(self.names, self.colors)
        elif event.key in (pygame.K_TAB, pygame.K_UP, pygame.K_DOWN):
            self._focus = 1 - self._focus
        elif event.key == pygame.K_LEFT:
            self._cycle_color(-1)
        elif event.key == pygame.K_RIGHT:
            self._cycle_color(1)
        elif event.key == pygame.K_BACKSPACE:
            self._names[self._focus] = self._names[self._focus][:-1]
        else:
            ch = getattr(event, "unicode", "")
            if ch and ch.isprintable() and len(self._names[self._focus]) < 16:
                self._names[self._focus] += ch

    def _cycle_color(self, delta: int) -> None:
        other = self._colors[1 - self._focus]
        idx = PLAYER_COLORS.index(self._colors[self._focus])
        while True:
            idx = (idx + delta) % len(PLAYER_COLORS)
            if PLAYER_COLORS[idx] != other:
                break
        self._colors[self._focus] = PLAYER_COLORS[idx]

    def render(self, surface: pygame.Surface) -> None:
        frame = _draw_frame(surface, "Players", self._title_font)
        for i in range(2):
            y = frame.y + 90 + i * 90
            row = pygame.Rect(frame.x + 30, y, frame.w - 60, 60)
            pygame.draw.rect(surface, _tint(_rgb(self._colors[i]), 0.35), row)
            pygame.draw.rect(surface, BORDER if i == self._focus else (62, 84, 152), row, 2)
            name = self._names[i] or f"Player {i + 1}"
            keys = " ".join(DEFAULT_KEYMAP.player_keys[i]).upper()
            text = self._font.render(f"{name}   [{self._colors[i]}]   keys: {keys}", True, TEXT_MAIN)
            surface.blit(text, (row.x + 14, row.y + (row.h - text.get_height()) // 2))

        footer = "Type: Name  |  Tab: Switch  |  Left/Right: Color  |  Enter: Start  |  Esc: Back"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class DuelScreen:
    """Runs one duel. Leaving the screen disposes the engine; R rematches."""

    def __init__(self, app: App, *, engine_factory: Callable[[], RoundEngine]) -> None:
        self._app = app
        self._engine_factory = engine_factory
        self._engine = engine_factory()
        self._router = InputRouter(self._engine)
        self._title_font = pygame.font.Font(None, 34)
        self._prompt_font = pygame.font.Font(None, 56)
        self._choice_font = pygame.font.Font(None, 34)
        self._small_font = pygame.font.Font(None, 24)

    @property
    def engine(self) -> RoundEngine:
        return self._engine

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_ESCAPE:
            self._leave()
            return
        if self._engine.status is DuelStatus.FINISHED:
            if event.key in (pygame.K_r, pygame.K_RETURN, pygame.K_KP_ENTER):
                self._rematch()
            return
        self._router.route(pygame.key.name(event.key))

    def _leave(self) -> None:
        self._engine.dispose()
        self._app.pop()

    def _rematch(self) -> None:
        self._engine.dispose()
        try:
            engine = self._engine_factory()
        except (QuestionFeedUnavailable, InsufficientQuestionsError) as exc:
            self._app.pop()
            self._app.push(MessageScreen(self._app, "Could not start a rematch", [str(exc)]))
            return
        self._engine = engine
        self._router = InputRouter(engine)

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        if snap.status is DuelStatus.FINISHED:
            self._render_results(surface, snap)
        else:
            self._render_question(surface, snap)

    def _render_question(self, surface: pygame.Surface, snap: DuelSnapshot) -> None:
        frame = _draw_frame(surface, snap.title, self._title_font)

        header = f"Question {snap.question_number} of {snap.question_count}   ({snap.points} points)"
        if snap.status is DuelStatus.SUDDEN_DEATH:
            header += "   SUDDEN DEATH!"
        head = self._small_font.render(header, True, TEXT_MUTED)
        surface.blit(head, head.get_rect(midtop=(frame.centerx, frame.y + 46)))

        card_w = max(140, frame.w // 4)
        for i, player in enumerate(snap.players):
            card = pygame.Rect(0, frame.y + 44, card_w, 56)
            if i == 0:
                card.x = frame.x + 16
            else:
                card.right = frame.right - 16
            pygame.draw.rect(surface, _tint(_rgb(player.color), 0.4), card)
            pygame.draw.rect(surface, _rgb(player.color), card, 3)
            name = self._small_font.render(_fit_label(self._small_font, player.name, card.w - 16), True, TEXT_MAIN)
            score = self._choice_font.render(str(player.score), True, TEXT_MAIN)
            surface.blit(name, (card.x + 8, card.y + 6))
            surface.blit(score, (card.x + 8, card.y + 26))

        prompt = self._prompt_font.render(
            _fit_label(self._prompt_font, snap.prompt, frame.w - 40), True, TEXT_MAIN
        )
        surface.blit(prompt, prompt.get_rect(center=(frame.centerx, frame.y + 150)))

        grid_top = frame.y + 200
        cell_w = (frame.w - 60) // 2
        cell_h = max(50, (frame.bottom - 60 - grid_top) // 2)
        picked_by = {p.selection: i for i, p in enumerate(snap.players) if p.selection is not None}
        for idx, choice in enumerate(snap.choices):
            col, row = idx % 2, idx // 2
            cell = pygame.Rect(frame.x + 20 + col * (cell_w + 20), grid_top + row * (cell_h + 12), cell_w, cell_h)
            disabled = snap.locked or idx in snap.disabled_options
            if disabled:
                fill = DISABLED_BG
            elif idx in picked_by:
                fill = _tint(_rgb(snap.players[picked_by[idx]].color), 0.55)
            else:
                fill = (9, 20, 106)
            pygame.draw.rect(surface, fill, cell)
            pygame.draw.rect(surface, (62, 84, 152), cell, 2)

            k0 = self._small_font.render(DEFAULT_KEYMAP.label(0, idx), True, _rgb(snap.players[0].color))
            k1 = self._small_font.render(DEFAULT_KEYMAP.label(1, idx), True, _rgb(snap.players[1].color))
            surface.blit(k0, (cell.x + 8, cell.centery - k0.get_height() // 2))
            surface.blit(k1, (cell.right - 8 - k1.get_width(), cell.centery - k1.get_height() // 2))
            color = TEXT_MUTED if disabled else TEXT_MAIN
            text = self._choice_font.render(_fit_label(self._choice_font, choice, cell.w - 80), True, color)
            surface.blit(text, text.get_rect(center=cell.center))

        for i, player in enumerate(snap.players):
            if player.selection_correct is None:
                continue
            mark = "Correct!" if player.selection_correct else "Wrong!"
            label = self._small_font.render(f"{player.name}: {mark}", True, _rgb(player.color))
            x = frame.x + 20 if i == 0 else frame.right - 20 - label.get_width()
            surface.blit(label, (x, frame.bottom - 36))

        if snap.message:
            msg = self._choice_font.render(snap.message, True, FAIL_TEXT)
            surface.blit(msg, msg.get_rect(midbottom=(frame.centerx, frame.bottom - 8)))

    def _render_results(self, surface: pygame.Surface, snap: DuelSnapshot) -> None:
        frame = _draw_frame(surface, "Results", self._title_font)
        result = duel_result_from_engine(self._engine)

        banner = snap.message or ""
        if result.sudden_death:
            banner += "  (after sudden death)"
        text = self._prompt_font.render(banner, True, TEXT_MAIN)
        surface.blit(text, text.get_rect(midtop=(frame.centerx, frame.y + 60)))

        col_w = (frame.w - 60) // 2
        for i, pr in enumerate(result.players):
            box = pygame.Rect(frame.x + 20 + i * (col_w + 20), frame.y + 130, col_w, 200)
            pygame.draw.rect(surface, _tint(_rgb(pr.color), 0.35), box)
            pygame.draw.rect(surface, _rgb(pr.color), box, 3 if result.winner == i else 1)
            mean = "n/a" if pr.mean_rt_ms is None else f"{pr.mean_rt_ms:.0f} ms"
            lines = [
                pr.name,
                f"{pr.score} points",
                f"{pr.rating.label} {'*' * pr.rating.stars}",
                f"Correct: {pr.correct}   Wrong: {pr.incorrect}",
                f"Mean RT: {mean}",
            ]
            y = box.y + 14
            for line in lines:
                t = self._choice_font.render(_fit_label(self._choice_font, line, box.w - 20), True, TEXT_MAIN)
                surface.blit(t, (box.x + 12, y))
                y += 36

        hint = self._small_font.render("R/Enter: Rematch  |  Esc: Back to setup", True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def _configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _skill_label(skill: str, data_dir: Path) -> str:
    try:
        return load_question_feed(skill, data_dir=data_dir).title
    except QuestionFeedUnavailable:
        return skill_title(skill)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    data_dir: Path | None = None,
) -> int:
    _configure_logging()
    pygame.init()

    pygame.display.set_caption("Speed Duel")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()
    data_dir = data_dir or default_data_dir()

    def begin_duel(skill: str, difficulty: str, names: tuple[str, str], colors: tuple[str, str]) -> None:
        setup = DuelSetup(player_names=names, player_colors=colors, skill=skill, difficulty=difficulty)

        def factory() -> RoundEngine:
            # New seed per call so a rematch re-draws the round.
            return start_duel(setup, clock=real_clock, seed=_new_seed(), data_dir=data_dir)

        try:
            screen = DuelScreen(app, engine_factory=factory)
        except (QuestionFeedUnavailable, InsufficientQuestionsError) as exc:
            logger.warning("could not start duel on %s: %s", skill, exc)
            app.push(MessageScreen(app, "Failed to load questions for this skill.", [str(exc)]))
            return
        app.push(screen)

    def open_setup(skill: str, difficulty: str) -> None:
        app.push(
            PlayerSetupScreen(
                app,
                on_start=lambda names, colors: begin_duel(skill, difficulty, names, colors),
            )
        )

    def open_difficulty(skill: str) -> None:
        items = [
            MenuItem(name.capitalize(), lambda name=name: open_setup(skill, name))
            for name in DIFFICULTY_PROFILES
        ]
        items.append(MenuItem("Back", app.pop))
        app.push(MenuScreen(app, skill_title(skill).title(), items))

    def open_group(group: str, skills: list[str]) -> None:
        items = [MenuItem(_skill_label(s, data_dir), lambda s=s: open_difficulty(s)) for s in skills]
        items.append(MenuItem("Back", app.pop))
        app.push(MenuScreen(app, group, items))

    try:
        catalog = load_skill_catalog(data_dir=data_dir)
    except QuestionFeedUnavailable as exc:
        catalog = {}
        logger.warning("%s", exc)

    main_items = [MenuItem(group, lambda g=group, s=skills: open_group(g, s)) for group, skills in catalog.items()]
    main_items.append(MenuItem("Quit", app.quit))
    app.push(MenuScreen(app, "Speed Duel", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)
            for event in pygame.event.get():
                app.handle_event(event)
            app.render()
            pygame.display.flip()
            frame += 1
            if max_frames is not None and frame >= max_frames:
                break
            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()
    return 0
