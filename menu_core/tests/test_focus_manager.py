from __future__ import annotations

from menu_core import timeline
from menu_core.favorites import FavoritesState
from menu_core.focus_manager import FocusManager
from menu_core.ports import FAVORITES_KEY
from menu_core.tests.fakes import FakeApp, FakePopup, FakeScheduler, FakeSettings, FakeWindowSystem


def _build(favorites=("a", "b")):
    settings = FakeSettings({FAVORITES_KEY: list(favorites)})
    state = FavoritesState(settings, FakeWindowSystem([FakeApp("a"), FakeApp("b")]))
    state.connect()
    popup = FakePopup()
    popup.add_item("first")
    scheduler = FakeScheduler()
    focus = FocusManager(popup, state, scheduler, reset_guard_ms=lambda: 150)
    focus.attach()
    return focus, popup, scheduler, state


def test_open_grabs_focus_and_selects_first_favorite() -> None:
    focus, popup, _scheduler, state = _build()

    focus.toggle()

    assert popup.is_open()
    assert popup.focus_grabs == 1
    assert timeline.read(state.selection_cursor) == 0


def test_close_clears_selection() -> None:
    focus, popup, _scheduler, state = _build()
    focus.toggle()

    focus.toggle()

    assert not popup.is_open()
    assert timeline.read(state.selection_cursor) is None


def test_open_without_favorites_leaves_selection_empty() -> None:
    focus, _popup, _scheduler, state = _build(favorites=())

    focus.toggle()

    assert timeline.read(state.selection_cursor) is None


def test_reset_closes_then_reopens_with_first_item_focused() -> None:
    focus, popup, scheduler, state = _build()
    focus.toggle()
    state.move_selection(1)

    focus.reset_menu_state()

    assert [kind for kind, _ in popup.events if kind in ("open", "close")] == ["open", "close", "open"]
    assert popup.active == popup.order[0]
    assert timeline.read(state.selection_cursor) == 0
    assert popup.connection_count("open-state-changed") == 1
    assert focus.resetting
    assert [ms for _h, ms, _cb in scheduler.scheduled] == [150]


def test_reset_ignores_reentry_until_guard_elapses() -> None:
    focus, popup, scheduler, _state = _build()
    focus.toggle()
    focus.reset_menu_state()
    closes = sum(1 for kind, _ in popup.events if kind == "close")

    focus.reset_menu_state()
    assert sum(1 for kind, _ in popup.events if kind == "close") == closes

    scheduler.run_pending()
    focus.reset_menu_state()
    assert sum(1 for kind, _ in popup.events if kind == "close") == closes + 1


def test_reset_on_closed_popup_only_resets_selection() -> None:
    focus, popup, _scheduler, state = _build()

    focus.reset_menu_state()

    assert not popup.is_open()
    assert not focus.resetting
    assert timeline.read(state.selection_cursor) == 0


def test_detach_cancels_guard_and_disconnects() -> None:
    focus, popup, scheduler, _state = _build()
    focus.toggle()
    focus.reset_menu_state()

    focus.detach()

    assert scheduler.cancelled == ["h1"]
    assert popup.connection_count("open-state-changed") == 0
    assert not focus.resetting
