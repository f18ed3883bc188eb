from __future__ import annotations

from types import SimpleNamespace

from menu_core import timeline
from menu_core.actions import MenuActions
from menu_core.composition import compose_menu
from menu_core.config import MenuOptions
from menu_core.favorites import FavoritesState
from menu_core.focus_manager import FocusManager
from menu_core.key_bindings import BindingConfig, KeyBindings
from menu_core.keyboard import FocusRegion, KeyboardRouter, region_for
from menu_core.menu_items import FavoriteItem, GroupHeaderItem, PlaceholderItem, SeparatorItem, WindowRowItem
from menu_core.ports import FAVORITES_KEY
from menu_core.renderer import MenuRenderer
from menu_core.tests.fakes import FakePopup, FakeScheduler, FakeSettings, FakeWindowSystem
from menu_core.window_model import WindowModel


def _build_router(favorites=("editor", "files"), windows=(("editor", 1), ("editor", 2), ("browser", 3)), options=None, bindings=None):
    port = FakeWindowSystem()
    for app_id in ("editor", "files", "browser"):
        port.add_app(app_id)
    window_objs = [port.add_window(stable_id, app_id, frame_top=stable_id * 10) for app_id, stable_id in windows]
    groups_cell = timeline.create(())
    settings = FakeSettings({FAVORITES_KEY: list(favorites)})
    popup = FakePopup()
    scheduler = FakeScheduler()
    options_cell = timeline.create(options or MenuOptions())

    state = FavoritesState(settings, port)
    state.connect()
    focus = FocusManager(popup, state, scheduler)
    focus.attach()
    actions = MenuActions(port, state, focus, options=options_cell, window_groups=groups_cell)
    renderer = MenuRenderer(popup, actions, selection_cursor=state.selection_cursor)
    router = KeyboardRouter(popup, renderer, state, actions, bindings=bindings)
    router.attach()

    model = WindowModel(port, scheduler=scheduler, groups=groups_cell)
    model.start()
    subscription = timeline.subscribe_with_resource(
        compose_menu(port, groups_cell, state.favorite_ids, options_cell), renderer.render_scoped
    )
    selection = timeline.observe(state.selection_cursor, renderer.apply_selection)
    popup.open()
    return SimpleNamespace(
        port=port,
        popup=popup,
        scheduler=scheduler,
        state=state,
        focus=focus,
        renderer=renderer,
        router=router,
        model=model,
        windows=window_objs,
        subscription=subscription,
        selection=selection,
    )


def _focus(h, predicate) -> None:
    h.popup.focus(h.popup.handle_of(predicate))


def test_region_follows_item_capability() -> None:
    assert region_for(None) is None
    assert region_for(SeparatorItem()) is None
    assert region_for(PlaceholderItem(text="x")) is None
    h = _build_router()
    items = h.popup.rendered_items()
    assert region_for(next(i for i in items if isinstance(i, FavoriteItem))) is FocusRegion.FAVORITES_BAR
    assert region_for(next(i for i in items if isinstance(i, GroupHeaderItem))) is FocusRegion.WINDOW_LIST
    assert region_for(next(i for i in items if isinstance(i, WindowRowItem))) is FocusRegion.WINDOW_LIST


def test_left_right_wrap_cursor_in_favorites_bar() -> None:
    h = _build_router()
    h.popup.focus_first_item()
    assert timeline.read(h.state.selection_cursor) == 0

    assert h.popup.press("Left") is True
    assert timeline.read(h.state.selection_cursor) == 1
    assert h.popup.press("Right") is True
    assert timeline.read(h.state.selection_cursor) == 0
    highlighted = [h.popup.items[handle] for handle in h.popup.highlighted]
    assert [item.app.app_id for item in highlighted] == ["editor"]


def test_left_right_propagate_in_window_list() -> None:
    h = _build_router()
    _focus(h, lambda item: isinstance(item, WindowRowItem))

    assert h.popup.press("Left") is False
    assert h.popup.press("Right") is False


def test_enter_in_favorites_bar_launches_and_resets_menu() -> None:
    h = _build_router()
    h.popup.focus_first_item()
    h.popup.press("Right")
    launches = []
    reaction = timeline.observe(h.state.launch_requested, launches.append)

    assert h.popup.press("Return") is True

    assert [request.app_id for request in launches] == ["files"]
    assert h.popup.is_open()
    assert timeline.read(h.state.selection_cursor) == 0
    assert h.focus.resetting
    assert [ms for _handle, ms, _cb in h.scheduler.scheduled] == [150]
    h.scheduler.run_pending()
    assert not h.focus.resetting
    timeline.dispose(reaction)


def test_enter_in_favorites_bar_closes_when_configured() -> None:
    h = _build_router(options=MenuOptions(close_on_favorite_launch=True))
    h.popup.focus_first_item()

    h.popup.press("KP_Enter")

    assert not h.popup.is_open()
    assert timeline.read(h.state.selection_cursor) is None


def test_space_is_not_handled_in_favorites_bar() -> None:
    h = _build_router()
    h.popup.focus_first_item()

    assert h.popup.press("space") is False


def test_enter_and_space_activate_window_rows_and_groups() -> None:
    h = _build_router()
    _focus(h, lambda item: isinstance(item, WindowRowItem) and item.window.stable_id == 2)
    assert h.popup.press("space") is True
    _focus(h, lambda item: isinstance(item, GroupHeaderItem) and item.app.app_id == "browser")
    assert h.popup.press("Return") is True

    assert [w.stable_id for w in h.port.activated] == [2, 3]
    assert h.popup.is_open()


def test_backspace_closes_window_and_reopens_menu() -> None:
    h = _build_router()
    _focus(h, lambda item: isinstance(item, WindowRowItem) and item.window.stable_id == 3)
    events_before = len(h.popup.events)

    assert h.popup.press("BackSpace") is True

    assert [w.stable_id for w in h.port.closed] == [3]
    assert [kind for kind, _ in h.popup.events[events_before:] if kind in ("open", "close")] == ["close", "open"]
    assert h.popup.active == h.popup.order[0]


def test_backspace_on_group_closes_every_window() -> None:
    h = _build_router()
    _focus(h, lambda item: isinstance(item, GroupHeaderItem) and item.app.app_id == "editor")

    h.popup.press("BackSpace")

    assert sorted(w.stable_id for w in h.port.closed) == [1, 2]


def test_close_on_destroyed_window_is_a_no_op() -> None:
    h = _build_router()
    _focus(h, lambda item: isinstance(item, WindowRowItem) and item.window.stable_id == 3)
    h.windows[2].destroyed = True

    assert h.popup.press("BackSpace") is True
    assert h.port.closed == []


def test_unbound_keys_and_empty_focus_propagate() -> None:
    h = _build_router()
    assert h.popup.press("Left") is False
    h.popup.focus_first_item()
    assert h.popup.press("Escape") is False


def test_custom_bindings_remap_actions() -> None:
    config = BindingConfig.from_payload(
        {
            "active_scheme": "vi",
            "schemes": {"vi": {"bindings": {"move_left": ["h"], "move_right": ["l"], "close": ["d"]}}},
        },
        None,
    )
    h = _build_router(bindings=KeyBindings(config))
    h.popup.focus_first_item()

    assert h.popup.press("l") is True
    assert timeline.read(h.state.selection_cursor) == 1
    assert h.popup.press("Right") is False


def test_detach_stops_routing() -> None:
    h = _build_router()
    h.router.detach()
    h.router.detach()
    h.popup.focus_first_item()

    assert h.popup.press("Left") is False
    assert not h.router.attached
