from __future__ import annotations

import logging

import pytest

from menu_core import timeline
from menu_core.tests.fakes import FakeScheduler, FakeWindowSystem, TimeStub
from menu_core.window_model import WindowModel


def _build(port: FakeWindowSystem, clock: TimeStub | None = None):
    scheduler = FakeScheduler()
    clock = clock or TimeStub(100.0)
    model = WindowModel(port, scheduler=scheduler, time_source=clock.now)
    return model, scheduler, clock


@pytest.fixture
def port() -> FakeWindowSystem:
    system = FakeWindowSystem()
    for app_id in ("editor", "browser", "terminal"):
        system.add_app(app_id)
    return system


def _group_ids(model: WindowModel) -> list[str]:
    return [group.app_id for group in model.enumerate()]


def test_groups_by_app_in_first_encounter_order(port: FakeWindowSystem) -> None:
    port.add_window(1, "browser")
    port.add_window(2, "editor")
    port.add_window(3, "browser")
    model, _scheduler, _clock = _build(port)

    model.start()

    assert _group_ids(model) == ["browser", "editor"]
    browser = model.enumerate()[0]
    assert [entry.window.stable_id for entry in browser.windows] == [1, 3]


def test_skips_taskbar_hidden_and_unowned_windows(port: FakeWindowSystem) -> None:
    port.add_window(1, "editor", skip_taskbar=True)
    port.add_window(2, None)
    port.add_window(3, "unknown-app")
    port.add_window(4, "terminal")
    model, _scheduler, _clock = _build(port)

    model.start()

    assert _group_ids(model) == ["terminal"]
    assert model.tracked_window_ids == [4]
    assert model.subscription_count == 1


def test_subscriptions_match_tracked_windows_after_every_rebuild(port: FakeWindowSystem) -> None:
    first = port.add_window(1, "editor")
    port.add_window(2, "browser")
    model, _scheduler, _clock = _build(port)
    model.start()
    assert port.live_attribute_subscriptions == 2

    port.add_window(3, "terminal", notify=True)
    assert port.live_attribute_subscriptions == model.subscription_count == 3

    port.destroy_window(first)
    assert port.live_attribute_subscriptions == model.subscription_count == 2
    assert port.subscriptions_for(first) == 0

    port.set_title(port.windows[0], "renamed")
    assert port.live_attribute_subscriptions == model.subscription_count == 2


def test_first_seen_is_kept_for_known_windows_and_purged_for_gone_ones(port: FakeWindowSystem) -> None:
    clock = TimeStub(10.0)
    first = port.add_window(1, "editor")
    model, _scheduler, _clock = _build(port, clock)
    model.start()

    clock.value = 20.0
    port.add_window(2, "editor", notify=True)
    editor = model.enumerate()[0]
    assert [entry.first_seen for entry in editor.windows] == [10.0, 20.0]
    assert editor.earliest_seen == 10.0

    port.destroy_window(first)
    clock.value = 30.0
    port.windows.append(first)
    first.destroyed = False
    port.emit_set_changed()

    editor = model.enumerate()[0]
    assert sorted(entry.first_seen for entry in editor.windows) == [20.0, 30.0]


def test_window_vanishing_mid_rebuild_is_ignored(port: FakeWindowSystem) -> None:
    port.add_window(1, "editor")
    ghost = port.add_window(2, "browser")
    model, _scheduler, _clock = _build(port)
    ghost.destroyed = True

    model.start()

    assert _group_ids(model) == ["editor"]


def test_title_change_rebuilds_immediately(port: FakeWindowSystem) -> None:
    window = port.add_window(1, "editor", title="a")
    model, scheduler, _clock = _build(port)
    model.start()
    before = model.rebuild_count

    port.set_title(window, "b")
    port.set_title(window, "c")

    assert model.rebuild_count == before + 2
    assert scheduler.scheduled == []


def test_position_changes_are_coalesced_without_trailing_replay(port: FakeWindowSystem) -> None:
    window = port.add_window(1, "editor")
    model, scheduler, _clock = _build(port)
    model.start()
    before = model.rebuild_count

    for top in (10, 20, 30, 40):
        port.move(window, top)

    assert model.rebuild_count == before + 1
    assert [ms for _h, ms, _cb in scheduler.scheduled] == [500]

    scheduler.run_pending()
    assert model.rebuild_count == before + 1

    port.move(window, 50)
    assert model.rebuild_count == before + 2


def test_destroy_cancels_pending_throttle_and_drains_table(port: FakeWindowSystem) -> None:
    window = port.add_window(1, "editor")
    model, scheduler, _clock = _build(port)
    model.start()
    port.move(window, 5)
    pending = scheduler.pending()

    model.destroy()

    assert scheduler.cancelled == pending
    assert port.live_attribute_subscriptions == 0
    assert port.set_handles == {}
    assert model.subscription_count == 0

    scheduler.run(pending[0])
    before = model.rebuild_count
    port.emit_set_changed()
    assert model.rebuild_count == before


def test_destroy_logs_failed_throttle_cancel_and_still_drains(port: FakeWindowSystem, caplog) -> None:
    window = port.add_window(1, "editor")
    model, scheduler, _clock = _build(port)
    model.start()
    port.move(window, 5)

    def _expired(handle: str) -> None:
        raise ValueError(f"timer {handle} already fired")

    scheduler.after_cancel = _expired
    with caplog.at_level(logging.DEBUG, logger="WindowMenu.Core.WindowModel"):
        model.destroy()

    assert "Ignoring throttle cancel failure: timer h1 already fired" in caplog.text
    assert model.destroyed
    assert port.live_attribute_subscriptions == 0
    assert port.set_handles == {}


def test_destroy_tolerates_handles_of_destroyed_windows(port: FakeWindowSystem) -> None:
    window = port.add_window(1, "editor")
    model, _scheduler, _clock = _build(port)
    model.start()
    port.destroy_window(window, notify=False)

    model.destroy()

    assert model.destroyed
    assert model.subscription_count == 0


def test_publishes_new_groups_to_cell(port: FakeWindowSystem) -> None:
    port.add_window(1, "editor")
    model, _scheduler, _clock = _build(port)
    seen: list[int] = []
    reaction = timeline.observe(model.window_groups, lambda groups: seen.append(len(groups)))

    model.start()
    port.add_window(2, "browser", notify=True)

    assert seen == [1, 2]
    timeline.dispose(reaction)


def test_sorted_windows_orders_by_frame_top(port: FakeWindowSystem) -> None:
    port.add_window(1, "editor", frame_top=300)
    port.add_window(2, "editor", frame_top=100)
    port.add_window(3, "editor", frame_top=200)
    model, _scheduler, _clock = _build(port)
    model.start()

    windows = model.enumerate()[0].sorted_windows()

    assert [window.stable_id for window in windows] == [2, 3, 1]
