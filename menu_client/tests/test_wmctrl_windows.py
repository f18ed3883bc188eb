from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Sequence

import pytest

from menu_core.errors import StaleReferenceError
from menu_client.desktop_apps import DesktopAppIndex
from menu_client.wmctrl_windows import WmctrlWindowSystem, parse_wmctrl_listing

EDITOR_ROW = "0x03a00003  0 100  200  800  600  gedit.Gedit  host Notes.txt - gedit"
TERMINAL_ROW = "0x04c00007  0 40   80   640  480  xterm.XTerm  host bash"
PANEL_ROW = "0x05000001 -1 0    0    1920 32   panel.Panel  host Panel"


class FakeRunner:
    def __init__(self, listing: str = "") -> None:
        self.listing = listing
        self.skip_taskbar: set[int] = set()
        self.failing_commands: set[str] = set()
        self.missing: set[str] = set()
        self.calls: List[List[str]] = []

    def __call__(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        args = list(args)
        self.calls.append(args)
        if args[0] in self.missing:
            raise FileNotFoundError(args[0])
        if args[0] == "xprop":
            win_id = int(args[2], 16)
            state = "_NET_WM_STATE(ATOM) = _NET_WM_STATE_SKIP_TASKBAR" if win_id in self.skip_taskbar else "_NET_WM_STATE(ATOM) ="
            return subprocess.CompletedProcess(args, 0, state, "")
        if args[:2] == ["wmctrl", "-lGx"]:
            return subprocess.CompletedProcess(args, 0, self.listing, "")
        returncode = 1 if args[1] in self.failing_commands else 0
        return subprocess.CompletedProcess(args, returncode, "", "")

    def calls_for(self, binary: str) -> List[List[str]]:
        return [call for call in self.calls if call[0] == binary]


def _system(tmp_path: Path, runner: FakeRunner) -> WmctrlWindowSystem:
    return WmctrlWindowSystem(DesktopAppIndex([tmp_path]), runner=runner)


def test_parse_listing_reads_id_position_class_and_title() -> None:
    rows = parse_wmctrl_listing("\n".join([EDITOR_ROW, TERMINAL_ROW, PANEL_ROW]))

    assert rows == [
        (0x03A00003, 200, "gedit.Gedit", "Notes.txt - gedit"),
        (0x04C00007, 80, "xterm.XTerm", "bash"),
        (0x05000001, 0, "panel.Panel", "Panel"),
    ]


def test_parse_listing_tolerates_empty_titles_and_garbage() -> None:
    output = "0x01000001  0 0 10 10 10  app.App  host\nnot a window line\n0xZZ 0 0 0 0 0 a.A host t"

    assert parse_wmctrl_listing(output) == [(0x01000001, 10, "app.App", "")]


def test_first_poll_publishes_window_set_once(tmp_path: Path) -> None:
    runner = FakeRunner("\n".join([EDITOR_ROW, TERMINAL_ROW]))
    system = _system(tmp_path, runner)
    notified: List[str] = []
    system.on_window_set_changed(lambda: notified.append("set"))

    assert system.poll() is True
    assert notified == ["set"]
    assert sorted(window.stable_id for window in system.list_windows()) == [0x03A00003, 0x04C00007]

    assert system.poll() is False
    assert notified == ["set"]


def test_title_and_position_changes_fire_attribute_callbacks(tmp_path: Path) -> None:
    runner = FakeRunner(EDITOR_ROW)
    system = _system(tmp_path, runner)
    system.poll()
    window = system.list_windows()[0]
    attributes: List[str] = []
    system.on_window_attribute_changed(window, attributes.append)
    set_events: List[str] = []
    system.on_window_set_changed(lambda: set_events.append("set"))

    runner.listing = "0x03a00003  0 100  260  800  600  gedit.Gedit  host Draft.txt - gedit"
    system.poll()

    assert attributes == ["title", "position"]
    assert set_events == []
    assert window.title == "Draft.txt - gedit"
    assert window.frame_top == 260


def test_vanished_window_goes_stale_and_drops_its_handles(tmp_path: Path) -> None:
    runner = FakeRunner("\n".join([EDITOR_ROW, TERMINAL_ROW]))
    system = _system(tmp_path, runner)
    system.poll()
    editor = next(window for window in system.list_windows() if window.stable_id == 0x03A00003)
    handle = system.on_window_attribute_changed(editor, lambda _attr: None)

    runner.listing = TERMINAL_ROW
    assert system.poll() is True

    assert editor.gone is True
    with pytest.raises(StaleReferenceError):
        _ = editor.title
    with pytest.raises(StaleReferenceError):
        system.disconnect(handle)
    with pytest.raises(StaleReferenceError):
        system.on_window_attribute_changed(editor, lambda _attr: None)


def test_skip_taskbar_is_checked_once_per_window(tmp_path: Path) -> None:
    runner = FakeRunner("\n".join([EDITOR_ROW, PANEL_ROW]))
    runner.skip_taskbar.add(0x05000001)
    system = _system(tmp_path, runner)

    system.poll()
    system.poll()

    flags = {window.stable_id: window.skip_taskbar for window in system.list_windows()}
    assert flags == {0x03A00003: False, 0x05000001: True}
    assert len(runner.calls_for("xprop")) == 2


def test_missing_wmctrl_is_reported_once(tmp_path: Path, caplog) -> None:
    runner = FakeRunner(EDITOR_ROW)
    runner.missing.add("wmctrl")
    system = _system(tmp_path, runner)
    caplog.set_level(logging.WARNING, logger="WindowMenu.Client.Windows")

    assert system.poll() is False
    assert system.poll() is False

    assert system.available is False
    assert system.list_windows() == []
    assert caplog.text.count("wmctrl binary not found") == 1
    assert len(runner.calls_for("wmctrl")) == 1


def test_missing_xprop_lists_every_window(tmp_path: Path) -> None:
    runner = FakeRunner("\n".join([EDITOR_ROW, PANEL_ROW]))
    runner.missing.add("xprop")
    system = _system(tmp_path, runner)

    system.poll()

    assert all(window.skip_taskbar is False for window in system.list_windows())
    assert len(runner.calls_for("xprop")) == 1


def test_window_commands_use_hex_ids(tmp_path: Path) -> None:
    runner = FakeRunner(EDITOR_ROW)
    system = _system(tmp_path, runner)
    system.poll()
    window = system.list_windows()[0]

    system.activate_window(window)
    system.close_window(window)

    assert ["wmctrl", "-ia", "0x03a00003"] in runner.calls
    assert ["wmctrl", "-ic", "0x03a00003"] in runner.calls


def test_failed_window_command_raises_stale_reference(tmp_path: Path) -> None:
    runner = FakeRunner(EDITOR_ROW)
    runner.failing_commands.add("-ia")
    system = _system(tmp_path, runner)
    system.poll()

    with pytest.raises(StaleReferenceError):
        system.activate_window(system.list_windows()[0])


def test_owner_app_comes_from_wm_class(tmp_path: Path) -> None:
    runner = FakeRunner(TERMINAL_ROW)
    system = _system(tmp_path, runner)
    system.poll()

    app = system.window_owner_app(system.list_windows()[0])

    assert app is not None
    assert app.app_id == "wmclass:XTerm"
    assert system.lookup_app("wmclass:XTerm") is app


def test_disconnect_rejects_unknown_handles(tmp_path: Path) -> None:
    system = _system(tmp_path, FakeRunner())
    handle = system.on_window_set_changed(lambda: None)

    system.disconnect(handle)

    with pytest.raises(StaleReferenceError):
        system.disconnect(handle)
