from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from snarfx import Observable

from menu_core import timeline
from menu_core.actions import MenuActions
from menu_core.composition import compose_menu, running_apps
from menu_core.config import OPTION_SETTING_KEYS, MenuOptions, options_from_settings
from menu_core.errors import LookupMissError, SubscriptionTeardownError
from menu_core.favorites import FavoritesState
from menu_core.focus_manager import FocusManager
from menu_core.key_bindings import KeyBindings
from menu_core.keyboard import KeyboardRouter
from menu_core.ports import PopupSurface, Scheduler, SettingsStore, WindowSystemPort
from menu_core.renderer import MenuRenderer
from menu_core.window_model import WindowModel

_LOGGER = logging.getLogger("WindowMenu.Core.Lifecycle")


class ResourceTracker:
    """Tracks live handles so teardown can report anything left behind."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger
        self._handles: Dict[int, Any] = {}

    @property
    def handles(self) -> List[Any]:
        return list(self._handles.values())

    def track_handle(self, handle: Any) -> Any:
        if handle is not None:
            self._handles[id(handle)] = handle
        return handle

    def untrack_handle(self, handle: Any) -> None:
        if handle is None:
            return
        self._handles.pop(id(handle), None)

    def log_state(self, label: str) -> None:
        handles = list(self._handles.values())
        if handles:
            self._logger.debug("Tracked resources %s: handles=%s", label, handles)


class MenuSession:
    """Everything built by one enable; torn down as a unit by ``teardown``."""

    def __init__(
        self,
        *,
        port: WindowSystemPort,
        settings: SettingsStore,
        surface: PopupSurface,
        scheduler: Scheduler,
        options: MenuOptions,
        bindings: KeyBindings,
        window_groups: Observable,
        selection_cursor: Observable,
        launch_requested: Observable,
        favorite_ids: Observable,
        show_running_apps: Observable,
        time_source: Callable[[], float],
        logger: logging.Logger,
    ) -> None:
        self._port = port
        self._settings = settings
        self._base_options = options
        self._logger = logger
        self._tracker = ResourceTracker(logger)
        self._settings_handles: List[Any] = []
        self._show_running_apps = show_running_apps
        self._torn_down = False

        self.options = timeline.create(options_from_settings(settings, options))
        timeline.write(show_running_apps, timeline.read(self.options).show_running_apps)
        self.favorites = FavoritesState(
            settings,
            port,
            favorite_ids=favorite_ids,
            selection_cursor=selection_cursor,
            launch_requested=launch_requested,
            logger=logger.getChild("Favorites"),
        )
        self.window_model = WindowModel(
            port,
            scheduler=scheduler,
            groups=window_groups,
            coalesce_ms=options.coalesce_ms,
            time_source=time_source,
            logger=logger.getChild("WindowModel"),
        )
        self.focus = FocusManager(
            surface,
            self.favorites,
            scheduler,
            reset_guard_ms=lambda: timeline.read(self.options).reset_guard_ms,
            logger=logger.getChild("Focus"),
        )
        self.actions = MenuActions(
            port,
            self.favorites,
            self.focus,
            options=self.options,
            window_groups=window_groups,
            logger=logger.getChild("Actions"),
        )
        self.renderer = MenuRenderer(
            surface,
            self.actions,
            selection_cursor=selection_cursor,
            logger=logger.getChild("Renderer"),
        )
        self.keyboard = KeyboardRouter(
            surface,
            self.renderer,
            self.favorites,
            self.actions,
            bindings=bindings,
            logger=logger.getChild("Keyboard"),
        )
        self.snapshot = compose_menu(port, window_groups, favorite_ids, self.options)
        self._render_subscription: Optional[timeline.Subscription] = None
        self._selection_reaction: Any = None
        self._launch_reaction: Any = None

    def start(self) -> None:
        for key in OPTION_SETTING_KEYS:
            handle = self._settings.on_change(key, self._reload_options)
            self._settings_handles.append(self._tracker.track_handle(handle))
        self.favorites.connect()
        self.window_model.start()
        self._render_subscription = self._tracker.track_handle(
            timeline.subscribe_with_resource(self.snapshot, self.renderer.render_scoped)
        )
        self._selection_reaction = self._tracker.track_handle(
            timeline.observe(self.favorites.selection_cursor, self.renderer.apply_selection)
        )
        self._launch_reaction = self._tracker.track_handle(
            timeline.observe(self.favorites.launch_requested, self._on_launch_requested)
        )
        self.focus.attach()
        self.keyboard.attach()
        self._logger.info(
            "Menu session started: groups=%d favorites=%d",
            len(self.window_model.enumerate()),
            len(timeline.read(self.favorites.favorite_ids)),
        )

    def teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        self.keyboard.detach()
        self.focus.detach()
        for name in ("_render_subscription", "_selection_reaction", "_launch_reaction"):
            target = getattr(self, name)
            setattr(self, name, None)
            timeline.dispose(target)
            self._tracker.untrack_handle(target)
        timeline.dispose(self.snapshot)
        self.renderer.dispose()
        self.window_model.destroy()
        self.favorites.disconnect()
        for handle in self._settings_handles:
            try:
                self._settings.disconnect(handle)
            except SubscriptionTeardownError as exc:
                self._logger.debug("Ignoring settings disconnect failure: %s", exc)
            self._tracker.untrack_handle(handle)
        self._settings_handles.clear()
        self._tracker.log_state("after teardown")
        self._logger.info("Menu session torn down")

    def _reload_options(self) -> None:
        options = options_from_settings(self._settings, self._base_options)
        timeline.write(self.options, options)
        timeline.write(self._show_running_apps, options.show_running_apps)

    def _on_launch_requested(self, request: Any) -> None:
        if request is None:
            return
        self._logger.info("Launching %s", request.app_id)
        try:
            self._port.launch_app(request.app_id)
        except LookupMissError as exc:
            self._logger.debug("Nothing to launch for %s: %s", request.app_id, exc)
        except Exception as exc:
            self._logger.warning("Launch of %s failed: %s", request.app_id, exc)


class MenuLifecycle:
    """Enables and disables the menu; each enable starts from a clean slate.

    The host-facing streams (``window_groups``, ``selection_cursor``,
    ``launch_requested``, ``running_apps``, ``show_running_apps``) survive
    enable/disable cycles.
    """

    def __init__(
        self,
        port: WindowSystemPort,
        settings: SettingsStore,
        surface: PopupSurface,
        scheduler: Scheduler,
        *,
        options: Optional[MenuOptions] = None,
        bindings: Optional[KeyBindings] = None,
        time_source: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._port = port
        self._settings = settings
        self._surface = surface
        self._scheduler = scheduler
        self._options = options or MenuOptions()
        self._bindings = bindings or KeyBindings()
        self._time = time_source
        self._logger = logger or _LOGGER

        self.window_groups = timeline.create(())
        self.selection_cursor = timeline.create(None)
        self.launch_requested = timeline.create(None)
        self.favorite_ids = timeline.create(())
        self.show_running_apps = timeline.create(options_from_settings(settings, self._options).show_running_apps)
        self.running_apps = running_apps(self.window_groups, self.favorite_ids, self.show_running_apps)

        self.session_count = 0
        self._enabled = timeline.create(False)
        self._distinct_enabled = timeline.drop_repeats(self._enabled)
        self._sessions: Optional[timeline.Subscription] = timeline.subscribe_with_resource(
            self._distinct_enabled, self._build_session
        )

    @property
    def enabled(self) -> bool:
        return bool(timeline.read(self._enabled))

    @property
    def session(self) -> Optional[MenuSession]:
        if self._sessions is None:
            return None
        return self._sessions.result

    def enable(self) -> None:
        self._require_alive()
        timeline.write(self._enabled, True)

    def disable(self) -> None:
        self._require_alive()
        timeline.write(self._enabled, False)

    def toggle_popup(self) -> None:
        session = self.session
        if session is not None:
            session.focus.toggle()

    def activate_favorite(self, index: int) -> None:
        session = self.session
        if session is not None:
            session.actions.activate_favorite(index)

    def destroy(self) -> None:
        sessions, self._sessions = self._sessions, None
        if sessions is None:
            return
        sessions.dispose()
        timeline.dispose(self._distinct_enabled)
        timeline.dispose(self.running_apps)
        self._logger.info("Menu lifecycle destroyed")

    def _require_alive(self) -> None:
        if self._sessions is None:
            raise RuntimeError("MenuLifecycle has been destroyed")

    def _build_session(self, enabled: bool) -> Tuple[Optional[MenuSession], Optional[Callable[[], None]]]:
        if not enabled:
            return None, None
        self.session_count += 1
        self._logger.info("Enabling window menu (session %d)", self.session_count)
        session = MenuSession(
            port=self._port,
            settings=self._settings,
            surface=self._surface,
            scheduler=self._scheduler,
            options=self._options,
            bindings=self._bindings,
            window_groups=self.window_groups,
            selection_cursor=self.selection_cursor,
            launch_requested=self.launch_requested,
            favorite_ids=self.favorite_ids,
            show_running_apps=self.show_running_apps,
            time_source=self._time,
            logger=self._logger,
        )
        session.start()

        def release() -> None:
            self._logger.info("Disabling window menu (session %d)", self.session_count)
            session.teardown()
            timeline.write(self.window_groups, ())
            timeline.write(self.selection_cursor, None)

        return session, release
