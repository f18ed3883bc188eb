from .composition import MenuSnapshot, compose_menu, sort_window_groups
from .config import MenuOptions, load_menu_options
from .favorites import FavoriteEntry, FavoritesState
from .key_bindings import BindingConfig, KeyBindings
from .keyboard import FocusRegion, KeyboardRouter
from .lifecycle import MenuLifecycle, ResourceTracker
from .renderer import MenuRenderer, RenderedItemSet
from .window_model import WindowGroup, WindowModel

__all__ = [
    "BindingConfig",
    "FavoriteEntry",
    "FavoritesState",
    "FocusRegion",
    "KeyBindings",
    "KeyboardRouter",
    "MenuLifecycle",
    "MenuOptions",
    "MenuRenderer",
    "MenuSnapshot",
    "RenderedItemSet",
    "ResourceTracker",
    "WindowGroup",
    "WindowModel",
    "compose_menu",
    "load_menu_options",
    "sort_window_groups",
]
