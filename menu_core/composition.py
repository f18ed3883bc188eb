"""Merge window groups, favorites and options into one menu snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from snarfx import Computed

from menu_core import timeline
from menu_core.config import MenuOptions
from menu_core.favorites import FavoriteEntry, resolve_favorites
from menu_core.ports import AppRef, WindowSystemPort
from menu_core.timeline import Cell
from menu_core.window_model import WindowGroup


@dataclass(frozen=True)
class MenuSnapshot:
    favorites: Tuple[FavoriteEntry, ...]
    groups: Tuple[WindowGroup, ...]
    favorite_ids: Tuple[str, ...]
    options: MenuOptions

    @property
    def has_favorites_bar(self) -> bool:
        return bool(self.favorites)

    @property
    def has_window_list(self) -> bool:
        return bool(self.groups)


def sort_window_groups(groups: Sequence[WindowGroup], favorite_ids: Sequence[str]) -> Tuple[WindowGroup, ...]:
    """Favorited groups first in favorites order, then the rest in their original order."""
    favorite_rank: Dict[str, int] = {}
    for rank, app_id in enumerate(favorite_ids):
        favorite_rank.setdefault(app_id, rank)

    def sort_key(indexed: Tuple[int, WindowGroup]):
        original_index, group = indexed
        rank = favorite_rank.get(group.app_id)
        if rank is None:
            return (1, 0, original_index, group.earliest_seen)
        return (0, rank, group.earliest_seen, original_index)

    return tuple(group for _, group in sorted(enumerate(groups), key=sort_key))


def running_app_refs(groups: Sequence[WindowGroup], favorite_ids: Sequence[str]) -> Tuple[AppRef, ...]:
    return tuple(group.app for group in sort_window_groups(groups, favorite_ids))


def compose_menu(
    port: WindowSystemPort,
    window_groups: Cell,
    favorite_ids: Cell,
    options: Cell,
) -> Computed:
    """Derive the menu snapshot from the three independent sources."""

    def build(groups, ids, current_options) -> MenuSnapshot:
        ids = tuple(ids)
        return MenuSnapshot(
            favorites=resolve_favorites(port, ids),
            groups=sort_window_groups(groups, ids),
            favorite_ids=ids,
            options=current_options,
        )

    return timeline.merge_latest(build, window_groups, favorite_ids, options)


def running_apps(window_groups: Cell, favorite_ids: Cell, visible: Optional[Cell] = None) -> Computed:
    """App refs of the open groups, favorites first; empty while ``visible`` is off."""
    if visible is None:
        return timeline.merge_latest(running_app_refs, window_groups, favorite_ids)

    def build(groups, ids, shown) -> Tuple[AppRef, ...]:
        return running_app_refs(groups, ids) if shown else ()

    return timeline.merge_latest(build, window_groups, favorite_ids, visible)
