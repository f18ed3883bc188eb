"""Reactive cell helpers layered over snarfx observables.

Everything in the menu engine that changes over time is a cell: writable
sources are ``snarfx.Observable`` instances, derived values are
``snarfx.Computed`` instances. Propagation is synchronous; a write notifies
every dependent before it returns.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar, Union

from snarfx import Computed, Observable, reaction

T = TypeVar("T")
R = TypeVar("R")

Cell = Union[Observable, Computed]
DisposeFn = Callable[[], None]

_LOGGER = logging.getLogger("WindowMenu.Core.Timeline")
_SERIALS = itertools.count(1)


def _noop() -> None:
    return None


def create(initial: T) -> Observable:
    return Observable(initial)


def read(cell: Cell) -> Any:
    return cell.get()


def write(cell: Observable, value: Any) -> None:
    """Write a value; writing a value equal to the current one is a no-op."""
    cell.set(value)


def derive(cell: Cell, fn: Callable[[Any], R]) -> Computed:
    return Computed(lambda: fn(cell.get()))


def merge_latest(fn: Callable[..., R], *cells: Cell) -> Computed:
    """Combine the latest value of every cell through ``fn``.

    ``fn`` receives one positional argument per cell, in the order given. A
    merged cell may itself be passed to another ``merge_latest`` call.
    """
    if not cells:
        raise ValueError("merge_latest needs at least one source cell")
    sources = tuple(cells)
    return Computed(lambda: fn(*(source.get() for source in sources)))


class Subscription(Generic[T]):
    """A reaction that owns the resource produced by its latest run."""

    def __init__(self, cell: Cell, fn: Callable[[Any], Tuple[T, Optional[DisposeFn]]]) -> None:
        self._fn = fn
        self._release: DisposeFn = _noop
        self._result: Optional[T] = None
        self._disposed = False
        self._reaction = reaction(cell.get, self._on_value, fire_immediately=True)

    @property
    def result(self) -> Optional[T]:
        return self._result

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _on_value(self, value: Any) -> None:
        if self._disposed:
            return
        self._run_release()
        result, release = self._fn(value)
        self._result = result
        self._release = release or _noop

    def _run_release(self) -> None:
        release, self._release = self._release, _noop
        release()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._reaction.dispose()
        try:
            self._run_release()
        finally:
            self._result = None


def subscribe_with_resource(
    cell: Cell,
    fn: Callable[[Any], Tuple[T, Optional[DisposeFn]]],
) -> Subscription[T]:
    """Call ``fn`` with the current value now and with every new value later.

    ``fn`` returns ``(result, dispose_fn)``. The previous ``dispose_fn`` runs
    before ``fn`` is called again and once more when the subscription is
    disposed.
    """
    return Subscription(cell, fn)


def observe(cell: Cell, fn: Callable[[Any], None], *, fire_immediately: bool = False):
    """Run ``fn`` whenever the cell's value changes. Returns the reaction."""
    return reaction(cell.get, fn, fire_immediately=fire_immediately)


class _Distinct:
    __slots__ = ("output", "reaction")

    def __init__(self, cell: Cell) -> None:
        self.output = Observable(cell.get())
        self.reaction = reaction(cell.get, self.output.set)


_DISTINCT_FEEDS: dict[int, _Distinct] = {}


def drop_repeats(cell: Cell) -> Observable:
    """Return a cell that only changes when the source moves to a different value."""
    feed = _Distinct(cell)
    _DISTINCT_FEEDS[id(feed.output)] = feed
    return feed.output


def dispose(target: Any) -> None:
    """Release a cell, subscription or reaction. Calling it twice is harmless."""
    if target is None:
        return
    feed = _DISTINCT_FEEDS.pop(id(target), None)
    if feed is not None:
        feed.reaction.dispose()
        return
    release = getattr(target, "dispose", None)
    if release is None:
        return
    try:
        release()
    except Exception as exc:
        _LOGGER.debug("Ignoring error while disposing %r: %s", target, exc)


@dataclass(frozen=True)
class LaunchRequest:
    """One request to start an application; ``serial`` keeps repeats distinct."""

    app_id: str
    serial: int

    @classmethod
    def next(cls, app_id: str) -> "LaunchRequest":
        return cls(app_id=app_id, serial=next(_SERIALS))
