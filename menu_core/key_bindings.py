"""Configurable control schemes mapping key names to menu actions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

_LOGGER = logging.getLogger("WindowMenu.Core.KeyBindings")

MOVE_LEFT = "move_left"
MOVE_RIGHT = "move_right"
ACTIVATE = "activate"
SECONDARY_ACTIVATE = "secondary_activate"
CLOSE = "close"

DEFAULT_CONFIG = {
    "active_scheme": "keyboard_default",
    "schemes": {
        "keyboard_default": {
            "device_type": "keyboard",
            "display_name": "Keyboard (default)",
            "bindings": {
                MOVE_LEFT: ["Left"],
                MOVE_RIGHT: ["Right"],
                ACTIVATE: ["Return", "KP_Enter"],
                SECONDARY_ACTIVATE: ["space"],
                CLOSE: ["BackSpace"],
            },
        }
    },
}


@dataclass
class ControlScheme:
    """Container for a set of bindings and some metadata."""

    name: str
    device_type: str
    display_name: str
    bindings: Dict[str, List[str]]


@dataclass
class BindingConfig:
    """Representation of the key bindings file contents."""

    schemes: Dict[str, ControlScheme]
    active_scheme: str
    source_path: Optional[Path] = None

    @classmethod
    def default(cls) -> "BindingConfig":
        return cls.from_payload(DEFAULT_CONFIG, None)

    @classmethod
    def load(cls, path: Path) -> "BindingConfig":
        """Load config from disk, creating the default file if missing."""

        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(DEFAULT_CONFIG, indent=2))

        payload = json.loads(path.read_text())
        return cls.from_payload(payload, path)

    @classmethod
    def from_payload(cls, payload: dict, path: Optional[Path]) -> "BindingConfig":
        schemes = {
            name: ControlScheme(
                name=name,
                device_type=entry.get("device_type", "keyboard"),
                display_name=entry.get("display_name", name),
                bindings={
                    action: list(inputs or [])
                    for action, inputs in (entry.get("bindings") or {}).items()
                },
            )
            for name, entry in payload.get("schemes", {}).items()
        }

        active = payload.get("active_scheme")
        if active not in schemes:
            raise ValueError(f"Active scheme '{active}' is not defined in key bindings {path or '<defaults>'}")

        return cls(schemes=schemes, active_scheme=active, source_path=path)

    def get_scheme(self, name: Optional[str] = None) -> ControlScheme:
        """Return the requested scheme or the currently active one."""

        scheme_name = name or self.active_scheme
        try:
            return self.schemes[scheme_name]
        except KeyError as exc:
            raise ValueError(f"Unknown control scheme '{scheme_name}'") from exc


class KeyBindings:
    """Reverse lookup from key name to action for one control scheme."""

    def __init__(self, config: Optional[BindingConfig] = None, scheme_name: Optional[str] = None) -> None:
        self.config = config or BindingConfig.default()
        self._actions: Dict[str, str] = {}
        self.activate(scheme_name)

    def activate(self, scheme_name: Optional[str] = None) -> None:
        scheme = self.config.get_scheme(scheme_name)
        actions: Dict[str, str] = {}
        for action, keys in scheme.bindings.items():
            for key in keys:
                normalized = key.strip() if isinstance(key, str) else ""
                if not normalized:
                    _LOGGER.warning("Skipping empty key for action '%s' in scheme '%s'", action, scheme.name)
                    continue
                if normalized in actions and actions[normalized] != action:
                    _LOGGER.warning(
                        "Key '%s' bound to both '%s' and '%s'; keeping '%s'",
                        normalized,
                        actions[normalized],
                        action,
                        actions[normalized],
                    )
                    continue
                actions[normalized] = action
        self._actions = actions

    def action_for(self, key: str) -> Optional[str]:
        return self._actions.get(key)

    def keys_for(self, action: str) -> List[str]:
        return [key for key, bound in self._actions.items() if bound == action]
