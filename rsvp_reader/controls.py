"""Named playback actions and the keyboard bindings that trigger them.

WHY: The terminal player, the HTTP API, and any GUI all offer the same
controls (toggle, skip, paragraph jumps, speed, close). A single lookup
from action name to engine call keeps them consistent, and a key map
on top of it gives every front end the same shortcuts.

HOW: ACTIONS maps snake_case names to plain functions taking the engine.
KEY_BINDINGS maps (key, modifiers) pairs to action names; KeyMap.handle()
looks the pair up and runs the action. Modifier lookups try the exact
modifier set first, then fall back to the unmodified binding.

RULES:
- Action names are the same strings the HTTP API accepts
- space → toggle; up/down → speed; escape → close
- left: command → restart, option → previous paragraph, plain → skip back
- right: option → next paragraph, plain → skip forward
- Unknown keys are not handled and leave the engine untouched
"""

from __future__ import annotations

from typing import Callable, Dict, FrozenSet, Iterable, Optional, Tuple

from rsvp_reader.core.engine import PlaybackEngine

Action = Callable[[PlaybackEngine], None]

ACTIONS: Dict[str, Action] = {
    "play": lambda engine: engine.play(),
    "pause": lambda engine: engine.pause(),
    "toggle": lambda engine: engine.toggle(),
    "restart": lambda engine: engine.restart(),
    "close": lambda engine: engine.close(),
    "skip_forward": lambda engine: engine.skip_forward(),
    "skip_backward": lambda engine: engine.skip_backward(),
    "next_paragraph": lambda engine: engine.next_paragraph(),
    "previous_paragraph": lambda engine: engine.previous_paragraph(),
    "increase_speed": lambda engine: engine.increase_speed(),
    "decrease_speed": lambda engine: engine.decrease_speed(),
}

Binding = Tuple[str, FrozenSet[str]]

_NONE: FrozenSet[str] = frozenset()

KEY_BINDINGS: Dict[Binding, str] = {
    ("space", _NONE): "toggle",
    ("left", _NONE): "skip_backward",
    ("left", frozenset({"command"})): "restart",
    ("left", frozenset({"option"})): "previous_paragraph",
    ("right", _NONE): "skip_forward",
    ("right", frozenset({"option"})): "next_paragraph",
    ("up", _NONE): "increase_speed",
    ("down", _NONE): "decrease_speed",
    ("escape", _NONE): "close",
}


def run_action(engine: PlaybackEngine, name: str) -> None:
    """Run the named action on ``engine``.

    Raises:
        KeyError: If ``name`` is not a registered action.
    """
    ACTIONS[name](engine)


class KeyMap:
    """Dispatch key presses to engine actions."""

    def __init__(self, bindings: Optional[Dict[Binding, str]] = None) -> None:
        self.bindings = dict(KEY_BINDINGS if bindings is None else bindings)

    def action_for(self, key: str, modifiers: Iterable[str] = ()) -> Optional[str]:
        mods = frozenset(m.lower() for m in modifiers)
        key = key.lower()
        action = self.bindings.get((key, mods))
        if action is None and mods:
            # command beats option when both are held
            for preferred in ("command", "option"):
                if preferred in mods:
                    action = self.bindings.get((key, frozenset({preferred})))
                    if action is not None:
                        break
        if action is None:
            action = self.bindings.get((key, _NONE))
        return action

    def handle(self, engine: PlaybackEngine, key: str, modifiers: Iterable[str] = ()) -> bool:
        """Run the action bound to ``key``; return False when nothing is bound."""
        action = self.action_for(key, modifiers)
        if action is None:
            return False
        run_action(engine, action)
        return True
