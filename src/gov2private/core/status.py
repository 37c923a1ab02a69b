from __future__ import annotations

from dataclasses import dataclass

from gov2private.core.errors import InvalidTransitionError
from gov2private.types import canonical_status

RUN_STATUSES = ("queued", "role_selection", "generating", "done", "error")
TERMINAL_STATUSES = frozenset({"done", "error"})

# Forward path plus error from any non-terminal state. Re-entering
# ``generating`` from a terminal state is only allowed through an explicit
# regenerate/change-role action (see ``RESTART_TRANSITIONS``).
FORWARD_TRANSITIONS: dict[str, frozenset[str]] = {
    "queued": frozenset({"queued", "role_selection", "error"}),
    "role_selection": frozenset({"role_selection", "generating", "error"}),
    "generating": frozenset({"generating", "done", "error"}),
    "done": frozenset({"done"}),
    "error": frozenset({"error"}),
}

RESTART_TRANSITIONS: dict[str, frozenset[str]] = {
    "role_selection": frozenset({"generating"}),
    "generating": frozenset({"generating"}),
    "done": frozenset({"generating", "role_selection"}),
    "error": frozenset({"generating", "role_selection"}),
}


@dataclass(slots=True)
class StatusPolicy:
    restart: bool = False

    def allows(self, current: str, target: str) -> bool:
        current = canonical_status(current)
        target = canonical_status(target)
        if target not in RUN_STATUSES:
            raise ValueError(f"unsupported run status '{target}'")

        if target in FORWARD_TRANSITIONS.get(current, frozenset()):
            return True
        if self.restart:
            return target in RESTART_TRANSITIONS.get(current, frozenset())
        return False

    def ensure(self, current: str, target: str) -> None:
        if not self.allows(current, target):
            kind = "restart" if self.restart else "transition"
            raise InvalidTransitionError(f"{kind} {current} -> {target} is not allowed")


def ensure_transition(current: str, target: str, *, restart: bool = False) -> None:
    StatusPolicy(restart=restart).ensure(current, target)
