from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class TriStateResult:
    state: int
    all_checked: bool
    all_unchecked: bool


# Same values as Qt.CheckState so the GUI can map them one to one.
UNCHECKED = 0
INDETERMINATE = 1
CHECKED = 2

STATES = (UNCHECKED, INDETERMINATE, CHECKED)

STATE_NAMES = {
    UNCHECKED: "unchecked",
    INDETERMINATE: "indeterminate",
    CHECKED: "checked",
}


def state_name(state: int) -> str:
    return STATE_NAMES[state]


def validate_state(state: int) -> int:
    if isinstance(state, bool) or state not in STATES:
        raise ValueError(f"Unknown tri-state value: {state!r}")
    return state


def derive_state(child_states: Iterable[int]) -> TriStateResult:
    """Derive a parent's state from the stored states of its direct children.

    Checked only when every child is checked, unchecked only when every child
    is unchecked, indeterminate otherwise. An indeterminate child always makes
    the parent indeterminate.
    """
    all_checked = True
    all_unchecked = True
    for state in child_states:
        if state != CHECKED:
            all_checked = False
        if state != UNCHECKED:
            all_unchecked = False
        if not all_checked and not all_unchecked:
            break

    if all_checked and not all_unchecked:
        return TriStateResult(state=CHECKED, all_checked=True, all_unchecked=False)
    if all_unchecked and not all_checked:
        return TriStateResult(state=UNCHECKED, all_checked=False, all_unchecked=True)
    return TriStateResult(
        state=INDETERMINATE, all_checked=all_checked, all_unchecked=all_unchecked
    )
