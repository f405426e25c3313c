"""Task parameter matchers.

A task may declare a parameter filter (e.g. ``{"block": "STONE"}``). The
matcher decides whether an incoming action event's parameters satisfy it.
Tasks without a filter always match.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

ParameterMatcher = Callable[[Mapping[str, Any] | None, Mapping[str, Any] | None], bool]


def match_subset(task_parameters: Mapping[str, Any] | None, event_parameters: Mapping[str, Any] | None) -> bool:
    """Every key/value the task declares must appear, equal, in the event."""
    if not task_parameters:
        return True
    event_parameters = event_parameters or {}
    return all(key in event_parameters and event_parameters[key] == value for key, value in task_parameters.items())


def match_exact(task_parameters: Mapping[str, Any] | None, event_parameters: Mapping[str, Any] | None) -> bool:
    """The event's parameters must equal the task's filter exactly."""
    if not task_parameters:
        return True
    return dict(event_parameters or {}) == dict(task_parameters)


def match_any(_task_parameters: Mapping[str, Any] | None, _event_parameters: Mapping[str, Any] | None) -> bool:
    return True


MATCHERS: dict[str, ParameterMatcher] = {
    "subset": match_subset,
    "exact": match_exact,
    "none": match_any,
}


def get_matcher(mode: str) -> ParameterMatcher:
    """Resolve a matcher by name. Raises ValueError for unknown modes."""
    try:
        return MATCHERS[mode]
    except KeyError:
        raise ValueError(f"Unknown parameter match mode: {mode}. Must be one of {sorted(MATCHERS)}") from None
