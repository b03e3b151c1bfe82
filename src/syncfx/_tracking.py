"""Dependency tracking — which derivation is currently evaluating.

Uses a contextvar so that any Observable or ObservableList read while an
autorun is evaluating registers itself as a dependency of that autorun.
"""

from __future__ import annotations

import contextvars
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from syncfx.reaction import Reaction

# When set, reads register the derivation as an observer.
current_derivation: contextvars.ContextVar[Reaction | None] = contextvars.ContextVar(
    "current_derivation", default=None
)


def track(source) -> None:
    """Register the current derivation (if any) as an observer of source."""
    derivation = current_derivation.get()
    if derivation is not None:
        source._observers.add(derivation)
        derivation._dependencies.add(source)


def schedule(derivation: Reaction) -> None:
    """Re-run a derivation whose dependency changed."""
    derivation._run()
