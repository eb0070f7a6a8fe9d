# src/tasktrack/core/session.py

"""
Identity boundary.

The identity provider is external; the core only needs a stable user id.
Whenever the identity changes the whole store is re-initialized: loaded (and
seeded if new) for a user, or cleared when there is no user. Live ticking is
cancelled first so no timer outlives its session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .results import MutationResult

if TYPE_CHECKING:
    from .state import AppState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str
    picture: str | None = None


def activate_identity(state: AppState, user: User | None) -> MutationResult | None:
    """
    Switch the active identity.

    Returns the load result for a user, None when the identity was cleared.
    """
    state.ticker.cancel()

    if user is None:
        state.user = None
        state.store.clear()
        logger.info("Identity cleared")
        return None

    state.user = user
    # The tracker adopts a persisted open log when the store reports LOADED.
    result = state.store.load(user.id)
    resumed = state.tracker.current_task()
    logger.info(
        "Identity active user=%s status=%s resumed=%s",
        user.id,
        result.status.value,
        resumed.id if resumed is not None else None,
    )
    return result
