"""Per-user like/save state: merging into the feed and user actions."""

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from .errors import PersistenceError
from .models import Interaction, Signal
from .storage import Storage

logger = logging.getLogger(__name__)


def merge_interactions(signals: List[Signal], interactions: Dict[str, Interaction]) -> List[Signal]:
    """
    Overlay persisted liked/saved flags onto signals.

    Signals without a record keep their provider-supplied values. Returns new
    Signal objects.
    """
    merged = []
    for signal in signals:
        interaction = interactions.get(signal.id)
        if interaction is None:
            merged.append(replace(signal))
        else:
            merged.append(replace(signal, liked=interaction.liked, saved=interaction.saved))
    return merged


def load_interactions(storage: Optional[Storage], user_id: str) -> Dict[str, Interaction]:
    """Interactions for the user, or an empty map when they cannot be read."""
    if storage is None or not user_id:
        return {}
    try:
        return storage.get_interactions(user_id)
    except PersistenceError as e:
        logger.error(f"Error loading interactions for {user_id}: {e}")
        return {}


def _toggle(signals: List[Signal], signal_id: str, flag: str) -> List[Signal]:
    return [
        replace(s, **{flag: not getattr(s, flag)}) if s.id == signal_id else s
        for s in signals
    ]


def _persist_toggle(storage: Optional[Storage], user_id: str, signal_id: str, flag: str):
    if storage is None or not user_id:
        logger.debug(f"No user or storage, {flag} change kept locally only")
        return
    try:
        existing = storage.get_interaction(user_id, signal_id)
        if existing is None:
            existing = Interaction(signal_id)
            setattr(existing, flag, True)
        else:
            setattr(existing, flag, not getattr(existing, flag))
        storage.set_interaction(user_id, existing)
    except PersistenceError as e:
        logger.error(f"Error saving {flag} for signal {signal_id}: {e}")


def toggle_like(
    signals: List[Signal], signal_id: str, user_id: str = "", storage: Optional[Storage] = None
) -> List[Signal]:
    """Flip liked locally, then forward the change to persistence."""
    updated = _toggle(signals, signal_id, "liked")
    _persist_toggle(storage, user_id, signal_id, "liked")
    return updated


def toggle_save(
    signals: List[Signal], signal_id: str, user_id: str = "", storage: Optional[Storage] = None
) -> List[Signal]:
    """Flip saved locally, then forward the change to persistence."""
    updated = _toggle(signals, signal_id, "saved")
    _persist_toggle(storage, user_id, signal_id, "saved")
    return updated


def dismiss(
    signals: List[Signal], signal_id: str, user_id: str = "", storage: Optional[Storage] = None
) -> List[Signal]:
    """Drop the signal from the feed and delete its interaction row."""
    remaining = [s for s in signals if s.id != signal_id]
    if storage is not None and user_id:
        try:
            storage.delete_interaction(user_id, signal_id)
        except PersistenceError as e:
            logger.error(f"Error dismissing signal {signal_id}: {e}")
    return remaining
