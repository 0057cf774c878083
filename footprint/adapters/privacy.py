"""
Privacy-mode field scrubbing.

The event store applies this to every event it returns so analyzers only
ever see the dimensions the active privacy mode allows. Scrubbed fields
come back as None.
"""

from __future__ import annotations

from footprint.core.entities import Event
from footprint.rules.models import PrivacyMode, PrivacyRules

SCRUBBED_FIELDS: dict[PrivacyMode, frozenset[str]] = {
    PrivacyMode.STANDARD: frozenset(),
    PrivacyMode.STRICT: frozenset({"city", "browser", "os"}),
    PrivacyMode.PARANOID: frozenset({"country", "city", "browser", "os", "device"}),
}


def scrub_event(event: Event, privacy: PrivacyRules) -> Event:
    """Return `event` with every field hidden by the privacy mode set to None."""
    fields = SCRUBBED_FIELDS[privacy.mode]
    if not fields:
        return event
    return event.model_copy(update={name: None for name in fields})
