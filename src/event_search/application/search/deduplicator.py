"""
Deduplicator - Cross-Provider Event Merging

Several providers often list the same real-world event with slightly
different titles, venues and details. Events are matched on three keys,
tried in order; the first key that hits an existing group decides:

1. normalized title + date + normalized venue
2. normalized title + date
3. title without stop words + date

Normalization: lower-case, punctuation removed, whitespace collapsed.

Within a group, a later variant replaces the current representative only
when it is strictly better, checked in this order:

1. it has a real image and the representative does not
   (and never when the representative has one and it does not)
2. its description is more than 1.5x longer
3. it has coordinates and the representative does not
4. it has more ticket links

The first decisive criterion wins, whichever side it favours; only ties
fall through to the next one. Full ties keep the representative. Fields
the representative lacks are then filled from the other members, ticket
links are unioned and ``merged_from`` records every contributing provider.

Example:
    >>> dedup = Deduplicator()
    >>> events, stats = dedup.deduplicate(outcome.events())
    >>> stats.duplicates_removed
    1
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from event_search.domain.entities.event import CanonicalEvent, RawEvent

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    {"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}
)

# A description must be this many times longer to win on its own
DESCRIPTION_ADVANTAGE = 1.5

# Optional fields copied from other group members when the representative lacks them
_GAP_FILL_FIELDS = (
    "description",
    "category",
    "start_time",
    "venue_name",
    "address",
    "coordinates",
    "price",
    "image_url",
    "external_id",
)


class MatchKind(Enum):
    """Which key matched a duplicate."""

    TITLE_DATE_VENUE = "title_date_venue"
    TITLE_DATE = "title_date"
    CORE_TITLE_DATE = "core_title_date"


def normalize_text(text: str | None) -> str:
    """Lower-case, strip punctuation and collapse whitespace."""
    if not text:
        return ""
    text = re.sub(r"[^\w\s]", "", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def match_keys(event: RawEvent) -> list[tuple[MatchKind, str]]:
    """Match keys of an event, strongest first. Untitled events have none."""
    title = normalize_text(event.title)
    if not title:
        return []
    day = event.event_date.isoformat() if event.event_date else ""

    keys: list[tuple[MatchKind, str]] = []
    venue = normalize_text(event.venue_name)
    if venue:
        keys.append((MatchKind.TITLE_DATE_VENUE, f"{title}|{day}|{venue}"))
    keys.append((MatchKind.TITLE_DATE, f"{title}|{day}"))
    core = " ".join(word for word in title.split() if word not in STOP_WORDS)
    if core:
        keys.append((MatchKind.CORE_TITLE_DATE, f"{core}|{day}"))
    return keys


def should_replace(existing: RawEvent, candidate: RawEvent) -> bool:
    """True when ``candidate`` should become the group's representative."""
    if candidate.has_real_image != existing.has_real_image:
        return candidate.has_real_image
    if candidate.description_length > existing.description_length * DESCRIPTION_ADVANTAGE:
        return True
    if existing.description_length > candidate.description_length * DESCRIPTION_ADVANTAGE:
        return False
    if candidate.coordinates is not None and existing.coordinates is None:
        return True
    if existing.coordinates is not None and candidate.coordinates is None:
        return False
    return len(candidate.ticket_urls) > len(existing.ticket_urls)


@dataclass
class DeduplicationStats:
    """Statistics from one deduplication pass."""

    total_input: int = 0
    unique_events: int = 0
    duplicates_removed: int = 0
    replacements: int = 0
    by_provider: dict[str, int] = field(default_factory=dict)
    matches_by_key: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_events": self.unique_events,
            "duplicates_removed": self.duplicates_removed,
            "replacements": self.replacements,
            "by_provider": self.by_provider,
            "matches_by_key": self.matches_by_key,
        }


@dataclass
class _Group:
    representative: RawEvent
    members: list[RawEvent]


def _providers_of(event: RawEvent) -> tuple[str, ...]:
    if isinstance(event, CanonicalEvent) and event.merged_from:
        return event.merged_from
    return (event.provider,)


class Deduplicator:
    """
    Collapses provider records describing the same event.

    Stateless between calls: duplicates are only detected within one input
    list. Output keeps the order in which each group was first seen.
    """

    def deduplicate(
        self,
        events: Iterable[RawEvent],
    ) -> tuple[list[CanonicalEvent], DeduplicationStats]:
        """
        Deduplicate a list of raw (or canonical) events.

        Args:
            events: Events in provider registration order.

        Returns:
            Tuple of (canonical events, deduplication statistics)
        """
        stats = DeduplicationStats()
        groups: list[_Group] = []
        index: dict[tuple[MatchKind, str], int] = {}

        for event in events:
            stats.total_input += 1
            for provider in _providers_of(event):
                stats.by_provider[provider] = stats.by_provider.get(provider, 0) + 1

            keys = match_keys(event)
            hit: tuple[int, MatchKind] | None = None
            for key in keys:
                if key in index:
                    hit = (index[key], key[0])
                    break

            if hit is None:
                position = len(groups)
                groups.append(_Group(representative=event, members=[event]))
            else:
                position, kind = hit
                group = groups[position]
                group.members.append(event)
                stats.matches_by_key[kind.value] = stats.matches_by_key.get(kind.value, 0) + 1
                if should_replace(group.representative, event):
                    group.representative = event
                    stats.replacements += 1

            # Later variants may match any member, not only the first one
            for key in keys:
                index.setdefault(key, position)

        result = [self._merge(group) for group in groups]
        stats.unique_events = len(result)
        stats.duplicates_removed = stats.total_input - stats.unique_events

        if stats.duplicates_removed:
            logger.info(
                f"Deduplication: {stats.total_input} events -> {stats.unique_events} "
                f"({stats.duplicates_removed} duplicates merged)"
            )
        return result, stats

    def _merge(self, group: _Group) -> CanonicalEvent:
        rep = group.representative
        base = CanonicalEvent.from_raw(rep)
        if len(group.members) == 1:
            return base

        others = [m for m in group.members if m is not rep]
        updates: dict[str, Any] = {}
        for name in _GAP_FILL_FIELDS:
            if getattr(rep, name) is not None:
                continue
            for member in others:
                value = getattr(member, name)
                if value is not None:
                    updates[name] = value
                    break

        known = [m.popularity for m in group.members if m.popularity is not None]
        if known:
            updates["popularity"] = max(known)

        ticket_urls: list[str] = list(rep.ticket_urls)
        for member in others:
            for url in member.ticket_urls:
                if url not in ticket_urls:
                    ticket_urls.append(url)
        updates["ticket_urls"] = tuple(ticket_urls)

        merged_from: list[str] = []
        for member in group.members:
            for provider in _providers_of(member):
                if provider not in merged_from:
                    merged_from.append(provider)
        updates["merged_from"] = tuple(merged_from)

        return replace(base, **updates)
