"""Community profile feed pagination.

The feed lists eligible members newest-activity first. A member is
eligible when their bio is not blank and their role is one of
:class:`~shareskippy.models.ProfileRole`; members with an active
availability post are left out because they are surfaced through the
availability flow instead.

Pagination is keyset based. Every entry is keyed by
``(last_online_at, profile_id)`` and the feed is sorted by that key in
descending order, which is a strict total order because profile ids are
unique. A continuation cursor is the key of the last entry returned,
written as ``"<ISO-8601 timestamp>|<profile id>"``. The next page keeps
only entries whose key sorts strictly after the cursor, using the same
comparator as the sort, so pages never overlap and never skip.

Cursors carry all of their state; nothing is stored server side. A
cursor that cannot be decoded produces an empty page rather than the
first page, so a corrupted client cursor never replays content the
client has already shown.

The candidate set is assembled in process: eligible profiles, the
exclusion set and the per-profile activity maximum are three bounded
queries, and the geo filter, sort and slice run in Python.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from dateutil.parser import isoparse  # type: ignore
from sqlalchemy import func

from .. import db
from ..models import AvailabilityPost, Profile, ProfileRole, UserActivity
from ..util.sanitization import excerpt
from ..util.timeutils import to_naive_utc

logger = logging.getLogger(__name__)

CURSOR_SEPARATOR = "|"
DEFAULT_LIMIT = 24
MAX_LIMIT = 60
BIO_EXCERPT_LENGTH = 140
EARTH_RADIUS_KM = 6371.0

SortKey = tuple[datetime, str]


class InvalidCursor(ValueError):
    """Raised when a continuation cursor cannot be decoded."""


@dataclass(frozen=True)
class GeoFilter:
    lat: float
    lng: float
    radius_km: float


@dataclass
class FeedEntry:
    """A profile decorated with its derived recency."""

    profile: Profile
    last_online_at: datetime
    bio_excerpt: str = ""

    @property
    def sort_key(self) -> SortKey:
        return (self.last_online_at, self.profile.id)


def encode_cursor(key: SortKey) -> str:
    """Encode a sort key as ``<timestamp>|<id>``.

    Timestamps keep microsecond precision so a cursor compares exactly
    against the stored value it came from.
    """
    last_online_at, profile_id = key
    if CURSOR_SEPARATOR in profile_id:
        raise ValueError(f"Profile id {profile_id!r} cannot be used in a cursor.")
    timestamp = to_naive_utc(last_online_at).isoformat(timespec="microseconds") + "Z"
    return f"{timestamp}{CURSOR_SEPARATOR}{profile_id}"


def decode_cursor(cursor: str) -> SortKey:
    """Decode a cursor produced by :func:`encode_cursor`.

    Raises
    ------
    InvalidCursor
        If the separator is missing or repeated, the id is empty or the
        timestamp is not ISO-8601.
    """
    parts = cursor.split(CURSOR_SEPARATOR)
    if len(parts) != 2:
        raise InvalidCursor(f"Expected exactly one '{CURSOR_SEPARATOR}' in cursor.")
    raw_timestamp, profile_id = parts
    if not profile_id:
        raise InvalidCursor("Cursor has an empty profile id.")
    try:
        timestamp = to_naive_utc(isoparse(raw_timestamp))
    except (ValueError, OverflowError) as exc:
        raise InvalidCursor(f"Unparsable cursor timestamp {raw_timestamp!r}.") from exc
    return timestamp, profile_id


def clamp_limit(raw) -> int:
    """Coerce a requested page size into ``[1, MAX_LIMIT]``."""
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def within_radius(profile: Profile, geo: GeoFilter) -> bool:
    if profile.display_lat is None or profile.display_lng is None:
        return False
    distance = haversine_km(geo.lat, geo.lng, profile.display_lat, profile.display_lng)
    return distance <= geo.radius_km


def last_online_at(profile: Profile, activity: dict[str, datetime]) -> datetime:
    """Latest activity timestamp, falling back to ``updated_at``."""
    return activity.get(profile.id) or profile.updated_at


def paginate(entries: Iterable[FeedEntry], limit: int, after: Optional[SortKey] = None) -> tuple[list[FeedEntry], Optional[str]]:
    """Sort, apply the cursor predicate and slice one page.

    Returns the page and the cursor for the next page, or ``None`` when
    the page reaches the end of the feed.
    """
    ordered = sorted(entries, key=lambda entry: entry.sort_key, reverse=True)
    if after is not None:
        ordered = [entry for entry in ordered if entry.sort_key < after]
    page = ordered[:limit]
    next_cursor = encode_cursor(page[-1].sort_key) if len(ordered) > limit else None
    for entry in page:
        entry.bio_excerpt = excerpt(entry.profile.bio, BIO_EXCERPT_LENGTH)
    return page, next_cursor


def _fetch_candidates(role: Optional[ProfileRole]) -> list[Profile]:
    query = Profile.query.filter(
        Profile.bio.isnot(None),
        func.trim(Profile.bio) != "",
        Profile.role.in_(list(ProfileRole)),
    )
    if role is not None:
        query = query.filter(Profile.role == role)
    return query.all()


def _fetch_excluded_ids() -> set[str]:
    rows = (
        db.session.query(AvailabilityPost.owner_id)
        .filter(AvailabilityPost.is_active.is_(True))
        .distinct()
        .all()
    )
    return {owner_id for (owner_id,) in rows}


def _fetch_activity(profile_ids: list[str]) -> dict[str, datetime]:
    if not profile_ids:
        return {}
    rows = (
        db.session.query(UserActivity.profile_id, func.max(UserActivity.occurred_at))
        .filter(UserActivity.profile_id.in_(profile_ids))
        .group_by(UserActivity.profile_id)
        .all()
    )
    return {profile_id: occurred_at for profile_id, occurred_at in rows}


def get_profile_page(
    cursor: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    role: Optional[ProfileRole] = None,
    geo: Optional[GeoFilter] = None,
) -> dict:
    """Return one page of the community feed.

    Parameters
    ----------
    cursor: str | None
        Continuation token from the previous page, or ``None`` for the
        first page.
    limit: int
        Page size; clamped to ``[1, MAX_LIMIT]``.
    role: ProfileRole | None
        Restrict the feed to one role.
    geo: GeoFilter | None
        Restrict the feed to members within ``radius_km`` (inclusive).

    Returns
    -------
    dict
        ``{"items": [FeedEntry, ...], "nextCursor": str | None}``.
        Database errors propagate to the caller.
    """
    limit = clamp_limit(limit)
    after = None
    if cursor:
        try:
            after = decode_cursor(cursor)
        except InvalidCursor as exc:
            logger.info("Rejected feed cursor %r: %s", cursor, exc)
            return {"items": [], "nextCursor": None}

    candidates = _fetch_candidates(role)
    excluded = _fetch_excluded_ids()
    candidates = [profile for profile in candidates if profile.id not in excluded]
    if geo is not None:
        candidates = [profile for profile in candidates if within_radius(profile, geo)]

    activity = _fetch_activity([profile.id for profile in candidates])
    entries = [FeedEntry(profile, last_online_at(profile, activity)) for profile in candidates]
    page, next_cursor = paginate(entries, limit, after)
    logger.debug(
        "Feed page role=%s geo=%s cursor=%r: %d of %d candidates",
        role.value if role else None, geo, cursor, len(page), len(entries),
    )
    return {"items": page, "nextCursor": next_cursor}
