"""
Routes for the community feed.

The feed is public and read only. Query parameters are lenient: a bad
``limit`` falls back to the default, an unknown ``role`` or incomplete
geo filter is ignored, and a bad ``cursor`` yields an empty page. Only
storage failures produce an error response (500, via the registered
error handler).
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from flask import Blueprint, request

from ..models import ProfileRole
from ..schemas import ProfileSummarySchema
from ..services.profile_feed import DEFAULT_LIMIT, GeoFilter, clamp_limit, get_profile_page

logger = logging.getLogger(__name__)

community_bp = Blueprint("community", __name__)


def _parse_role(raw: Optional[str]) -> Optional[ProfileRole]:
    if not raw:
        return None
    try:
        return ProfileRole(raw)
    except ValueError:
        logger.info("Ignoring unknown feed role %r", raw)
        return None


def _parse_geo(args) -> Optional[GeoFilter]:
    raw = (args.get("lat"), args.get("lng"), args.get("radius"))
    if not all(raw):
        return None
    try:
        lat, lng, radius = (float(value) for value in raw)
    except ValueError:
        logger.info("Ignoring unparsable geo filter %r", raw)
        return None
    if not all(math.isfinite(value) for value in (lat, lng, radius)):
        logger.info("Ignoring non-finite geo filter %r", raw)
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180) or radius < 0:
        logger.info("Ignoring out-of-range geo filter %r", raw)
        return None
    return GeoFilter(lat=lat, lng=lng, radius_km=radius)


@community_bp.route("/community/profiles", methods=["GET"])
def list_community_profiles() -> tuple[dict, int]:
    """Return one page of the community feed.

    Query parameters: ``cursor``, ``limit`` (max 60), ``role``
    (``dog_owner``, ``petpal`` or ``both``) and ``lat``/``lng``/``radius``
    (kilometres).
    """
    page = get_profile_page(
        cursor=request.args.get("cursor") or None,
        limit=clamp_limit(request.args.get("limit", DEFAULT_LIMIT)),
        role=_parse_role(request.args.get("role")),
        geo=_parse_geo(request.args),
    )
    return {
        "items": ProfileSummarySchema(many=True).dump(page["items"]),
        "nextCursor": page["nextCursor"],
    }, 200
