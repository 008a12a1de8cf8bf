"""Scheduled account deletion.

Members ask for their account to be deleted; the request waits for a
grace period (``ACCOUNT_DELETION_GRACE_DAYS``) during which it can be
cancelled. The cron sweep then deletes every due profile together with
its dependent rows and records the email address in ``DeletedEmail`` so
the same address cannot register again.

The sweep is best effort: each request is handled in its own
transaction, a failure is rolled back, logged and reported, and the
sweep continues with the next request.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from .. import db
from ..errors import ConflictError, NotFoundError
from ..models import AccountDeletionRequest, DeletedEmail, DeletionStatus, Profile
from ..util.timeutils import utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_email_deleted(email: str) -> bool:
    return DeletedEmail.query.filter_by(email=normalize_email(email)).first() is not None


def pending_request_for(profile_id: str) -> Optional[AccountDeletionRequest]:
    return AccountDeletionRequest.query.filter_by(
        profile_id=profile_id, status=DeletionStatus.PENDING
    ).first()


def request_deletion(profile: Profile, reason: Optional[str] = None) -> AccountDeletionRequest:
    """Schedule ``profile`` for deletion after the grace period."""
    if pending_request_for(profile.id) is not None:
        raise ConflictError("A deletion request is already pending.")
    now = utcnow()
    grace = timedelta(days=int(current_app.config["ACCOUNT_DELETION_GRACE_DAYS"]))
    deletion = AccountDeletionRequest(
        profile_id=profile.id,
        reason=reason,
        requested_at=now,
        scheduled_deletion_date=now + grace,
    )
    db.session.add(deletion)
    db.session.commit()
    logger.info("Profile %s scheduled for deletion on %s", profile.id, deletion.scheduled_deletion_date)
    return deletion


def cancel_deletion(profile: Profile) -> AccountDeletionRequest:
    deletion = pending_request_for(profile.id)
    if deletion is None:
        raise NotFoundError("No pending deletion request.")
    deletion.status = DeletionStatus.CANCELLED
    deletion.processed_at = utcnow()
    db.session.commit()
    logger.info("Profile %s cancelled deletion request %s", profile.id, deletion.id)
    return deletion


def _due_requests(now: datetime):
    return AccountDeletionRequest.query.filter(
        AccountDeletionRequest.status == DeletionStatus.PENDING,
        AccountDeletionRequest.scheduled_deletion_date <= now,
    )


def _delete_profile(deletion: AccountDeletionRequest, now: datetime) -> None:
    deletion.status = DeletionStatus.PROCESSING
    deletion.processed_at = now
    db.session.flush()

    profile = db.session.get(Profile, deletion.profile_id)
    if profile is not None:
        email = normalize_email(profile.email)
        if not is_email_deleted(email):
            db.session.add(
                DeletedEmail(
                    email=email,
                    original_profile_id=profile.id,
                    deletion_reason=deletion.reason,
                    deleted_at=now,
                )
            )
        db.session.delete(profile)

    deletion.status = DeletionStatus.COMPLETED
    deletion.processed_at = now
    db.session.commit()


def process_deletions(now: Optional[datetime] = None) -> dict:
    """Delete every profile whose deletion request is due."""
    now = now or utcnow()
    due = _due_requests(now).order_by(AccountDeletionRequest.scheduled_deletion_date.asc()).all()
    if not due:
        return {
            "message": "No deletion requests ready for processing",
            "processedCount": 0,
            "timestamp": now.isoformat(),
        }

    processed: list[str] = []
    errors: list[dict] = []
    for deletion in due:
        request_id, profile_id = deletion.id, deletion.profile_id
        logger.info("Processing deletion request %s for profile %s", request_id, profile_id)
        try:
            _delete_profile(deletion, now)
        except Exception as exc:
            db.session.rollback()
            logger.exception("Deletion of profile %s failed", profile_id)
            errors.append({"userId": profile_id, "error": str(exc)})
            _mark_failed(request_id, str(exc), now)
            continue
        processed.append(profile_id)

    result = {
        "message": f"Processed {len(processed)} deletion requests",
        "processedCount": len(processed),
        "processedUsers": processed,
        "timestamp": now.isoformat(),
    }
    if errors:
        result["errors"] = errors
    logger.info("Deletion sweep finished: %d processed, %d failed", len(processed), len(errors))
    return result


def _mark_failed(request_id: int, error: str, now: datetime) -> None:
    deletion = db.session.get(AccountDeletionRequest, request_id)
    if deletion is None:
        return
    deletion.status = DeletionStatus.FAILED
    deletion.processed_at = now
    deletion.error = error[:500]
    db.session.commit()


def deletion_status(now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    pending = AccountDeletionRequest.query.filter_by(status=DeletionStatus.PENDING).count()
    ready = _due_requests(now).count()
    return {
        "status": "healthy",
        "pendingDeletions": pending,
        "readyForProcessing": ready,
        "timestamp": now.isoformat(),
    }
