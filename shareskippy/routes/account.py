"""
Routes for account deletion requests.

Deletion is not immediate: a request is scheduled after a grace period
and carried out by the ``/cron/process-deletions`` sweep. Until then the
member can cancel it.
"""

from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError as SchemaError

from ..errors import NotFoundError, ValidationError
from ..schemas import DeletionCreateSchema, DeletionRequestSchema
from ..services.account_deletion import cancel_deletion, pending_request_for, request_deletion
from ..util.auth import current_profile
from ..util.sanitization import clean_optional

account_bp = Blueprint("account", __name__)


@account_bp.route("/account/deletion", methods=["GET"])
@jwt_required()
def get_deletion_request() -> tuple[dict, int]:
    """Return the caller's pending deletion request, if any."""
    deletion = pending_request_for(current_profile().id)
    if deletion is None:
        raise NotFoundError("No pending deletion request.")
    return DeletionRequestSchema().dump(deletion), 200


@account_bp.route("/account/deletion", methods=["POST"])
@jwt_required()
def create_deletion_request() -> tuple[dict, int]:
    """Schedule the caller's account for deletion. Accepts an optional ``reason``."""
    try:
        data = DeletionCreateSchema().load(request.get_json(silent=True) or {})
    except SchemaError as err:
        raise ValidationError("Invalid deletion request.", err.messages)
    deletion = request_deletion(current_profile(), clean_optional(data["reason"]))
    return DeletionRequestSchema().dump(deletion), 201


@account_bp.route("/account/deletion", methods=["DELETE"])
@jwt_required()
def cancel_deletion_request() -> tuple[dict, int]:
    """Cancel the caller's pending deletion request."""
    deletion = cancel_deletion(current_profile())
    return DeletionRequestSchema().dump(deletion), 200
