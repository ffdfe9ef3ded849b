"""Utility helpers for standardized error responses."""
from typing import Any

from fastapi import HTTPException, status

from workplace.services.outcomes import MutationResult, Outcome

OUTCOME_STATUS = {
    Outcome.RECORD_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    Outcome.SUB_RECORD_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    Outcome.CONCURRENCY_KEY_INVALID: status.HTTP_409_CONFLICT,
    Outcome.RECORD_IS_IN_USE: status.HTTP_409_CONFLICT,
    Outcome.RECORD_DID_NOT_EXIST: status.HTTP_404_NOT_FOUND,
    Outcome.SUB_RECORD_DID_NOT_EXIST: status.HTTP_404_NOT_FOUND,
    Outcome.SUB_RECORD_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Outcome.UNKNOWN: status.HTTP_503_SERVICE_UNAVAILABLE,
}

OUTCOME_MESSAGES = {
    Outcome.RECORD_ALREADY_EXISTS: "A record with this name already exists.",
    Outcome.SUB_RECORD_ALREADY_EXISTS: "A related record is already registered elsewhere.",
    Outcome.CONCURRENCY_KEY_INVALID: "The record was changed by someone else; reload and retry.",
    Outcome.RECORD_IS_IN_USE: "The record is still in use.",
    Outcome.RECORD_DID_NOT_EXIST: "Record not found.",
    Outcome.SUB_RECORD_DID_NOT_EXIST: "A related record was not found.",
    Outcome.SUB_RECORD_INVALID: "A related record is invalid.",
    Outcome.UNKNOWN: "The record is busy; retry shortly.",
}


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


def outcome_details(result: MutationResult) -> dict[str, Any]:
    details: dict[str, Any] = {}
    if result.in_use:
        details["in_use"] = [
            {"kind": item.kind, "id": str(item.id), "display_name": item.display_name, "details": item.details}
            for item in result.in_use
        ]
    if result.collisions:
        details["collisions"] = [
            {"organization_id": str(item.organization_id), "domain_name": item.domain_name}
            for item in result.collisions
        ]
    return details


def raise_for_outcome(result: MutationResult) -> None:
    """Turn a rejected mutation into an ``HTTPException`` with the error envelope."""

    if result.ok:
        return
    outcome = result.outcome
    headers = {"Retry-After": "1"} if outcome is Outcome.UNKNOWN else None
    raise HTTPException(
        status_code=OUTCOME_STATUS[outcome],
        detail=error_response(outcome.value, OUTCOME_MESSAGES[outcome], outcome_details(result)),
        headers=headers,
    )


def not_found(message: str = "Record not found.") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=error_response(Outcome.RECORD_DID_NOT_EXIST.value, message),
    )
