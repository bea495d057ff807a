"""
Audit logging service.

This module provides functions to log user actions for security monitoring.
"""
import logging
from typing import Optional
from uuid import UUID
import json

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.rate_limiter import get_client_ip
from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions."""

    # Authentication
    LOGIN = "login"
    LOGOUT = "logout"
    REGISTER = "register"
    LOGIN_FAILED = "login_failed"

    # Summaries
    CREATE_SUMMARY = "create_summary"
    DELETE_SUMMARY = "delete_summary"
    EXPORT_SUMMARIES = "export_summaries"


class TargetType:
    """Constants for audit target types."""

    USER = "user"
    SUMMARY = "summary"


def get_client_info(request: Request) -> tuple[Optional[str], Optional[str]]:
    """
    Extract client IP and user agent from request.

    Args:
        request: FastAPI request object

    Returns:
        Tuple of (ip_address, user_agent)
    """
    ip_address = get_client_ip(request)
    if ip_address == "unknown":
        ip_address = None

    return ip_address, request.headers.get("User-Agent")


def log_action(
    db: Session,
    action: str,
    user_id: Optional[UUID] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[AuditLog]:
    """
    Log an audit event.

    A failure to write the audit record is logged and does not fail the
    request that triggered it.

    Args:
        db: Database session
        action: Action type (use AuditAction constants)
        user_id: User who performed the action
        target_type: Type of resource affected (e.g., "summary")
        target_id: ID of the affected resource
        details: Additional details as a dictionary
        ip_address: Client IP address
        user_agent: Client user agent string

    Returns:
        Created AuditLog record, or None if it could not be written
    """
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=json.dumps(details) if details else None,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    try:
        db.add(log)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to write audit log '{action}': {e}")
        return None
    db.refresh(log)
    return log
