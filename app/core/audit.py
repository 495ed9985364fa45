"""
Audit logging for security events on funnel and checkout endpoints
"""
import json
import logging
from fastapi import Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.models.audit_log import AuditLog, AuditEventType
from typing import Optional
import uuid

logger = logging.getLogger(__name__)


def log_security_event(
    db: Session,
    event_type: AuditEventType,
    user_id: Optional[uuid.UUID] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    request: Optional[Request] = None,
    details: Optional[dict] = None
):
    """
    Record a security event.

    Commits on its own, so call it before (not in the middle of) a unit of
    work. A failed write is logged and rolled back; the caller's own error
    still propagates.

    Args:
        db: Database session
        event_type: Type of security event
        user_id: Acting user, if known
        resource_type: "funnel_session" or "api_endpoint"
        resource_id: Session id or endpoint name
        request: Incoming request; client IP and user agent are taken from it
        details: Extra context, stored JSON-encoded
    """
    ip_address = None
    user_agent = None
    if request is not None:
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")

    try:
        db.add(AuditLog(
            user_id=user_id,
            event_type=event_type,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details=json.dumps(details) if details else None
        ))
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"[AUDIT] Failed to log {event_type.value} for {resource_type} {resource_id}: {e}")
        db.rollback()
