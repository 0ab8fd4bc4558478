"""
Audit logging utility functions.
Records actor actions against reservations, vehicles and blocks.
"""

import logging
from flask import request, has_request_context

# Configure logger for audit operations
logger = logging.getLogger(__name__)


def log_audit(
    action: str,
    entity_type: str,
    entity_id: int = None,
    user_id: int = None,
    details: dict = None
) -> int:
    """
    Log an audit entry.

    Captures IP address and user agent from the Flask request context when
    there is one. Audit logging never fails the main operation: errors are
    logged and None is returned.

    Args:
        action: Action type (CREATE, CANCEL, REJECT, BLOCK, OVERRIDE, ...)
        entity_type: Entity type (reservation, vehicle, availability_block)
        entity_id: ID of the affected entity
        user_id: Acting user (None for system actions)
        details: Action details

    Returns:
        New audit log ID, or None if logging failed

    Example:
        log_audit(
            action='REJECT',
            entity_type='reservation',
            entity_id=123,
            user_id=7,
            details={'reason': 'Vehicle in service'}
        )
    """
    try:
        from models.audit_log import create_audit_log

        # Extract request context (IP, user agent)
        ip_address = None
        user_agent = None

        if has_request_context():
            # Get client IP, considering proxies
            ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
            if ip_address and ',' in ip_address:
                ip_address = ip_address.split(',')[0].strip()
            user_agent = request.headers.get('User-Agent', '')[:255]

        return create_audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            changes=details,
            ip_address=ip_address,
            user_agent=user_agent
        )

    except Exception as e:
        logger.error(f"Failed to log audit entry {action} {entity_type}/{entity_id}: {e}", exc_info=True)
        return None


# Export public API
__all__ = ['log_audit']
