"""Correlation ID management.

A correlation ID follows one workflow request through the service, the
effect dispatcher and the Celery task that may retry its effects, so every
log line about the same action can be grouped.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for correlation_id (async-safe)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID, or "no-correlation-id" if not set."""
    return correlation_id_var.get() or "no-correlation-id"


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set the correlation ID in the current context.

    Args:
        correlation_id: ID to set; a new one is generated when omitted

    Returns:
        str: The ID now in effect
    """
    correlation_id = correlation_id or generate_correlation_id()
    correlation_id_var.set(correlation_id)
    return correlation_id
