import logging

from apps.audit.models import AuditLog

logger = logging.getLogger(__name__)


def record_audit(*, actor, action, entity_type, entity_id, payload=None, branch=None):
    """Append an audit row for a state change.

    Anonymous actors are stored as NULL. When no branch is given the actor's
    branch is used, so system-initiated writes stay unscoped.
    """
    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None
    if branch is None and actor is not None:
        branch = getattr(actor, "branch", None)

    entry = AuditLog.objects.create(
        actor=actor,
        branch=branch,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        payload=payload or {},
    )
    logger.debug("Audit %s on %s %s", action, entity_type, entity_id)
    return entry


def audit_trail(entity_type, entity_id):
    return AuditLog.objects.filter(entity_type=entity_type, entity_id=str(entity_id)).order_by("created_at")
