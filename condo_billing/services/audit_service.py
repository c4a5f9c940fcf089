"""Audit trail for bill and payment lifecycle events."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from condo_billing.models.audit_log import AuditLog


class AuditService:
    """Writes and reads AuditLog rows inside the caller's transaction."""

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: int | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Add an audit entry; committed together with the audited change.

        Args:
            db: Database session
            entity_type: "bill" or "payment"
            entity_id: Primary key of the entity
            action: "generate", "opening_balance", "delete", "mark_overdue", "record" or "void"
            actor_id: Operator who triggered the change (optional)
            changes: JSON-serialisable snapshot of the relevant figures

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(audit)
        return audit

    @staticmethod
    def history(db: Session, entity_type: str, entity_id: int) -> list[AuditLog]:
        """Entries of one entity, oldest first."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.id.asc())
        )
        return list(db.execute(stmt).scalars().all())


__all__ = ["AuditService"]
