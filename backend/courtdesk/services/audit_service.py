# courtdesk/services/audit_service.py

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import boto3

from sqlalchemy.orm import Session

from courtdesk.core.config import settings
from courtdesk.db.models import AuditRecord

logger = logging.getLogger(__name__)


class AuditService:
    """
    Audit trail writer.

    Records land in the ``audit_logs`` table. When AUDIT_DYNAMODB_ENABLED is
    set they are mirrored to DynamoDB for long-term retention.
    """

    def __init__(self):
        self._table = None

    @property
    def table(self):
        if self._table is None:
            dynamodb = boto3.resource(
                'dynamodb',
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None
            )
            self._table = dynamodb.Table(settings.AUDIT_DYNAMODB_TABLE)
        return self._table

    def record(self, db: Session, payload: Dict[str, Any]) -> AuditRecord:
        """
        Outbox handler: append one audit record.
        """
        occurred_at = payload.get("occurred_at")
        record = AuditRecord(
            user_id=int(payload["user_id"]),
            user_name=payload.get("user_name"),
            action=payload["action"],
            resource=payload["resource"],
            resource_id=payload.get("resource_id"),
            details=payload.get("details") or {},
            created_at=datetime.fromisoformat(occurred_at) if occurred_at else datetime.utcnow(),
        )
        db.add(record)
        db.flush()

        logger.info(
            "[AUDIT] user=%s action=%s resource=%s:%s",
            record.user_id, record.action, record.resource, record.resource_id
        )

        if settings.AUDIT_DYNAMODB_ENABLED:
            self._mirror(record)
        return record

    def _mirror(self, record: AuditRecord) -> None:
        try:
            timestamp = int(record.created_at.timestamp())
            self.table.put_item(Item={
                'user_id': str(record.user_id),
                'timestamp': timestamp,
                'action_type': record.action.upper(),
                'resource_type': record.resource,
                'resource_id': str(record.resource_id) if record.resource_id is not None else '',
                'metadata': {
                    'user_name': record.user_name or '',
                    'details': record.details or {},
                    'timestamp_iso': record.created_at.isoformat()
                },
                'ttl': timestamp + (settings.AUDIT_RETENTION_DAYS * 24 * 3600)
            })
        except Exception as e:
            # The database row is authoritative; the mirror is best-effort.
            logger.error(f"Failed to mirror audit record {record.id}: {str(e)}")

    def list_records(
        self,
        db: Session,
        resource: Optional[str] = None,
        resource_id: Optional[int] = None,
        action: Optional[str] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        limit: int = 50
    ) -> Dict[str, Any]:
        query = db.query(AuditRecord)
        if resource:
            query = query.filter(AuditRecord.resource == resource)
        if resource_id is not None:
            query = query.filter(AuditRecord.resource_id == resource_id)
        if action:
            query = query.filter(AuditRecord.action == action)
        if user_id is not None:
            query = query.filter(AuditRecord.user_id == user_id)

        total = query.count()
        items = (
            query.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {"items": items, "total": total, "page": page, "limit": limit}


# Singleton instance
audit_service = AuditService()
