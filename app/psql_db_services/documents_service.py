"""
Expert Documents Service
------------------------
Metadata for documents uploaded alongside an expert application. The bytes
live in object storage; this service owns the database rows and keeps both
sides consistent (storage is written before the row is inserted and deleted
before the row is removed).
"""

from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import delete, insert, select, update

from app.auth.jwt_utils import create_document_token
from app.auth.models import AuthTokenPayload
from app.auth.permissions import Capability, ensure_same_tenant, has_capability
from app.core.database_connection import DatabaseManager
from app.core.database_schema import (
    expert_applications,
    expert_documents,
    new_id,
    users,
    utc_now,
)
from app.core.exceptions import DependencyUnavailable, NotFound, ValidationFailed
from app.core.object_storage import (
    ALLOWED_DOCUMENT_TYPES,
    LocalObjectStorage,
    build_document_key,
)
from app.core.config_manager import settings
from app.psql_db_services.activity_log_service import ActivityAction, ActivityLogService
from app.psql_db_services.base_service import BaseDatabaseService


class DocumentsService(BaseDatabaseService):
    """Upload, list, link and delete expert documents."""

    def __init__(
        self,
        storage: LocalObjectStorage,
        database_manager: Optional[DatabaseManager] = None,
    ):
        super().__init__(database_manager)
        self.storage = storage
        self.activity = ActivityLogService(database_manager)

    @staticmethod
    def validate_upload(content_type: Optional[str], size: int) -> None:
        """
        Raises:
            ValidationFailed: Empty file, file over the size cap, or disallowed type
        """
        if size <= 0:
            raise ValidationFailed("File is empty", fields=["file"])
        if size > settings.max_upload_bytes:
            limit_mb = settings.max_upload_bytes // (1024 * 1024)
            raise ValidationFailed(f"File exceeds {limit_mb}MB limit", fields=["file"])
        if content_type not in ALLOWED_DOCUMENT_TYPES:
            raise ValidationFailed(
                "Invalid file type. Allowed: JPEG, PNG, WebP, PDF, DOC, DOCX",
                fields=["file"],
            )

    async def upload(
        self,
        user: AuthTokenPayload,
        filename: str,
        content_type: str,
        data: bytes,
        document_type: str = "other",
    ) -> Dict[str, Any]:
        self.validate_upload(content_type, len(data))
        key = build_document_key(user.user_id, document_type, filename)
        await self.storage.put(key, data, content_type)

        now = utc_now()
        async with self.get_session() as session:
            application = await self.fetch_one(
                session,
                select(expert_applications.c.id).where(
                    expert_applications.c.user_id == user.user_id
                ),
            )
            row = {
                "id": new_id(),
                "user_id": user.user_id,
                "application_id": application["id"] if application else None,
                "document_type": document_type or "other",
                "file_name": filename,
                "file_type": content_type,
                "file_size": len(data),
                "object_key": key,
                "review_status": "pending",
                "application_status": "draft",
                "uploaded_at": now,
                "updated_at": now,
            }
            await session.execute(insert(expert_documents).values(**row))
            await self.activity.record(
                session,
                user_id=user.user_id,
                org_id=user.org_id,
                action=ActivityAction.DOCUMENT_UPLOADED,
                entity_type="ExpertDocument",
                entity_id=row["id"],
                details={"fileName": filename, "documentType": row["document_type"]},
            )
        self.log_operation("UPLOAD", row["id"], additional_context=key)
        return row

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        async with self.get_session() as session:
            return await self.fetch_all(
                session,
                select(expert_documents)
                .where(expert_documents.c.user_id == user_id)
                .order_by(expert_documents.c.uploaded_at.desc()),
            )

    async def _get_accessible(
        self, caller: AuthTokenPayload, document_id: str
    ) -> Dict[str, Any]:
        """Owner, or staff in the owner's organization (SUPERADMIN anywhere)."""
        async with self.get_session() as session:
            document = await self.fetch_one(
                session,
                select(expert_documents, users.c.org_id.label("owner_org_id"))
                .select_from(
                    expert_documents.join(users, users.c.id == expert_documents.c.user_id)
                )
                .where(expert_documents.c.id == document_id),
            )
        if not document:
            raise NotFound("Document not found")
        if document["user_id"] != caller.user_id:
            if not has_capability(caller.role, Capability.ACCESS_ALL_DOCUMENTS):
                raise NotFound("Document not found")
            ensure_same_tenant(caller.role, caller.org_id, document["owner_org_id"])
        return document

    async def signed_url(self, caller: AuthTokenPayload, document_id: str) -> Dict[str, Any]:
        document = await self._get_accessible(caller, document_id)
        token = create_document_token(document["id"], document["object_key"])
        return {
            "url": f"/api/documents/{document['id']}/stream?token={token}",
            "expiresIn": settings.document_url_ttl_seconds,
            "fileName": document["file_name"],
            "fileType": document["file_type"],
        }

    async def mark_submitted(self, user_id: str) -> int:
        """Flip the user's draft documents to submitted."""
        async with self.get_session() as session:
            result = await session.execute(
                update(expert_documents)
                .where(
                    expert_documents.c.user_id == user_id,
                    expert_documents.c.application_status == "draft",
                )
                .values(application_status="submitted", updated_at=utc_now())
            )
        return result.rowcount

    async def delete(self, caller: AuthTokenPayload, document_id: str) -> None:
        """
        Remove the stored object, then the row.

        Raises:
            DependencyUnavailable: If storage deletion fails; the row is kept
        """
        document = await self._get_accessible(caller, document_id)
        try:
            await self.storage.delete(document["object_key"])
        except OSError as e:
            logger.error(f"Storage delete failed for {document['object_key']}: {e}")
            raise DependencyUnavailable("Failed to delete document from storage")

        async with self.get_session() as session:
            await session.execute(
                delete(expert_documents).where(expert_documents.c.id == document_id)
            )
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=caller.org_id,
                action=ActivityAction.DOCUMENT_DELETED,
                entity_type="ExpertDocument",
                entity_id=document_id,
                details={"fileName": document["file_name"]},
            )
        self.log_operation("DELETE", document_id)
