"""
Document Endpoints
------------------
Upload, listing, signed stream URLs and deletion of expert documents.

Stream URLs carry a short-lived signed token, so the browser can open a
document directly without sending its bearer credential.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from loguru import logger

from app.auth.dependencies import get_current_user
from app.auth.jwt_utils import decode_document_token
from app.auth.models import AuthTokenPayload
from app.core.config_manager import settings
from app.core.exceptions import NotFound, PlatformError
from app.core.object_storage import LocalObjectStorage, ObjectNotFoundError, get_object_storage
from app.models.response_models import success_response
from app.psql_db_services.documents_service import DocumentsService

# ============================================================================
# ROUTER INITIALIZATION
# ============================================================================

router = APIRouter(prefix="/api/documents", tags=["Documents"])

UPLOAD_CHUNK_SIZE = 64 * 1024


async def read_capped(file: UploadFile, limit: int) -> bytes:
    """Read at most ``limit + 1`` bytes so an oversized body is never read in full."""
    buffer = bytearray()
    while len(buffer) <= limit:
        chunk = await file.read(min(UPLOAD_CHUNK_SIZE, limit + 1 - len(buffer)))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


def _document_view(row: dict) -> dict:
    return {
        "id": row["id"],
        "documentType": row["document_type"],
        "fileName": row["file_name"],
        "fileType": row["file_type"],
        "fileSize": row["file_size"],
        "reviewStatus": row["review_status"],
        "applicationStatus": row["application_status"],
        "applicationId": row["application_id"],
        "uploadedAt": row["uploaded_at"].isoformat() if row["uploaded_at"] else None,
    }


@router.post("/upload", status_code=status.HTTP_201_CREATED, summary="Upload a document")
async def upload_document(
    file: UploadFile = File(...),
    document_type: str = Form(default="other", alias="documentType"),
    current_user: AuthTokenPayload = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_object_storage),
):
    """
    Accepts JPEG, PNG, WebP, PDF, DOC and DOCX files up to 10MB.

    Raises:
        ValidationFailed 400: Empty, oversized or disallowed file
    """
    try:
        data = await read_capped(file, settings.max_upload_bytes)
        document = await DocumentsService(storage).upload(
            current_user,
            filename=file.filename or "file",
            content_type=file.content_type or "",
            data=data,
            document_type=document_type,
        )
        return success_response(_document_view(document), "Document uploaded")
    except PlatformError:
        raise
    except Exception as e:
        logger.exception(f"Document upload failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload document",
        )


@router.get("/my-documents", summary="List my documents")
async def my_documents(
    current_user: AuthTokenPayload = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_object_storage),
):
    try:
        documents = await DocumentsService(storage).list_for_user(current_user.user_id)
        return success_response([_document_view(row) for row in documents])
    except Exception as e:
        logger.exception(f"Listing documents failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list documents",
        )


@router.post("/submit", summary="Mark my draft documents as submitted")
async def submit_documents(
    current_user: AuthTokenPayload = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_object_storage),
):
    try:
        updated = await DocumentsService(storage).mark_submitted(current_user.user_id)
        return success_response({"updated": updated}, "Documents submitted")
    except Exception as e:
        logger.exception(f"Submitting documents failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit documents",
        )


@router.get("/{document_id}/url", summary="Get a short-lived stream URL")
async def document_url(
    document_id: str,
    current_user: AuthTokenPayload = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_object_storage),
):
    """Available to the owner and to administrators in the owner's organization."""
    try:
        return success_response(await DocumentsService(storage).signed_url(current_user, document_id))
    except PlatformError:
        raise
    except Exception as e:
        logger.exception(f"Signing document URL failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create document URL",
        )


@router.get("/{document_id}/stream", summary="Stream document bytes")
async def stream_document(
    document_id: str,
    token: str = Query(..., min_length=1),
    storage: LocalObjectStorage = Depends(get_object_storage),
):
    """
    Raises:
        Unauthenticated 401: Invalid or expired token
        NotFound 404: Object missing from storage
    """
    object_key = decode_document_token(token, document_id)
    try:
        data, content_type = await storage.get(object_key)
    except ObjectNotFoundError:
        raise NotFound("Document not found in storage")
    return Response(
        content=data,
        media_type=content_type,
        headers={"Cache-Control": "private, max-age=300"},
    )


@router.delete("/{document_id}", summary="Delete a document")
async def delete_document(
    document_id: str,
    current_user: AuthTokenPayload = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_object_storage),
):
    """
    Storage is deleted first; if that fails the record is kept and 500 returned.
    """
    try:
        await DocumentsService(storage).delete(current_user, document_id)
        return success_response(message="Document deleted")
    except PlatformError:
        raise
    except Exception as e:
        logger.exception(f"Deleting document failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete document",
        )
