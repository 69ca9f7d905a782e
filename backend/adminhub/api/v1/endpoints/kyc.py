# adminhub/api/v1/endpoints/kyc.py

import uuid
import logging
from typing import List, Optional, Dict, Any
from fastapi import (
    APIRouter, HTTPException, status, Query, Depends, Response,
    UploadFile, File, Form, Body
)
from pydantic import ValidationError

from adminhub.models.auth import Principal
from adminhub.models.enums import KYCDocumentType, VerificationDecision, ProfileStatusDecision
from adminhub.models.kyc import (
    KYCDocument, KYCDocumentCreate, KYCDocumentUpdate, KYCDocumentResponse,
    KYCProfile, KYCProfileSummary, KYCStatistics, KYCExport, StorageStats,
    PaginatedKYCDocuments, BulkVerifyResult, ReviewHistoryResponse,
    VerifyDocumentRequest, BulkVerifyRequest, ProfileStatusRequest,
    DraftCommentRequest, CleanupTempRequest,
)
from adminhub.services import kyc_service
from adminhub.services.kyc_service import KYCValidationError, DocumentNotFoundError, KYCUserNotFoundError
from adminhub.services.file_storage import FileValidationError
from adminhub.api.deps import get_current_principal, require_permission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/kyc",
    tags=["KYC"]
)

KYC_RESOURCE = "KYC"
VERIFICATION_STATUSES = [s.value for s in VerificationDecision]
PROFILE_STATUSES = [s.value for s in ProfileStatusDecision]


def _to_http(e: Exception, action: str) -> HTTPException:
    """Maps service exceptions onto HTTP errors. Anything unexpected is logged and hidden behind a 500."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, (KYCValidationError, FileValidationError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, (DocumentNotFoundError, KYCUserNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    logger.error(f"Failed to {action}: {e}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}.")

@router.get("/health", summary="KYC service liveness")
async def kyc_health() -> Dict[str, Any]:
    return {"success": True, "message": "KYC service is running"}


# === Document owner endpoints ===

@router.get(
    "/profile",
    response_model=KYCProfileSummary,
    summary="Get the caller's KYC profile (Protected)",
    description="Creates the profile on first access. Counts PAN, Aadhar and one other document toward the required three."
)
async def read_my_kyc_profile(principal: Principal = Depends(get_current_principal)):
    try:
        return await kyc_service.get_kyc_profile(principal.id)
    except Exception as e:
        raise _to_http(e, "get KYC profile")

@router.post(
    "/upload",
    response_model=KYCDocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a KYC document (Protected)",
    description="Multipart upload. Files up to 5MB; JPEG, PNG or PDF. The document starts as `pending`."
)
async def upload_kyc_document(
    document_type: Optional[str] = Form(None, description="pan_card, aadhar_card, passport, driving_license, voter_id or other"),
    document_name: Optional[str] = Form(None),
    document_number: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None, description="The document file (JPEG, PNG or PDF)"),
    principal: Principal = Depends(get_current_principal),
):
    if document is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    if not document_type or not document_name or not document_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: document_type, document_name, document_number",
        )
    if document_type not in [t.value for t in KYCDocumentType]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid document type")
    try:
        document_in = KYCDocumentCreate(document_type=document_type, document_name=document_name, document_number=document_number)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.errors()[0].get("msg", "Invalid document data"))

    logger.info(f"User {principal.id} uploading KYC {document_type} '{document.filename}'")
    try:
        data = await document.read()
        created = await kyc_service.upload_document(
            principal.id, document_in, data, document.filename or "document", document.content_type
        )
    except Exception as e:
        raise _to_http(e, "upload document")
    return KYCDocumentResponse(message="Document uploaded successfully", document=created)

@router.put(
    "/documents/{document_id}",
    response_model=KYCDocumentResponse,
    summary="Edit one of the caller's KYC documents (Protected)",
    description="A new file archives the previous one and sends the document back to `pending`."
)
async def update_kyc_document(
    document_id: uuid.UUID,
    document_name: Optional[str] = Form(None),
    document_number: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
):
    try:
        document_in = KYCDocumentUpdate(document_name=document_name or None, document_number=document_number or None)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.errors()[0].get("msg", "Invalid document data"))
    try:
        data = await document.read() if document is not None else None
        updated = await kyc_service.update_document(
            document_id, principal.id, document_in,
            data=data,
            file_name=document.filename if document is not None else None,
            content_type=document.content_type if document is not None else None,
        )
    except Exception as e:
        raise _to_http(e, "update document")
    return KYCDocumentResponse(message="Document updated successfully", document=updated)

@router.delete(
    "/documents/{document_id}",
    summary="Delete one of the caller's KYC documents (Protected)",
    description="The stored file is archived and the document removed."
)
async def delete_kyc_document(document_id: uuid.UUID, principal: Principal = Depends(get_current_principal)) -> Dict[str, Any]:
    try:
        await kyc_service.delete_document(document_id, principal.id)
    except Exception as e:
        raise _to_http(e, "delete document")
    return {"success": True, "message": "Document deleted successfully"}

@router.get(
    "/documents/{document_id}/download",
    summary="Download a KYC document file (Protected)",
    description="Owners may download their own files; KYC reviewers with a view-any grant may download any file.",
    response_class=Response,
)
async def download_kyc_document(document_id: uuid.UUID, principal: Principal = Depends(get_current_principal)):
    try:
        document, data = await kyc_service.get_document_for_download(document_id, principal)
    except Exception as e:
        raise _to_http(e, "download document")
    return Response(
        content=data,
        media_type=document.mime_type,
        headers={"Content-Disposition": f'inline; filename="{document.file_name}"'},
    )


# === Reviewer timeline ===

@router.post(
    "/documents/{document_id}/draft",
    response_model=ReviewHistoryResponse,
    summary="Add a reviewer comment to a document's timeline (Protected)",
)
async def save_draft_comment(
    document_id: uuid.UUID,
    draft_in: DraftCommentRequest,
    principal: Principal = Depends(require_permission(KYC_RESOURCE, "Edit")),
):
    try:
        history = await kyc_service.save_draft_comment(document_id, principal.id, draft_in.comment)
    except Exception as e:
        raise _to_http(e, "save draft comment")
    return ReviewHistoryResponse(message="Draft comment saved.", data=history)

@router.get(
    "/documents/{document_id}/draft-history",
    response_model=ReviewHistoryResponse,
    summary="Get a document's reviewer comments (Protected)",
)
async def read_draft_history(document_id: uuid.UUID, principal: Principal = Depends(require_permission(KYC_RESOURCE, "View"))):
    try:
        history = await kyc_service.get_draft_history(document_id)
    except Exception as e:
        raise _to_http(e, "fetch draft history")
    return ReviewHistoryResponse(data=history)


# === Admin endpoints ===

@router.get(
    "/admin/documents",
    response_model=PaginatedKYCDocuments,
    summary="List documents for verification (Protected)",
    description="Newest first, with owner and verifier attached. Paginated in the database."
)
async def read_documents_for_verification(
    status_filter: Optional[str] = Query(None, alias="status"),
    document_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(require_permission(KYC_RESOURCE, "View")),
):
    try:
        return await kyc_service.get_documents_for_verification(status_filter, document_type, page, limit)
    except Exception as e:
        raise _to_http(e, "get documents")

@router.put(
    "/admin/documents/{document_id}/verify",
    response_model=KYCDocumentResponse,
    summary="Set a document's verification status (Protected)",
)
async def verify_kyc_document(
    document_id: uuid.UUID,
    verify_in: VerifyDocumentRequest,
    principal: Principal = Depends(require_permission(KYC_RESOURCE, "Edit")),
):
    if verify_in.status not in VERIFICATION_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status. Must be pending, verified, or rejected")
    try:
        document = await kyc_service.verify_document(document_id, principal.id, verify_in.status, verify_in.remarks)
    except Exception as e:
        raise _to_http(e, "verify document")
    return KYCDocumentResponse(message="Document verification status updated", document=document)

@router.post(
    "/admin/bulk-verify",
    response_model=List[BulkVerifyResult],
    summary="Verify several documents (Protected)",
    description="Each document is processed independently; the result lists success or the error per id."
)
async def bulk_verify_kyc_documents(
    bulk_in: BulkVerifyRequest,
    principal: Principal = Depends(require_permission(KYC_RESOURCE, "Edit")),
):
    if not bulk_in.document_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Document IDs array is required")
    if bulk_in.status not in VERIFICATION_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status. Must be pending, verified, or rejected")
    try:
        return await kyc_service.bulk_verify_documents(bulk_in.document_ids, principal.id, bulk_in.status, bulk_in.remarks)
    except Exception as e:
        raise _to_http(e, "bulk verify documents")

@router.get("/admin/statistics", response_model=KYCStatistics, summary="KYC statistics (Protected)")
async def read_kyc_statistics(principal: Principal = Depends(require_permission(KYC_RESOURCE, "View"))):
    try:
        return await kyc_service.get_kyc_statistics()
    except Exception as e:
        raise _to_http(e, "get statistics")

@router.get("/admin/expiring-profiles", response_model=List[KYCProfile], summary="Verified profiles expiring soon (Protected)")
async def read_expiring_profiles(
    days: int = Query(30, ge=1, le=3650),
    principal: Principal = Depends(require_permission(KYC_RESOURCE, "View")),
):
    try:
        return await kyc_service.get_expiring_profiles(days)
    except Exception as e:
        raise _to_http(e, "get expiring profiles")

@router.get("/admin/storage-stats", response_model=StorageStats, summary="KYC file storage usage (Protected)")
async def read_storage_stats(principal: Principal = Depends(require_permission(KYC_RESOURCE, "View"))):
    try:
        return await kyc_service.get_storage_stats()
    except Exception as e:
        raise _to_http(e, "get storage statistics")

@router.post("/admin/cleanup-temp", summary="Remove stale temporary uploads (Protected)")
async def cleanup_temp_files(
    cleanup_in: CleanupTempRequest = Body(default_factory=CleanupTempRequest),
    principal: Principal = Depends(require_permission(KYC_RESOURCE, "Delete")),
) -> Dict[str, Any]:
    try:
        removed = await kyc_service.cleanup_temp_files(cleanup_in.max_age_hours)
    except Exception as e:
        raise _to_http(e, "clean up temporary files")
    return {"success": True, "message": "Temporary files cleaned up successfully", "removed": removed}

@router.get("/admin/users/{user_id}/profile", response_model=KYCProfileSummary, summary="Another user's KYC profile (Protected)")
async def read_user_kyc_profile(user_id: uuid.UUID, principal: Principal = Depends(require_permission(KYC_RESOURCE, "View"))):
    try:
        return await kyc_service.get_kyc_profile_by_user_id(user_id)
    except Exception as e:
        raise _to_http(e, "get KYC profile")

@router.put("/admin/users/{user_id}/status", response_model=KYCProfile, summary="Set a user's KYC profile status (Protected)")
async def update_user_kyc_status(
    user_id: uuid.UUID,
    status_in: ProfileStatusRequest,
    principal: Principal = Depends(require_permission(KYC_RESOURCE, "Edit")),
):
    if status_in.status not in PROFILE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status. Must be pending, verified, rejected, or expired")
    try:
        return await kyc_service.update_kyc_profile_status(user_id, status_in.status, status_in.remarks, principal.id)
    except Exception as e:
        raise _to_http(e, "update KYC profile status")

@router.get("/admin/users/{user_id}/export", response_model=KYCExport, summary="Export a user's KYC data (Protected)")
async def export_user_kyc_data(user_id: uuid.UUID, principal: Principal = Depends(require_permission(KYC_RESOURCE, "View"))):
    try:
        return await kyc_service.export_kyc_data(user_id)
    except Exception as e:
        raise _to_http(e, "export KYC data")
