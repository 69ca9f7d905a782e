# adminhub/services/kyc_service.py
"""
KYC document workflow: upload, edit, delete, verify, reviewer comments and the
per-user KYC profile that tracks which required documents are in.

Endpoints translate the exceptions defined here into HTTP responses:
    KYCValidationError     -> 400
    DocumentNotFoundError  -> 404
    KYCUserNotFoundError   -> 404
    FileValidationError    -> 400 (raised by the file storage service)
    KYCError (anything else) -> 500
"""

import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Tuple, Iterable

from ..core.config import settings
from ..db import crud
from ..models.auth import Principal
from ..models.enums import (
    KYCDocumentType, KYCDocumentStatus, KYCProfileStatus,
    VerificationDecision, ProfileStatusDecision,
)
from ..models.kyc import (
    KYCDocument, KYCDocumentCreate, KYCDocumentUpdate, KYCDocumentForReview,
    KYCProfile, KYCProfileSummary, KYCStatistics, KYCExport, StorageStats,
    DocumentOwner, DocumentVerifier, PaginatedKYCDocuments, Pagination,
    PreviousVersion, ReviewDraftEntry, ReviewDraftEntryOut, BulkVerifyResult,
)
from . import file_storage
from .file_storage import FileValidationError

logger = logging.getLogger(__name__)

REQUIRED_DOCUMENT_COUNT = 3
RECENT_UPLOAD_WINDOW = timedelta(days=7)


# --- Exceptions ---
class KYCError(Exception):
    """Base class for KYC workflow failures."""
    pass

class KYCValidationError(KYCError):
    """Bad input: invalid status, blank comment, empty id list."""
    pass

class DocumentNotFoundError(KYCError):
    pass

class KYCUserNotFoundError(KYCError):
    pass


# --- Profile helpers ---

def _new_profile(user_id: uuid.UUID) -> KYCProfile:
    return KYCProfile(_id=uuid.uuid4(), user_id=user_id)

async def _load_or_create_profile(user_id: uuid.UUID) -> KYCProfile:
    profile = await crud.get_kyc_profile(user_id)
    if profile is not None:
        return profile
    logger.info(f"Creating KYC profile for user {user_id}")
    profile = await crud.save_kyc_profile(_new_profile(user_id))
    if profile is None:
        raise KYCError("Failed to create KYC profile")
    return profile

async def _save_profile(profile: KYCProfile) -> KYCProfile:
    saved = await crud.save_kyc_profile(profile)
    if saved is None:
        raise KYCError("Failed to update KYC profile")
    return saved

async def _record_submission(user_id: uuid.UUID, document_type: str, document_id: uuid.UUID) -> KYCProfile:
    profile = await _load_or_create_profile(user_id)
    slot = profile.required_documents.slot_for(document_type, create=True)
    slot.mark_submitted(document_id)
    profile.last_submitted_at = datetime.now(timezone.utc)
    profile.refresh_status()
    return await _save_profile(profile)

async def _record_removal(user_id: uuid.UUID, document_type: str) -> None:
    profile = await crud.get_kyc_profile(user_id)
    if profile is None:
        return
    slot = profile.required_documents.slot_for(document_type)
    if slot is not None:
        slot.clear()
    profile.refresh_status()
    await _save_profile(profile)

async def _record_verification(
    user_id: uuid.UUID,
    document_type: str,
    is_verified: bool,
    verified_by: Optional[uuid.UUID],
) -> None:
    profile = await crud.get_kyc_profile(user_id)
    if profile is None:
        return
    slot = profile.required_documents.slot_for(document_type)
    if slot is not None:
        slot.is_verified = is_verified
    if profile.all_required_verified() and profile.status == KYCProfileStatus.PENDING_VERIFICATION.value:
        logger.info(f"All required KYC documents verified for user {user_id}; marking profile verified.")
        profile.mark_verified(verified_by, "All required documents verified", settings.KYC_VALIDITY_DAYS)
    await _save_profile(profile)

def _summarise(profile: KYCProfile, documents: List[KYCDocument]) -> KYCProfileSummary:
    """PAN, Aadhar and the newest `other` document each count once toward the required three."""
    uploaded = 0
    approved = 0
    pan_doc = next((d for d in documents if d.document_type == KYCDocumentType.PAN_CARD.value), None)
    aadhar_doc = next((d for d in documents if d.document_type == KYCDocumentType.AADHAR_CARD.value), None)
    other_docs = [d for d in documents if d.document_type == KYCDocumentType.OTHER.value]

    for counted in (pan_doc, aadhar_doc, other_docs[0] if other_docs else None):
        if counted is None:
            continue
        uploaded += 1
        if counted.status == KYCDocumentStatus.VERIFIED.value:
            approved += 1

    return KYCProfileSummary(
        profile=profile,
        documents=documents,
        required_count=REQUIRED_DOCUMENT_COUNT,
        uploaded_count=uploaded,
        approved_count=approved,
        percent_uploaded=round(uploaded / REQUIRED_DOCUMENT_COUNT * 100),
        pan_card_number=pan_doc.document_number if pan_doc else None,
        aadhar_card_number=aadhar_doc.document_number if aadhar_doc else None,
        other_documents=other_docs,
        is_expired=profile.is_expired,
    )

def _check_verification_status(status: str) -> str:
    allowed = [s.value for s in VerificationDecision]
    if status not in allowed:
        raise KYCValidationError("Invalid status. Must be pending, verified, or rejected")
    return status

async def _with_reviewers(entries: Iterable[ReviewDraftEntry]) -> List[ReviewDraftEntryOut]:
    entries = list(entries)
    reviewers = await crud.get_user_summaries(entry.reviewer for entry in entries)
    history = []
    for entry in entries:
        reviewer = reviewers.get(entry.reviewer, {})
        history.append(ReviewDraftEntryOut(
            **entry.model_dump(),
            reviewer_name=reviewer.get("name"),
            reviewer_email=reviewer.get("email"),
        ))
    return history


# --- Profile Operations ---

async def get_kyc_profile(user_id: uuid.UUID) -> KYCProfileSummary:
    profile = await _load_or_create_profile(user_id)
    documents = await crud.list_kyc_documents_for_user(user_id)
    return _summarise(profile, documents)

async def get_kyc_profile_by_user_id(user_id: uuid.UUID) -> KYCProfileSummary:
    """Admin view of another user's KYC profile."""
    if await crud.get_user_by_id(user_id) is None:
        raise KYCUserNotFoundError("User not found")
    return await get_kyc_profile(user_id)

async def update_kyc_profile_status(
    user_id: uuid.UUID,
    status: str,
    remarks: Optional[str],
    updated_by: uuid.UUID,
) -> KYCProfile:
    if status not in [s.value for s in ProfileStatusDecision]:
        raise KYCValidationError("Invalid status. Must be pending, verified, rejected, or expired")

    profile = await _load_or_create_profile(user_id)
    if status == ProfileStatusDecision.VERIFIED.value:
        profile.mark_verified(updated_by, remarks or "", settings.KYC_VALIDITY_DAYS)
    elif status == ProfileStatusDecision.REJECTED.value:
        profile.verification_remarks = remarks
        profile.mark_rejected(remarks or "")
    elif status == ProfileStatusDecision.PENDING.value:
        profile.status = KYCProfileStatus.PENDING_VERIFICATION
        profile.verification_remarks = remarks
    else:
        profile.status = KYCProfileStatus.EXPIRED
        profile.verification_remarks = remarks

    logger.info(f"KYC profile for user {user_id} set to '{profile.status}' by {updated_by}")
    return await _save_profile(profile)


# --- Document Operations ---

async def upload_document(
    user_id: uuid.UUID,
    document_in: KYCDocumentCreate,
    data: bytes,
    file_name: str,
    content_type: Optional[str],
) -> KYCDocument:
    """
    Stores the file, creates one pending document and marks the matching profile slot submitted.

    Raises:
        KYCUserNotFoundError: Unknown user.
        FileValidationError: File too large or of a disallowed type.
        KYCError: Storage or database failure.
    """
    if await crud.get_user_by_id(user_id) is None:
        raise KYCUserNotFoundError("User not found")

    stored = await file_storage.save_file(data, file_name, content_type, str(user_id), document_in.document_type)
    if stored is None:
        raise KYCError("Failed to store uploaded file")

    document = await crud.create_kyc_document(document_in, user_id, stored)
    if document is None:
        await file_storage.delete_file(stored.file_path)
        raise KYCError("Failed to save KYC document")

    await _record_submission(user_id, document.document_type, document.id)
    logger.info(f"KYC document {document.id} ({document.document_type}) uploaded for user {user_id}")
    return document

async def update_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    document_in: KYCDocumentUpdate,
    data: Optional[bytes] = None,
    file_name: Optional[str] = None,
    content_type: Optional[str] = None,
) -> KYCDocument:
    """
    Edits an owned document. A new file archives the old one, is recorded in
    `previous_versions`, bumps the version and sends the document back to `pending`.
    """
    document = await crud.get_kyc_document(document_id, user_id)
    if document is None:
        raise DocumentNotFoundError("Document not found")

    fields = document_in.model_dump(exclude_none=True)
    previous_version: Optional[PreviousVersion] = None

    if data is not None:
        errors = file_storage.validate_file(content_type, len(data))
        if errors:
            raise FileValidationError(errors)
        # Save first; the current file stays in place if storage fails
        stored = await file_storage.save_file(data, file_name or document.original_file_name, content_type, str(user_id), document.document_type)
        if stored is None:
            raise KYCError("Failed to store uploaded file")
        archived_path = await file_storage.archive_file(document.file_path, "document_update")
        previous_version = PreviousVersion(
            file_path=archived_path or document.file_path,
            file_name=document.file_name,
            reason="document_update",
        )
        fields.update({
            "file_name": stored.file_name,
            "original_file_name": stored.original_file_name,
            "file_path": stored.file_path,
            "file_size": stored.file_size,
            "mime_type": stored.mime_type,
            "status": KYCDocumentStatus.PENDING.value,
        })

    if not fields:
        return document

    updated = await crud.update_kyc_document(document_id, user_id, fields, previous_version)
    if updated is None:
        if previous_version is not None:
            await file_storage.delete_file(fields["file_path"])
        raise KYCError("Failed to update KYC document")
    if previous_version is not None:
        await _record_verification(user_id, updated.document_type, False, None)
    return updated

async def delete_document(document_id: uuid.UUID, user_id: uuid.UUID) -> None:
    document = await crud.get_kyc_document(document_id, user_id)
    if document is None:
        raise DocumentNotFoundError("Document not found")

    await file_storage.archive_file(document.file_path, "document_deletion")
    if not await crud.delete_kyc_document(document_id, user_id):
        raise KYCError("Failed to delete KYC document")
    await _record_removal(user_id, document.document_type)

async def verify_document(
    document_id: uuid.UUID,
    verified_by: uuid.UUID,
    status: str,
    remarks: Optional[str] = "",
) -> KYCDocument:
    """Sets the review outcome. Last write wins; transitions are not guarded."""
    _check_verification_status(status)
    document = await crud.set_kyc_document_verification(document_id, status, verified_by, remarks)
    if document is None:
        raise DocumentNotFoundError("Document not found")
    logger.info(f"KYC document {document_id} set to '{status}' by {verified_by}")
    await _record_verification(
        document.user_id, document.document_type, status == VerificationDecision.VERIFIED.value, verified_by
    )
    return document

async def bulk_verify_documents(
    document_ids: List[uuid.UUID],
    verified_by: uuid.UUID,
    status: str,
    remarks: Optional[str] = "",
) -> List[BulkVerifyResult]:
    if not document_ids:
        raise KYCValidationError("Document IDs array is required")
    _check_verification_status(status)

    results: List[BulkVerifyResult] = []
    for document_id in document_ids:
        try:
            document = await verify_document(document_id, verified_by, status, remarks)
            results.append(BulkVerifyResult(document_id=document_id, success=True, document=document))
        except KYCError as e:
            logger.warning(f"Bulk verify failed for {document_id}: {e}")
            results.append(BulkVerifyResult(document_id=document_id, success=False, error=str(e)))
    return results

async def save_draft_comment(document_id: uuid.UUID, reviewer: uuid.UUID, comment: Optional[str]) -> List[ReviewDraftEntryOut]:
    if not comment or not comment.strip():
        raise KYCValidationError("Comment is required.")
    entry = ReviewDraftEntry(reviewer=reviewer, comment=comment.strip())
    document = await crud.append_review_draft(document_id, entry)
    if document is None:
        raise DocumentNotFoundError("Document not found")
    return await _with_reviewers(document.review_draft_history)

async def get_draft_history(document_id: uuid.UUID) -> List[ReviewDraftEntryOut]:
    document = await crud.get_kyc_document(document_id)
    if document is None:
        raise DocumentNotFoundError("Document not found")
    return await _with_reviewers(document.review_draft_history)

async def get_documents_for_verification(
    status: Optional[str] = None,
    document_type: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> PaginatedKYCDocuments:
    page = max(page, 1)
    limit = max(limit, 1)
    query = crud.build_kyc_document_query(status, document_type)
    documents, total = await crud.find_kyc_documents(query, skip=(page - 1) * limit, limit=limit)

    people = await crud.get_user_summaries(
        [d.user_id for d in documents] + [d.verified_by for d in documents if d.verified_by]
    )
    data: List[KYCDocumentForReview] = []
    for document in documents:
        owner = people.get(document.user_id)
        verifier = people.get(document.verified_by) if document.verified_by else None
        data.append(KYCDocumentForReview(
            **document.model_dump(by_alias=True),
            owner=DocumentOwner(id=document.user_id, **{k: owner.get(k) for k in ("user_id", "creator_id", "name", "email", "user_type")}) if owner else None,
            verifier=DocumentVerifier(id=document.verified_by, name=verifier.get("name"), email=verifier.get("email")) if verifier else None,
        ))

    total_pages = math.ceil(total / limit) if total else 0
    return PaginatedKYCDocuments(
        data=data,
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_documents=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    )

async def get_document_for_download(document_id: uuid.UUID, principal: Principal) -> Tuple[KYCDocument, bytes]:
    """
    Returns the document and its bytes when the requester owns it or may view any KYC file.
    Anyone else gets DocumentNotFoundError, the same as for a missing document.
    """
    owner_filter = None if principal.can_view_any_kyc() else principal.id
    document = await crud.get_kyc_document(document_id, owner_filter)
    if document is None:
        raise DocumentNotFoundError("Document not found")
    data = await file_storage.download_file_as_bytes(document.file_path)
    if data is None:
        raise DocumentNotFoundError("Document file not found")
    return document, data


# --- Reporting & Maintenance ---

async def get_kyc_statistics() -> KYCStatistics:
    by_document_type = {t.value: 0 for t in KYCDocumentType}
    by_document_type.update(await crud.count_kyc_documents_by_type())
    since = datetime.now(timezone.utc) - RECENT_UPLOAD_WINDOW
    return KYCStatistics(
        total_profiles=await crud.count_active_kyc_profiles(),
        by_status=await crud.count_kyc_profiles_by_status(),
        by_document_type=by_document_type,
        recent_uploads=await crud.count_kyc_documents({"created_at": {"$gte": since}}),
        pending_verifications=await crud.count_kyc_documents({"status": KYCDocumentStatus.PENDING.value}),
    )

async def get_expiring_profiles(days_threshold: int = 30) -> List[KYCProfile]:
    now = datetime.now(timezone.utc)
    return await crud.find_expiring_kyc_profiles(now, now + timedelta(days=days_threshold))

async def export_kyc_data(user_id: uuid.UUID) -> KYCExport:
    summary = await get_kyc_profile(user_id)
    documents = summary.documents
    return KYCExport(
        profile=summary.profile,
        documents=documents,
        total_documents=len(documents),
        verified_documents=sum(1 for d in documents if d.status == KYCDocumentStatus.VERIFIED.value),
    )

async def get_storage_stats() -> StorageStats:
    stats = await file_storage.get_storage_stats()
    if stats is None:
        raise KYCError("Storage statistics are unavailable")
    return stats

async def cleanup_temp_files(max_age_hours: float = 24) -> int:
    removed = await file_storage.cleanup_temp_files(timedelta(hours=max_age_hours))
    logger.info(f"Removed {removed} temporary KYC files older than {max_age_hours}h")
    return removed
