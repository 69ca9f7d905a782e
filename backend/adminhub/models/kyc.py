# adminhub/models/kyc.py
from pydantic import BaseModel, Field, ConfigDict, field_validator, computed_field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone, timedelta
import uuid

from .enums import KYCDocumentType, KYCDocumentStatus, KYCProfileStatus

DOCUMENT_TYPE_DISPLAY: Dict[str, str] = {
    KYCDocumentType.PAN_CARD.value: "PAN Card",
    KYCDocumentType.AADHAR_CARD.value: "Aadhar Card",
    KYCDocumentType.PASSPORT.value: "Passport",
    KYCDocumentType.DRIVING_LICENSE.value: "Driving License",
    KYCDocumentType.VOTER_ID.value: "Voter ID",
    KYCDocumentType.OTHER.value: "Other Document",
}

MAX_PREVIOUS_VERSIONS = 5

# --- Document sub-records ---

class ReviewDraftEntry(BaseModel):
    """One reviewer comment on the document timeline. Entries are only appended."""
    reviewer: uuid.UUID
    comment: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class ReviewDraftEntryOut(ReviewDraftEntry):
    reviewer_name: Optional[str] = None
    reviewer_email: Optional[str] = None

class PreviousVersion(BaseModel):
    file_path: str
    file_name: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None

class StoredFile(BaseModel):
    """What the file storage service reports after saving an upload."""
    file_name: str
    original_file_name: str
    file_path: str
    file_size: int
    mime_type: str
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

# --- KYC Document ---

class KYCDocumentBase(BaseModel):
    document_type: KYCDocumentType
    document_name: str = Field(..., min_length=1, max_length=200)
    document_number: str = Field(..., min_length=1, max_length=100)

    model_config = ConfigDict(
        use_enum_values=True,
        from_attributes=True,
        populate_by_name=True,
    )

    @field_validator("document_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("document_number")
    @classmethod
    def normalise_number(cls, value: str) -> str:
        return value.strip().upper()

class KYCDocumentCreate(KYCDocumentBase):
    pass

class KYCDocumentInDBBase(KYCDocumentBase):
    id: uuid.UUID = Field(..., alias="_id")
    user_id: uuid.UUID
    file_name: str
    original_file_name: str
    file_path: str
    file_size: int
    mime_type: str
    status: KYCDocumentStatus = Field(default=KYCDocumentStatus.PENDING)
    verified_by: Optional[uuid.UUID] = None
    verified_at: Optional[datetime] = None
    verification_remarks: Optional[str] = None
    review_draft_history: List[ReviewDraftEntry] = Field(default_factory=list)
    expiry_date: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    version: int = 1
    previous_versions: List[PreviousVersion] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

# Final model returned by the API
class KYCDocument(KYCDocumentInDBBase):

    @computed_field
    @property
    def document_type_display(self) -> str:
        return DOCUMENT_TYPE_DISPLAY.get(self.document_type, "Unknown")

class KYCDocumentUpdate(BaseModel):
    document_name: Optional[str] = Field(None, min_length=1, max_length=200)
    document_number: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("document_name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else value

    @field_validator("document_number")
    @classmethod
    def normalise_number(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value is not None else value

class DocumentOwner(BaseModel):
    id: uuid.UUID
    user_id: Optional[str] = None
    creator_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    user_type: Optional[uuid.UUID] = None

class DocumentVerifier(BaseModel):
    id: uuid.UUID
    name: Optional[str] = None
    email: Optional[str] = None

class KYCDocumentForReview(KYCDocument):
    """Document with its owner and verifier attached for the admin review list."""
    owner: Optional[DocumentOwner] = None
    verifier: Optional[DocumentVerifier] = None

# --- KYC Profile ---

class RequiredDocumentSlot(BaseModel):
    document_type: KYCDocumentType
    is_required: bool = True
    is_submitted: bool = False
    is_verified: bool = False
    document_id: Optional[uuid.UUID] = None

    model_config = ConfigDict(use_enum_values=True)

    def mark_submitted(self, document_id: uuid.UUID) -> None:
        self.is_submitted = True
        self.document_id = document_id

    def clear(self) -> None:
        self.is_submitted = False
        self.is_verified = False
        self.document_id = None

class RequiredDocuments(BaseModel):
    pan_card: RequiredDocumentSlot = Field(
        default_factory=lambda: RequiredDocumentSlot(document_type=KYCDocumentType.PAN_CARD)
    )
    aadhar_card: RequiredDocumentSlot = Field(
        default_factory=lambda: RequiredDocumentSlot(document_type=KYCDocumentType.AADHAR_CARD)
    )
    other_documents: List[RequiredDocumentSlot] = Field(default_factory=list)

    def slot_for(self, document_type: str, create: bool = False) -> Optional[RequiredDocumentSlot]:
        """Finds the slot tracking a document type. Non-PAN/Aadhar slots are optional."""
        if document_type == KYCDocumentType.PAN_CARD.value:
            return self.pan_card
        if document_type == KYCDocumentType.AADHAR_CARD.value:
            return self.aadhar_card
        for slot in self.other_documents:
            if slot.document_type == document_type:
                return slot
        if create:
            slot = RequiredDocumentSlot(document_type=document_type, is_required=False)
            self.other_documents.append(slot)
            return slot
        return None

    def required_slots(self) -> List[RequiredDocumentSlot]:
        return [self.pan_card, self.aadhar_card] + [s for s in self.other_documents if s.is_required]

class KYCProfileBase(BaseModel):
    user_id: uuid.UUID
    status: KYCProfileStatus = Field(default=KYCProfileStatus.NOT_STARTED)
    completion_percentage: int = Field(default=0, ge=0, le=100)
    required_documents: RequiredDocuments = Field(default_factory=RequiredDocuments)
    verified_by: Optional[uuid.UUID] = None
    verified_at: Optional[datetime] = None
    verification_remarks: Optional[str] = None
    kyc_expiry_date: Optional[datetime] = None
    last_submitted_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_details: List[str] = Field(default_factory=list)
    is_active: bool = True
    version: int = 1

    model_config = ConfigDict(
        use_enum_values=True,
        from_attributes=True,
        populate_by_name=True,
        validate_assignment=True,
    )

class KYCProfile(KYCProfileBase):
    id: uuid.UUID = Field(..., alias="_id")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def calculate_completion_percentage(self) -> int:
        required = self.required_documents.required_slots()
        submitted = [slot for slot in required if slot.is_submitted]
        percentage = round(len(submitted) / len(required) * 100) if required else 100
        self.completion_percentage = percentage
        return percentage

    def refresh_status(self) -> None:
        """Moves the profile along as slots are filled. Verified states are left alone at 100%."""
        completion = self.calculate_completion_percentage()
        if completion == 0:
            self.status = KYCProfileStatus.NOT_STARTED
        elif completion < 100:
            self.status = KYCProfileStatus.IN_PROGRESS
        elif self.status in (KYCProfileStatus.NOT_STARTED.value, KYCProfileStatus.IN_PROGRESS.value):
            self.status = KYCProfileStatus.PENDING_VERIFICATION

    def all_required_verified(self) -> bool:
        return all(slot.is_submitted and slot.is_verified for slot in self.required_documents.required_slots())

    def mark_verified(self, verified_by: Optional[uuid.UUID], remarks: str, validity_days: int = 365) -> None:
        now = datetime.now(timezone.utc)
        self.status = KYCProfileStatus.VERIFIED
        self.verified_by = verified_by
        self.verified_at = now
        self.verification_remarks = remarks
        self.kyc_expiry_date = now + timedelta(days=validity_days)

    def mark_rejected(self, reason: str, details: Optional[List[str]] = None) -> None:
        self.status = KYCProfileStatus.REJECTED
        self.rejection_reason = reason
        self.rejection_details = details or []

    @property
    def is_expired(self) -> bool:
        if self.kyc_expiry_date is None:
            return False
        expiry = self.kyc_expiry_date
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return expiry < datetime.now(timezone.utc)

class KYCProfileSummary(BaseModel):
    """Profile plus the document counts shown on the creator's KYC page."""
    profile: KYCProfile
    documents: List[KYCDocument] = Field(default_factory=list)
    required_count: int = 3
    uploaded_count: int = 0
    approved_count: int = 0
    percent_uploaded: int = 0
    pan_card_number: Optional[str] = None
    aadhar_card_number: Optional[str] = None
    other_documents: List[KYCDocument] = Field(default_factory=list)
    is_expired: bool = False

# --- Requests / Responses ---

class VerifyDocumentRequest(BaseModel):
    # Checked against the allowed statuses in the endpoint so that a bad value is a 400
    status: str
    remarks: Optional[str] = ""

class BulkVerifyRequest(BaseModel):
    document_ids: List[uuid.UUID] = Field(default_factory=list)
    status: str
    remarks: Optional[str] = ""

class BulkVerifyResult(BaseModel):
    document_id: uuid.UUID
    success: bool
    document: Optional[KYCDocument] = None
    error: Optional[str] = None

class ProfileStatusRequest(BaseModel):
    status: str
    remarks: Optional[str] = ""

class DraftCommentRequest(BaseModel):
    comment: Optional[str] = None

class CleanupTempRequest(BaseModel):
    max_age_hours: float = Field(default=24, gt=0)

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_documents: int
    has_next_page: bool
    has_prev_page: bool

class PaginatedKYCDocuments(BaseModel):
    data: List[KYCDocumentForReview]
    pagination: Pagination

class KYCStatistics(BaseModel):
    total_profiles: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_document_type: Dict[str, int] = Field(default_factory=dict)
    recent_uploads: int = 0
    pending_verifications: int = 0

class StorageBucketStats(BaseModel):
    count: int = 0
    size: int = 0

class StorageStats(BaseModel):
    total_files: int = 0
    total_size: int = 0
    by_type: Dict[str, StorageBucketStats] = Field(default_factory=dict)

class KYCExport(BaseModel):
    profile: Optional[KYCProfile] = None
    documents: List[KYCDocument] = Field(default_factory=list)
    export_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    total_documents: int = 0
    verified_documents: int = 0

class KYCDocumentResponse(BaseModel):
    message: str
    document: KYCDocument

class ReviewHistoryResponse(BaseModel):
    message: Optional[str] = None
    data: List[ReviewDraftEntryOut] = Field(default_factory=list)
