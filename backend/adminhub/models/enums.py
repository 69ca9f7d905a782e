# adminhub/models/enums.py

from enum import Enum

# --- Account Related Enums ---

class AccountStatus(str, Enum):
    """Lifecycle status shared by users and creator signups."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    REJECTED = "rejected"
    DELETED = "deleted"

class UserTypeName(str, Enum):
    """Well-known user type names. Used for readable ID prefixes."""
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    CREATOR = "creator"
    BRAND = "brand"
    ACCOUNT_MANAGER = "accountmanager"
    EMPLOYEE = "employee"
    CEO_CREATOR = "ceo creator"

# --- Brand Related Enums ---

class Industry(str, Enum):
    FASHION = "Fashion"
    TECHNOLOGY = "Technology"
    FOOD = "Food"
    HEALTH = "Health"
    EDUCATION = "Education"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"

class CompanySize(str, Enum):
    SIZE_1_10 = "1-10"
    SIZE_11_50 = "11-50"
    SIZE_51_200 = "51-200"
    SIZE_201_500 = "201-500"
    SIZE_501_1000 = "501-1000"
    SIZE_1000_PLUS = "1000+"

class BrandVerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

# --- KYC Related Enums ---

class KYCDocumentType(str, Enum):
    """Identity documents accepted for KYC."""
    PAN_CARD = "pan_card"
    AADHAR_CARD = "aadhar_card"
    PASSPORT = "passport"
    DRIVING_LICENSE = "driving_license"
    VOTER_ID = "voter_id"
    OTHER = "other"

class KYCDocumentStatus(str, Enum):
    """Review status of a single KYC document."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"

class KYCProfileStatus(str, Enum):
    """Aggregate KYC status of a user."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"

class VerificationDecision(str, Enum):
    """Statuses an admin may set through the verify operation."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

class ProfileStatusDecision(str, Enum):
    """Statuses an admin may set on a whole KYC profile."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"
