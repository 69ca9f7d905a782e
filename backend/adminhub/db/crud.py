# adminhub/db/crud.py

# --- Core Imports ---
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument, ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError
from pymongo.collation import Collation
import uuid
from typing import List, Optional, Dict, Any, Tuple, Iterable
from datetime import datetime, timezone
import logging
import re
from contextlib import asynccontextmanager
from pydantic import ValidationError

# --- Database Access ---
from .database import get_database, transactions_available

# --- Pydantic Models ---
from adminhub.models.user import User, UserInDB, UserCreate, UserUpdate, UserTypeStats, CategorySelection
from adminhub.models.user_type import UserType, UserTypeCreate, UserTypeUpdate
from adminhub.models.role import Role, RoleCreate, PermissionGrant
from adminhub.models.permission import Permission, PermissionSyncResult
from adminhub.models.creator import Creator
from adminhub.models.brand import Brand, BrandCreate
from adminhub.models.category import CreatorCategory
from adminhub.models.kyc import (
    KYCDocument, KYCDocumentCreate, KYCProfile, StoredFile, PreviousVersion,
    ReviewDraftEntry, MAX_PREVIOUS_VERSIONS,
)
from adminhub.models.enums import AccountStatus, KYCDocumentStatus, KYCProfileStatus

# --- Logging Setup ---
logger = logging.getLogger(__name__)

# --- MongoDB Collection Names ---
USER_COLLECTION = "users"
USER_TYPE_COLLECTION = "usertypes"
ROLE_COLLECTION = "roles"
PERMISSION_COLLECTION = "permissions"
CREATOR_COLLECTION = "creators"
BRAND_COLLECTION = "brands"
CATEGORY_COLLECTION = "creatorcollections"
KYC_DOCUMENT_COLLECTION = "kycdocuments"
KYC_PROFILE_COLLECTION = "kycprofiles"
COUNTER_COLLECTION = "counters"

ALL_COLLECTIONS = (
    USER_COLLECTION, USER_TYPE_COLLECTION, ROLE_COLLECTION, PERMISSION_COLLECTION,
    CREATOR_COLLECTION, BRAND_COLLECTION, CATEGORY_COLLECTION,
    KYC_DOCUMENT_COLLECTION, KYC_PROFILE_COLLECTION, COUNTER_COLLECTION,
)

CREATOR_ID_PREFIX = "CA"
CREATOR_ID_COUNTER = "creator_id"
CREATOR_ID_PATTERN = re.compile(r"^CA(\d+)$")
NUMERIC_COLLATION = Collation(locale="en_US", numericOrdering=True)

# --- Transaction and Helper Functions ---
@asynccontextmanager
async def transaction():
    """
    Yields a session with an open transaction, or None when transactions are disabled.
    Any exception raised inside the block aborts the transaction and propagates.
    """
    db = get_database()
    if db is None: raise RuntimeError("Database connection not available for transaction (db is None)")
    if not transactions_available():
        logger.debug("Transactions unavailable. Proceeding without a session.")
        yield None
        return
    async with await db.client.start_session() as session:
        async with session.start_transaction():
            logger.debug("MongoDB transaction started.")
            try:
                yield session
            except Exception as e:
                logger.error(f"MongoDB transaction aborted due to error: {e}", exc_info=True)
                raise
        logger.debug("MongoDB transaction committed.")

def not_deleted_filter() -> Dict[str, Any]:
    return {"status": {"$ne": AccountStatus.DELETED.value}}

def active_filter() -> Dict[str, Any]:
    return {"is_active": {"$ne": False}}

def _get_collection(collection_name: str) -> Optional[AsyncIOMotorCollection]:
    db = get_database()
    if db is not None: return db[collection_name]
    logger.error("Database connection is not available (db object is None). Cannot get collection.")
    return None

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _exclude_id(query: Dict[str, Any], exclude_id: Optional[uuid.UUID]) -> Dict[str, Any]:
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return query

async def _collect(cursor, model, label: str) -> List[Any]:
    items = []
    async for doc in cursor:
        try:
            items.append(model(**doc))
        except ValidationError as validation_err:
            logger.error(f"Pydantic validation failed for {label} doc {doc.get('_id', 'UNKNOWN')}: {validation_err}")
    return items


# --- User CRUD Functions ---

async def user_exists(field: str, value: Any, exclude_id: Optional[uuid.UUID] = None) -> Optional[bool]:
    """
    True when any user, soft-deleted ones included, holds `value` in `field`
    (email, username, phone_number); the unique indexes cover deleted rows too.
    None when the lookup could not run.
    """
    if value is None: return False
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return None
    query = _exclude_id({field: value}, exclude_id)
    try:
        return await collection.count_documents(query, limit=1) > 0
    except Exception as e:
        logger.error(f"Error checking user {field} uniqueness: {e}", exc_info=True)
        return None

async def create_user(
    user_in: UserCreate,
    password_hash: str,
    user_id: str,
    creator_id: Optional[str] = None,
    session=None
) -> Optional[User]:
    collection = _get_collection(USER_COLLECTION); now = _now()
    if collection is None: return None
    new_id = uuid.uuid4()
    user_doc = user_in.model_dump(exclude={"password"})
    user_doc["email"] = str(user_doc["email"]).lower()
    user_doc.update({
        "_id": new_id,
        "password_hash": password_hash,
        "user_id": user_id,
        "creator_id": creator_id,
        "password_reset_required": False,
        "last_login": None,
        "created_at": now,
        "updated_at": now,
    })
    logger.info(f"Inserting user: {new_id} ({user_id})")
    try:
        await collection.insert_one(user_doc, session=session)
        created_doc = await collection.find_one({"_id": new_id}, session=session)
        if created_doc: return User(**created_doc)
        logger.error(f"Failed to retrieve user after insert: {new_id}"); return None
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate key inserting user {user_doc['email']}: {e.details}")
        return None
    except Exception as e:
        logger.error(f"Error inserting user: {e}", exc_info=True); return None

async def get_user_by_id(user_id: uuid.UUID, include_deleted: bool = False, session=None) -> Optional[User]:
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return None
    query: Dict[str, Any] = {"_id": user_id}
    if not include_deleted: query.update(not_deleted_filter())
    try: user_doc = await collection.find_one(query, session=session)
    except Exception as e: logger.error(f"Error getting user {user_id}: {e}", exc_info=True); return None
    if user_doc: return User(**user_doc)
    logger.info(f"User {user_id} not found."); return None

async def get_user_in_db_by_id(user_id: uuid.UUID) -> Optional[UserInDB]:
    """Includes the password hash. Only for authentication code paths."""
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return None
    try: user_doc = await collection.find_one({"_id": user_id})
    except Exception as e: logger.error(f"Error getting user {user_id}: {e}", exc_info=True); return None
    return UserInDB(**user_doc) if user_doc else None

async def get_user_in_db_by_email(email: str) -> Optional[UserInDB]:
    """Includes the password hash. Only for authentication code paths."""
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return None
    try: user_doc = await collection.find_one({"email": email.strip().lower()})
    except Exception as e: logger.error(f"Error getting user by email: {e}", exc_info=True); return None
    return UserInDB(**user_doc) if user_doc else None

async def get_user_summaries(user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Dict[str, Any]]:
    """Name/email/ID fields for a set of users, keyed by internal ID."""
    collection = _get_collection(USER_COLLECTION)
    ids = list({uid for uid in user_ids if uid is not None})
    if collection is None or not ids: return {}
    projection = {"name": 1, "email": 1, "user_id": 1, "creator_id": 1, "user_type": 1}
    summaries: Dict[uuid.UUID, Dict[str, Any]] = {}
    try:
        async for doc in collection.find({"_id": {"$in": ids}}, projection):
            summaries[doc["_id"]] = doc
    except Exception as e:
        logger.error(f"Error loading user summaries: {e}", exc_info=True)
    return summaries

async def list_users(
    user_type: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[User]:
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return []
    query: Dict[str, Any] = {}
    if user_type: query["user_type"] = user_type
    query["status"] = status if status else {"$ne": AccountStatus.DELETED.value}
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [
            {"name": pattern},
            {"email": pattern},
            {"creator_id": pattern},
            {"social_media.instagram": pattern},
        ]
    logger.info(f"Listing users type={user_type} status={status} search={search!r} skip={skip} limit={limit}")
    try:
        cursor = collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return await _collect(cursor, User, "user")
    except Exception as e:
        logger.error(f"Error listing users: {e}", exc_info=True); return []

async def update_user(user_id: uuid.UUID, user_in: UserUpdate) -> Optional[User]:
    update_data = user_in.model_dump(exclude_unset=True)
    if "email" in update_data and update_data["email"] is not None:
        update_data["email"] = str(update_data["email"]).lower()
    if not update_data:
        logger.warning(f"No update data for user {user_id}")
        return await get_user_by_id(user_id)
    return await set_user_fields(user_id, update_data)

async def set_user_fields(user_id: uuid.UUID, fields: Dict[str, Any]) -> Optional[User]:
    """Applies a `$set` to a non-deleted user and returns the updated record."""
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return None
    fields = {k: v for k, v in fields.items() if k not in ("_id", "id", "created_at", "user_id", "creator_id")}
    fields["updated_at"] = _now()
    query_filter = {"_id": user_id}; query_filter.update(not_deleted_filter())
    try:
        updated_doc = await collection.find_one_and_update(
            query_filter, {"$set": fields}, return_document=ReturnDocument.AFTER
        )
        if updated_doc: return User(**updated_doc)
        logger.warning(f"User {user_id} not found or deleted for update."); return None
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate key updating user {user_id}: {e.details}"); return None
    except Exception as e:
        logger.error(f"Error updating user {user_id}: {e}", exc_info=True); return None

async def set_user_password(user_id: uuid.UUID, password_hash: str, reset_required: bool) -> bool:
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return False
    try:
        result = await collection.update_one(
            {"_id": user_id},
            {"$set": {"password_hash": password_hash, "password_reset_required": reset_required, "updated_at": _now()}},
        )
        return result.matched_count == 1
    except Exception as e:
        logger.error(f"Error setting password for user {user_id}: {e}", exc_info=True); return False

async def touch_last_login(user_id: uuid.UUID) -> None:
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return
    try:
        await collection.update_one({"_id": user_id}, {"$set": {"last_login": _now()}})
    except Exception as e:
        logger.error(f"Error updating last_login for user {user_id}: {e}", exc_info=True)

async def soft_delete_user(user_id: uuid.UUID) -> bool:
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return False
    logger.info(f"Soft deleting user {user_id}")
    try:
        result = await collection.update_one(
            {"_id": user_id, **not_deleted_filter()},
            {"$set": {"status": AccountStatus.DELETED.value, "updated_at": _now()}},
        )
    except Exception as e:
        logger.error(f"Error deleting user {user_id}: {e}", exc_info=True); return False
    if result.modified_count == 1: return True
    logger.warning(f"User {user_id} not found or already deleted."); return False

async def set_user_categories(user_id: uuid.UUID, categories: List[CategorySelection]) -> Optional[User]:
    return await set_user_fields(user_id, {"categories": [c.model_dump() for c in categories]})

async def get_user_stats() -> List[UserTypeStats]:
    """Per user type: total, active and inactive users (deleted users excluded)."""
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return []
    pipeline = [
        {"$match": not_deleted_filter()},
        {"$lookup": {"from": USER_TYPE_COLLECTION, "localField": "user_type", "foreignField": "_id", "as": "type"}},
        {"$unwind": {"path": "$type", "preserveNullAndEmptyArrays": True}},
        {"$group": {
            "_id": "$type.name",
            "count": {"$sum": 1},
            "active": {"$sum": {"$cond": [{"$eq": ["$status", AccountStatus.ACTIVE.value]}, 1, 0]}},
            "inactive": {"$sum": {"$cond": [{"$eq": ["$status", AccountStatus.INACTIVE.value]}, 1, 0]}},
        }},
        {"$sort": {"_id": 1}},
    ]
    stats: List[UserTypeStats] = []
    try:
        async for row in collection.aggregate(pipeline):
            stats.append(UserTypeStats(user_type=row.get("_id"), count=row["count"], active=row["active"], inactive=row["inactive"]))
    except Exception as e:
        logger.error(f"Error aggregating user stats: {e}", exc_info=True)
    return stats

async def set_role_for_users(user_ids: List[uuid.UUID], role_id: uuid.UUID, session=None) -> Optional[int]:
    """Points each listed user at the role. Returns the modified count, None on failure."""
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return None
    if not user_ids: return 0
    try:
        result = await collection.update_many(
            {"_id": {"$in": user_ids}},
            {"$set": {"role": role_id, "updated_at": _now()}},
            session=session,
        )
        return result.modified_count
    except Exception as e:
        logger.error(f"Error assigning role {role_id} to users: {e}", exc_info=True); return None

async def unset_role_for_users(user_ids: List[uuid.UUID], role_id: uuid.UUID, session=None) -> Optional[int]:
    """Clears the role reference on listed users still pointing at `role_id`."""
    collection = _get_collection(USER_COLLECTION)
    if collection is None: return None
    if not user_ids: return 0
    try:
        result = await collection.update_many(
            {"_id": {"$in": user_ids}, "role": role_id},
            {"$unset": {"role": ""}, "$set": {"updated_at": _now()}},
            session=session,
        )
        return result.modified_count
    except Exception as e:
        logger.error(f"Error removing role {role_id} from users: {e}", exc_info=True); return None


# --- Creator ID Sequence ---

def format_creator_id(number: int) -> str:
    return f"{CREATOR_ID_PREFIX}{number:05d}"

def parse_creator_number(creator_id: Optional[str]) -> Optional[int]:
    if not creator_id: return None
    match = CREATOR_ID_PATTERN.match(creator_id)
    return int(match.group(1)) if match else None

async def _highest_existing_creator_number() -> int:
    """Numerically highest CA number across creators and users (numeric collation sort)."""
    highest = 0
    for collection_name in (CREATOR_COLLECTION, USER_COLLECTION):
        collection = _get_collection(collection_name)
        if collection is None: continue
        doc = await collection.find_one(
            {"creator_id": {"$regex": CREATOR_ID_PATTERN.pattern}},
            {"creator_id": 1},
            sort=[("creator_id", DESCENDING)],
            collation=NUMERIC_COLLATION,
        )
        number = parse_creator_number(doc.get("creator_id")) if doc else None
        if number is not None and number > highest:
            highest = number
    return highest

async def get_next_creator_id() -> str:
    """
    Allocates the next sequential creator ID (CA00001, CA00002, ...).

    The counter document is first raised to the highest ID already present so that
    data imported outside this service is never overtaken, then incremented atomically.
    Concurrent callers therefore always receive distinct IDs.
    """
    counters = _get_collection(COUNTER_COLLECTION)
    if counters is None: raise RuntimeError("Database connection not available for creator ID allocation")
    highest = await _highest_existing_creator_number()
    await counters.update_one({"_id": CREATOR_ID_COUNTER}, {"$max": {"seq": highest}}, upsert=True)
    counter = await counters.find_one_and_update(
        {"_id": CREATOR_ID_COUNTER},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    creator_id = format_creator_id(counter["seq"])
    logger.info(f"Allocated creator ID {creator_id}")
    return creator_id


# --- Creator CRUD Functions ---

async def creator_exists(field: str, value: Any, exclude_id: Optional[uuid.UUID] = None) -> Optional[bool]:
    """Same contract as user_exists, over the creator signup records."""
    if value is None: return False
    collection = _get_collection(CREATOR_COLLECTION)
    if collection is None: return None
    query = _exclude_id({field: value}, exclude_id)
    try:
        return await collection.count_documents(query, limit=1) > 0
    except Exception as e:
        logger.error(f"Error checking creator {field} uniqueness: {e}", exc_info=True)
        return None

async def create_creator(fields: Dict[str, Any], creator_id: str, status: str) -> Optional[Creator]:
    collection = _get_collection(CREATOR_COLLECTION); now = _now()
    if collection is None: return None
    new_id = uuid.uuid4()
    creator_doc = dict(fields)
    creator_doc.update({"_id": new_id, "creator_id": creator_id, "status": status, "created_at": now, "updated_at": now})
    logger.info(f"Inserting creator {creator_id} ({creator_doc.get('email')})")
    try:
        await collection.insert_one(creator_doc)
        created_doc = await collection.find_one({"_id": new_id})
        if created_doc: return Creator(**created_doc)
        logger.error(f"Failed to retrieve creator after insert: {new_id}"); return None
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate key inserting creator {creator_doc.get('email')}: {e.details}"); return None
    except Exception as e:
        logger.error(f"Error inserting creator: {e}", exc_info=True); return None

async def get_creator_by_id(creator_id: uuid.UUID) -> Optional[Creator]:
    collection = _get_collection(CREATOR_COLLECTION)
    if collection is None: return None
    try: creator_doc = await collection.find_one({"_id": creator_id, **not_deleted_filter()})
    except Exception as e: logger.error(f"Error getting creator {creator_id}: {e}", exc_info=True); return None
    return Creator(**creator_doc) if creator_doc else None

async def list_creators(status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Creator]:
    collection = _get_collection(CREATOR_COLLECTION)
    if collection is None: return []
    query: Dict[str, Any] = {"status": status} if status else not_deleted_filter()
    try:
        cursor = collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return await _collect(cursor, Creator, "creator")
    except Exception as e:
        logger.error(f"Error listing creators: {e}", exc_info=True); return []

async def update_creator(creator_id: uuid.UUID, fields: Dict[str, Any]) -> Optional[Creator]:
    collection = _get_collection(CREATOR_COLLECTION)
    if collection is None: return None
    fields = {k: v for k, v in fields.items() if k not in ("_id", "id", "creator_id", "created_at")}
    if not fields: return await get_creator_by_id(creator_id)
    fields["updated_at"] = _now()
    try:
        updated_doc = await collection.find_one_and_update(
            {"_id": creator_id, **not_deleted_filter()},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        if updated_doc: return Creator(**updated_doc)
        logger.warning(f"Creator {creator_id} not found or deleted for update."); return None
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate key updating creator {creator_id}: {e.details}"); return None
    except Exception as e:
        logger.error(f"Error updating creator {creator_id}: {e}", exc_info=True); return None

async def set_creator_status(creator_id: uuid.UUID, status: AccountStatus) -> Optional[Creator]:
    logger.info(f"Setting creator {creator_id} status to {status.value}")
    return await update_creator(creator_id, {"status": status.value})


# --- Brand CRUD Functions ---

async def brand_exists_by_email(email: str) -> Optional[bool]:
    collection = _get_collection(BRAND_COLLECTION)
    if collection is None: return None
    try:
        return await collection.count_documents({"email": email.strip().lower()}, limit=1) > 0
    except Exception as e:
        logger.error(f"Error checking brand email uniqueness: {e}", exc_info=True); return None

async def create_brand(brand_in: BrandCreate, password_hash: str) -> Optional[Brand]:
    collection = _get_collection(BRAND_COLLECTION); now = _now()
    if collection is None: return None
    new_id = uuid.uuid4()
    brand_doc = brand_in.model_dump(exclude={"password"})
    brand_doc["email"] = str(brand_doc["email"]).lower()
    brand_doc.update({
        "_id": new_id, "password_hash": password_hash, "verification_status": "pending",
        "role": "brand", "created_at": now, "updated_at": now,
    })
    logger.info(f"Inserting brand {brand_doc['company_name']}")
    try:
        await collection.insert_one(brand_doc)
        created_doc = await collection.find_one({"_id": new_id})
        return Brand(**created_doc) if created_doc else None
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate key inserting brand {brand_doc['email']}: {e.details}"); return None
    except Exception as e:
        logger.error(f"Error inserting brand: {e}", exc_info=True); return None

async def list_brands(skip: int = 0, limit: int = 100) -> List[Brand]:
    collection = _get_collection(BRAND_COLLECTION)
    if collection is None: return []
    try:
        cursor = collection.find({}, {"password_hash": 0}).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return await _collect(cursor, Brand, "brand")
    except Exception as e:
        logger.error(f"Error listing brands: {e}", exc_info=True); return []


# --- Creator Category Functions ---

async def list_creator_categories() -> List[CreatorCategory]:
    collection = _get_collection(CATEGORY_COLLECTION)
    if collection is None: return []
    categories: List[CreatorCategory] = []
    try:
        async for doc in collection.find({}):
            # Catalogue rows may carry ObjectId keys
            doc["_id"] = str(doc["_id"])
            for sub in doc.get("subcategories") or []:
                if sub.get("_id") is not None: sub["_id"] = str(sub["_id"])
            categories.append(CreatorCategory(**doc))
    except Exception as e:
        logger.error(f"Error listing creator categories: {e}", exc_info=True)
    return categories


# --- User Type CRUD Functions ---

async def create_user_type(user_type_in: UserTypeCreate) -> Optional[UserType]:
    collection = _get_collection(USER_TYPE_COLLECTION); now = _now()
    if collection is None: return None
    new_id = uuid.uuid4()
    doc = user_type_in.model_dump(); doc.update({"_id": new_id, "is_active": True, "created_at": now, "updated_at": now})
    try:
        await collection.insert_one(doc)
        return UserType(**doc)
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate user type name {doc['name']}: {e.details}"); return None
    except Exception as e:
        logger.error(f"Error inserting user type: {e}", exc_info=True); return None

async def get_user_type_by_id(user_type_id: uuid.UUID) -> Optional[UserType]:
    collection = _get_collection(USER_TYPE_COLLECTION)
    if collection is None: return None
    try: doc = await collection.find_one({"_id": user_type_id})
    except Exception as e: logger.error(f"Error getting user type {user_type_id}: {e}", exc_info=True); return None
    return UserType(**doc) if doc else None

async def get_user_type_by_name(name: str, include_inactive: bool = False) -> Optional[UserType]:
    collection = _get_collection(USER_TYPE_COLLECTION)
    if collection is None: return None
    query: Dict[str, Any] = {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}}
    if not include_inactive: query.update(active_filter())
    try:
        doc = await collection.find_one(query)
    except Exception as e:
        logger.error(f"Error getting user type '{name}': {e}", exc_info=True); return None
    return UserType(**doc) if doc else None

async def list_user_types() -> List[UserType]:
    collection = _get_collection(USER_TYPE_COLLECTION)
    if collection is None: return []
    try:
        return await _collect(collection.find(active_filter()).sort("name", ASCENDING), UserType, "user type")
    except Exception as e:
        logger.error(f"Error listing user types: {e}", exc_info=True); return []

async def update_user_type(user_type_id: uuid.UUID, user_type_in: UserTypeUpdate) -> Optional[UserType]:
    collection = _get_collection(USER_TYPE_COLLECTION)
    if collection is None: return None
    update_data = user_type_in.model_dump(exclude_unset=True)
    if not update_data: return await get_user_type_by_id(user_type_id)
    update_data["updated_at"] = _now()
    try:
        doc = await collection.find_one_and_update(
            {"_id": user_type_id}, {"$set": update_data}, return_document=ReturnDocument.AFTER
        )
        return UserType(**doc) if doc else None
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate user type name on update {user_type_id}: {e.details}"); return None
    except Exception as e:
        logger.error(f"Error updating user type {user_type_id}: {e}", exc_info=True); return None

async def soft_delete_user_type(user_type_id: uuid.UUID) -> bool:
    collection = _get_collection(USER_TYPE_COLLECTION)
    if collection is None: return False
    try:
        result = await collection.update_one(
            {"_id": user_type_id, **active_filter()},
            {"$set": {"is_active": False, "updated_at": _now()}},
        )
        return result.modified_count == 1
    except Exception as e:
        logger.error(f"Error deleting user type {user_type_id}: {e}", exc_info=True); return False


# --- Permission Functions ---

async def list_permissions() -> List[Permission]:
    collection = _get_collection(PERMISSION_COLLECTION)
    if collection is None: return []
    try:
        cursor = collection.find({}).sort([("resource", ASCENDING), ("action", ASCENDING)])
        return await _collect(cursor, Permission, "permission")
    except Exception as e:
        logger.error(f"Error listing permissions: {e}", exc_info=True); return []

async def sync_permissions(catalogue_keys: List[str]) -> Optional[PermissionSyncResult]:
    """
    Makes the permissions collection match the catalogue: inserts missing
    `resource:action` pairs, deletes obsolete ones and repairs stale names.
    """
    collection = _get_collection(PERMISSION_COLLECTION)
    if collection is None: return None
    wanted = set(catalogue_keys)
    result = PermissionSyncResult()
    try:
        existing = [doc async for doc in collection.find({})]
        existing_keys = {f"{doc['resource']}:{doc['action']}" for doc in existing}
        now = _now()

        to_add = [key for key in catalogue_keys if key not in existing_keys]
        if to_add:
            new_docs = []
            for key in to_add:
                resource, action = key.split(":", 1)
                new_docs.append({"_id": uuid.uuid4(), "name": key, "resource": resource, "action": action,
                                 "description": f"{action} access to {resource}", "created_at": now, "updated_at": now})
            await collection.insert_many(new_docs)
            result.added = len(new_docs)

        obsolete_ids = [doc["_id"] for doc in existing if f"{doc['resource']}:{doc['action']}" not in wanted]
        if obsolete_ids:
            deleted = await collection.delete_many({"_id": {"$in": obsolete_ids}})
            result.removed = deleted.deleted_count

        for doc in existing:
            key = f"{doc['resource']}:{doc['action']}"
            if key in wanted and doc.get("name") != key:
                await collection.update_one({"_id": doc["_id"]}, {"$set": {"name": key, "updated_at": now}})
                result.renamed += 1
    except Exception as e:
        logger.error(f"Error syncing permissions: {e}", exc_info=True); return None

    if result.added or result.removed or result.renamed:
        logger.info(f"Permission sync complete: {result.added} added, {result.removed} removed, {result.renamed} renamed.")
    else:
        logger.info("Permissions are already up to date.")
    return result


# --- Role CRUD Functions ---

async def create_role(role_in: RoleCreate, session=None) -> Optional[Role]:
    collection = _get_collection(ROLE_COLLECTION); now = _now()
    if collection is None: return None
    new_id = uuid.uuid4()
    role_doc = role_in.model_dump()
    role_doc.update({"_id": new_id, "is_active": True, "created_at": now, "updated_at": now})
    logger.info(f"Inserting role '{role_doc['name']}' ({new_id})")
    try:
        await collection.insert_one(role_doc, session=session)
        return Role(**role_doc)
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate role name '{role_doc['name']}': {e.details}"); return None
    except Exception as e:
        logger.error(f"Error inserting role: {e}", exc_info=True); return None

async def get_role_by_id(role_id: uuid.UUID, include_inactive: bool = False, session=None) -> Optional[Role]:
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    query: Dict[str, Any] = {"_id": role_id}
    if not include_inactive: query.update(active_filter())
    try: role_doc = await collection.find_one(query, session=session)
    except Exception as e: logger.error(f"Error getting role {role_id}: {e}", exc_info=True); return None
    return Role(**role_doc) if role_doc else None

async def get_role_by_name(name: str) -> Optional[Role]:
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    try: role_doc = await collection.find_one({"name": name})
    except Exception as e: logger.error(f"Error getting role '{name}': {e}", exc_info=True); return None
    return Role(**role_doc) if role_doc else None

async def list_roles() -> List[Role]:
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return []
    try:
        return await _collect(collection.find(active_filter()).sort("name", ASCENDING), Role, "role")
    except Exception as e:
        logger.error(f"Error listing roles: {e}", exc_info=True); return []

async def update_role(role_id: uuid.UUID, update_data: Dict[str, Any], session=None) -> Optional[Role]:
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    update_data = {k: v for k, v in update_data.items() if k not in ("_id", "id", "created_at")}
    update_data["updated_at"] = _now()
    try:
        role_doc = await collection.find_one_and_update(
            {"_id": role_id, **active_filter()},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return Role(**role_doc) if role_doc else None
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate role name on update {role_id}: {e.details}"); return None
    except Exception as e:
        logger.error(f"Error updating role {role_id}: {e}", exc_info=True); return None

async def soft_delete_role(role_id: uuid.UUID, session=None) -> Optional[Role]:
    """Deactivates the role and empties its member list. Returns the role as it was before."""
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    try:
        role_doc = await collection.find_one_and_update(
            {"_id": role_id, **active_filter()},
            {"$set": {"is_active": False, "assigned_users": [], "updated_at": _now()}},
            return_document=ReturnDocument.BEFORE,
            session=session,
        )
        return Role(**role_doc) if role_doc else None
    except Exception as e:
        logger.error(f"Error deleting role {role_id}: {e}", exc_info=True); return None

async def add_users_to_role(role_id: uuid.UUID, user_ids: List[uuid.UUID], session=None) -> Optional[Role]:
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    try:
        role_doc = await collection.find_one_and_update(
            {"_id": role_id, **active_filter()},
            {"$addToSet": {"assigned_users": {"$each": user_ids}}, "$set": {"updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return Role(**role_doc) if role_doc else None
    except Exception as e:
        logger.error(f"Error adding users to role {role_id}: {e}", exc_info=True); return None

async def pull_users_from_other_roles(user_ids: List[uuid.UUID], role_id: Optional[uuid.UUID], session=None) -> Optional[int]:
    """A user holds one role; drop them from every other role's member list (all roles when role_id is None)."""
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    if not user_ids: return 0
    try:
        result = await collection.update_many(
            {"_id": {"$ne": role_id}, "assigned_users": {"$in": user_ids}},
            {"$pull": {"assigned_users": {"$in": user_ids}}, "$set": {"updated_at": _now()}},
            session=session,
        )
        return result.modified_count
    except Exception as e:
        logger.error(f"Error detaching users from other roles: {e}", exc_info=True); return None

async def add_role_permissions(role_id: uuid.UUID, grants: List[PermissionGrant]) -> Optional[Role]:
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    try:
        role_doc = await collection.find_one_and_update(
            {"_id": role_id, **active_filter()},
            {"$addToSet": {"permissions": {"$each": [g.model_dump() for g in grants]}}, "$set": {"updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return Role(**role_doc) if role_doc else None
    except Exception as e:
        logger.error(f"Error adding permissions to role {role_id}: {e}", exc_info=True); return None

async def remove_role_permissions(role_id: uuid.UUID, resource: str) -> Optional[Role]:
    collection = _get_collection(ROLE_COLLECTION)
    if collection is None: return None
    try:
        role_doc = await collection.find_one_and_update(
            {"_id": role_id, **active_filter()},
            {"$pull": {"permissions": {"resource": resource}}, "$set": {"updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return Role(**role_doc) if role_doc else None
    except Exception as e:
        logger.error(f"Error removing permissions from role {role_id}: {e}", exc_info=True); return None


# --- KYC Document CRUD Functions ---

async def create_kyc_document(document_in: KYCDocumentCreate, user_id: uuid.UUID, stored: StoredFile) -> Optional[KYCDocument]:
    collection = _get_collection(KYC_DOCUMENT_COLLECTION); now = _now()
    if collection is None: return None
    new_id = uuid.uuid4()
    document_doc = document_in.model_dump()
    document_doc.update({
        "_id": new_id,
        "user_id": user_id,
        "file_name": stored.file_name,
        "original_file_name": stored.original_file_name,
        "file_path": stored.file_path,
        "file_size": stored.file_size,
        "mime_type": stored.mime_type,
        "status": KYCDocumentStatus.PENDING.value,
        "verified_by": None,
        "verified_at": None,
        "verification_remarks": None,
        "review_draft_history": [],
        "metadata": {},
        "version": 1,
        "previous_versions": [],
        "created_at": now,
        "updated_at": now,
    })
    logger.info(f"Inserting KYC document {new_id} ({document_doc['document_type']}) for user {user_id}")
    try:
        await collection.insert_one(document_doc)
        return KYCDocument(**document_doc)
    except Exception as e:
        logger.error(f"Error inserting KYC document: {e}", exc_info=True); return None

async def get_kyc_document(document_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> Optional[KYCDocument]:
    """Fetches a document; when `user_id` is given the document must belong to that user."""
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return None
    query: Dict[str, Any] = {"_id": document_id}
    if user_id is not None: query["user_id"] = user_id
    try: doc = await collection.find_one(query)
    except Exception as e: logger.error(f"Error getting KYC document {document_id}: {e}", exc_info=True); return None
    return KYCDocument(**doc) if doc else None

async def list_kyc_documents_for_user(user_id: uuid.UUID) -> List[KYCDocument]:
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return []
    try:
        cursor = collection.find({"user_id": user_id}).sort("created_at", DESCENDING)
        return await _collect(cursor, KYCDocument, "KYC document")
    except Exception as e:
        logger.error(f"Error listing KYC documents for user {user_id}: {e}", exc_info=True); return []

async def update_kyc_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    fields: Dict[str, Any],
    previous_version: Optional[PreviousVersion] = None,
) -> Optional[KYCDocument]:
    """
    Updates an owned document. When `previous_version` is given the replaced file is
    recorded (newest five kept) and the document version is bumped.
    """
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return None
    update: Dict[str, Any] = {"$set": {**fields, "updated_at": _now()}}
    if previous_version is not None:
        update["$push"] = {"previous_versions": {"$each": [previous_version.model_dump()], "$slice": -MAX_PREVIOUS_VERSIONS}}
        update["$inc"] = {"version": 1}
    try:
        doc = await collection.find_one_and_update(
            {"_id": document_id, "user_id": user_id}, update, return_document=ReturnDocument.AFTER
        )
        return KYCDocument(**doc) if doc else None
    except Exception as e:
        logger.error(f"Error updating KYC document {document_id}: {e}", exc_info=True); return None

async def set_kyc_document_verification(
    document_id: uuid.UUID,
    status: str,
    verified_by: uuid.UUID,
    remarks: Optional[str],
) -> Optional[KYCDocument]:
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return None
    now = _now()
    try:
        doc = await collection.find_one_and_update(
            {"_id": document_id},
            {"$set": {
                "status": status,
                "verified_by": verified_by,
                "verified_at": now,
                "verification_remarks": remarks,
                "updated_at": now,
            }},
            return_document=ReturnDocument.AFTER,
        )
        return KYCDocument(**doc) if doc else None
    except Exception as e:
        logger.error(f"Error verifying KYC document {document_id}: {e}", exc_info=True); return None

async def append_review_draft(document_id: uuid.UUID, entry: ReviewDraftEntry) -> Optional[KYCDocument]:
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return None
    try:
        doc = await collection.find_one_and_update(
            {"_id": document_id},
            {"$push": {"review_draft_history": entry.model_dump()}, "$set": {"updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return KYCDocument(**doc) if doc else None
    except Exception as e:
        logger.error(f"Error appending review draft to {document_id}: {e}", exc_info=True); return None

async def delete_kyc_document(document_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return False
    logger.info(f"Hard deleting KYC document {document_id} for user {user_id}")
    try:
        result = await collection.delete_one({"_id": document_id, "user_id": user_id})
        return result.deleted_count == 1
    except Exception as e:
        logger.error(f"Error deleting KYC document {document_id}: {e}", exc_info=True); return False

def build_kyc_document_query(status: Optional[str] = None, document_type: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if status: query["status"] = status
    if document_type: query["document_type"] = document_type
    return query

async def find_kyc_documents(query: Dict[str, Any], skip: int, limit: int) -> Tuple[List[KYCDocument], int]:
    """One page of matching documents, newest first, plus the total match count."""
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return [], 0
    try:
        total = await collection.count_documents(query)
        cursor = collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        documents = await _collect(cursor, KYCDocument, "KYC document")
        return documents, total
    except Exception as e:
        logger.error(f"Error querying KYC documents: {e}", exc_info=True); return [], 0

async def count_kyc_documents(query: Dict[str, Any]) -> int:
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return 0
    try: return await collection.count_documents(query)
    except Exception as e: logger.error(f"Error counting KYC documents: {e}", exc_info=True); return 0

async def count_kyc_documents_by_type() -> Dict[str, int]:
    collection = _get_collection(KYC_DOCUMENT_COLLECTION)
    if collection is None: return {}
    counts: Dict[str, int] = {}
    try:
        async for row in collection.aggregate([{"$group": {"_id": "$document_type", "count": {"$sum": 1}}}]):
            counts[row["_id"]] = row["count"]
    except Exception as e:
        logger.error(f"Error aggregating KYC documents by type: {e}", exc_info=True)
    return counts


# --- KYC Profile CRUD Functions ---

async def get_kyc_profile(user_id: uuid.UUID) -> Optional[KYCProfile]:
    collection = _get_collection(KYC_PROFILE_COLLECTION)
    if collection is None: return None
    try: doc = await collection.find_one({"user_id": user_id})
    except Exception as e: logger.error(f"Error getting KYC profile for {user_id}: {e}", exc_info=True); return None
    return KYCProfile(**doc) if doc else None

async def save_kyc_profile(profile: KYCProfile) -> Optional[KYCProfile]:
    """Writes the whole profile back (upsert on user_id)."""
    collection = _get_collection(KYC_PROFILE_COLLECTION)
    if collection is None: return None
    profile.updated_at = _now()
    profile_doc = profile.model_dump(by_alias=True)
    try:
        await collection.replace_one({"user_id": profile.user_id}, profile_doc, upsert=True)
        return profile
    except DuplicateKeyError:
        # Another request created the profile first
        existing = await collection.find_one({"user_id": profile.user_id})
        logger.warning(f"KYC profile for {profile.user_id} created concurrently; using stored copy.")
        return KYCProfile(**existing) if existing else None
    except Exception as e:
        logger.error(f"Error saving KYC profile for {profile.user_id}: {e}", exc_info=True); return None

async def count_active_kyc_profiles() -> int:
    collection = _get_collection(KYC_PROFILE_COLLECTION)
    if collection is None: return 0
    try: return await collection.count_documents({"is_active": True})
    except Exception as e: logger.error(f"Error counting KYC profiles: {e}", exc_info=True); return 0

async def count_kyc_profiles_by_status() -> Dict[str, int]:
    collection = _get_collection(KYC_PROFILE_COLLECTION)
    counts = {status.value: 0 for status in KYCProfileStatus}
    if collection is None: return counts
    try:
        pipeline = [{"$match": {"is_active": True}}, {"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        async for row in collection.aggregate(pipeline):
            counts[row["_id"]] = row["count"]
    except Exception as e:
        logger.error(f"Error aggregating KYC profiles by status: {e}", exc_info=True)
    return counts

async def find_expiring_kyc_profiles(now: datetime, threshold: datetime) -> List[KYCProfile]:
    collection = _get_collection(KYC_PROFILE_COLLECTION)
    if collection is None: return []
    query = {
        "status": KYCProfileStatus.VERIFIED.value,
        "is_active": True,
        "kyc_expiry_date": {"$gt": now, "$lte": threshold},
    }
    try:
        cursor = collection.find(query).sort("kyc_expiry_date", ASCENDING)
        return await _collect(cursor, KYCProfile, "KYC profile")
    except Exception as e:
        logger.error(f"Error finding expiring KYC profiles: {e}", exc_info=True); return []
