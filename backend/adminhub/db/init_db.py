# adminhub/db/init_db.py
import logging
from typing import List, Tuple, Dict, Any

from pymongo import ASCENDING
from pymongo.errors import OperationFailure

from adminhub.core.permissions import catalogue_permission_keys
from . import crud
from .database import get_database

logger = logging.getLogger(__name__)

# Uniqueness on optional fields only applies to documents where the field is a string
_PRESENT = {"$type": "string"}

# (collection, keys, options)
INDEXES: List[Tuple[str, List[Tuple[str, int]], Dict[str, Any]]] = [
    (crud.USER_COLLECTION, [("email", ASCENDING)], {"name": "idx_user_email", "unique": True}),
    (crud.USER_COLLECTION, [("user_id", ASCENDING)], {"name": "idx_user_user_id", "unique": True, "partialFilterExpression": {"user_id": _PRESENT}}),
    (crud.USER_COLLECTION, [("username", ASCENDING)], {"name": "idx_user_username", "unique": True, "partialFilterExpression": {"username": _PRESENT}}),
    (crud.USER_COLLECTION, [("phone_number", ASCENDING)], {"name": "idx_user_phone", "unique": True, "partialFilterExpression": {"phone_number": _PRESENT}}),
    (crud.USER_COLLECTION, [("creator_id", ASCENDING)], {"name": "idx_user_creator_id", "unique": True, "partialFilterExpression": {"creator_id": _PRESENT}}),
    (crud.USER_COLLECTION, [("role", ASCENDING)], {"name": "idx_user_role"}),
    (crud.CREATOR_COLLECTION, [("email", ASCENDING)], {"name": "idx_creator_email", "unique": True}),
    (crud.CREATOR_COLLECTION, [("username", ASCENDING)], {"name": "idx_creator_username", "unique": True, "partialFilterExpression": {"username": _PRESENT}}),
    (crud.CREATOR_COLLECTION, [("phone_number", ASCENDING)], {"name": "idx_creator_phone", "unique": True, "partialFilterExpression": {"phone_number": _PRESENT}}),
    (crud.CREATOR_COLLECTION, [("creator_id", ASCENDING)], {"name": "idx_creator_creator_id", "unique": True, "partialFilterExpression": {"creator_id": _PRESENT}}),
    (crud.BRAND_COLLECTION, [("email", ASCENDING)], {"name": "idx_brand_email", "unique": True}),
    (crud.ROLE_COLLECTION, [("name", ASCENDING)], {"name": "idx_role_name", "unique": True}),
    (crud.USER_TYPE_COLLECTION, [("name", ASCENDING)], {"name": "idx_usertype_name", "unique": True}),
    (crud.PERMISSION_COLLECTION, [("resource", ASCENDING), ("action", ASCENDING)], {"name": "idx_permission_resource_action", "unique": True}),
    (crud.KYC_PROFILE_COLLECTION, [("user_id", ASCENDING)], {"name": "idx_kycprofile_user", "unique": True}),
    (crud.KYC_DOCUMENT_COLLECTION, [("user_id", ASCENDING), ("document_type", ASCENDING)], {"name": "idx_kycdoc_user_type"}),
    (crud.KYC_DOCUMENT_COLLECTION, [("status", ASCENDING), ("created_at", ASCENDING)], {"name": "idx_kycdoc_status_created"}),
]


async def ensure_indexes() -> int:
    """
    Creates the indexes backing the uniqueness checks and the common queries.
    Returns the number of indexes ensured; failures are logged and skipped.
    """
    db_instance = get_database()
    if db_instance is None:
        logger.error("Could not get database instance to ensure indexes.")
        return 0

    ensured = 0
    for collection_name, keys, options in INDEXES:
        collection = db_instance.get_collection(collection_name)
        index_name = options["name"]
        try:
            await collection.create_index(keys, **options)
            ensured += 1
            logger.info(f"Index '{index_name}' on {collection_name} ensured.")
        except OperationFailure as e:
            if e.code in (85, 86):  # IndexOptionsConflict / IndexKeySpecsConflict
                logger.warning(
                    f"Index '{index_name}' on {collection_name} exists with different options; "
                    f"leaving it in place. Error details: {e.details}"
                )
            elif e.code == 11000:
                logger.error(
                    f"Could not create unique index '{index_name}' on {collection_name}: "
                    f"existing documents contain duplicates. Error details: {e.details}"
                )
            else:
                logger.error(f"Database OperationFailure while creating index '{index_name}': {e}", exc_info=True)
        except Exception as e_general:
            logger.error(f"Unexpected error creating index '{index_name}': {e_general}", exc_info=True)
    return ensured


async def init_db() -> None:
    """Startup initialisation: indexes, then the permission catalogue."""
    logger.info("Ensuring database indexes...")
    count = await ensure_indexes()
    logger.info(f"Database indexes ensured ({count}/{len(INDEXES)}).")

    logger.info("Synchronising permission catalogue...")
    result = await crud.sync_permissions(catalogue_permission_keys())
    if result is None:
        logger.error("Permission catalogue sync failed; see previous errors.")
