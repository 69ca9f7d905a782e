# backend/adminhub/migrations/reconcile_role_assignments.py

import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, List, Iterable, Any
from pymongo import MongoClient
from pymongo.database import Database

from adminhub.core.config import settings
from adminhub.db.crud import USER_COLLECTION, ROLE_COLLECTION, not_deleted_filter

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def get_mongo_client() -> MongoClient:
    """Create a MongoDB client with proper UUID handling."""
    return MongoClient(
        settings.MONGODB_URL,
        uuidRepresentation='standard'
    )

def build_assignments(users: Iterable[Dict[str, Any]]) -> Dict[uuid.UUID, List[uuid.UUID]]:
    """Groups user ids by the role each user points at. Users without a role are skipped."""
    assignments: Dict[uuid.UUID, List[uuid.UUID]] = {}
    for user in users:
        role_id = user.get("role")
        if role_id is None:
            continue
        assignments.setdefault(role_id, []).append(user["_id"])
    return assignments

def reconcile_role_assignments(db: Database) -> Dict[str, int]:
    """
    Rewrites every active role's `assigned_users` from the users' `role` field.
    Soft-deleted users (status "deleted") are dropped from every role.
    Users pointing at a missing or inactive role lose the reference.
    """
    users_collection = db[USER_COLLECTION]
    roles_collection = db[ROLE_COLLECTION]

    users = users_collection.find(not_deleted_filter(), {"_id": 1, "role": 1})
    assignments = build_assignments(users)

    active_role_ids = set()
    roles_updated = 0
    for role in roles_collection.find({"is_active": {"$ne": False}}, {"_id": 1, "assigned_users": 1}):
        active_role_ids.add(role["_id"])
        members = assignments.get(role["_id"], [])
        current = role.get("assigned_users") or []
        if sorted(map(str, current)) == sorted(map(str, members)):
            continue
        logger.info(f"Role {role['_id']}: assigned_users {len(current)} -> {len(members)}")
        roles_collection.update_one(
            {"_id": role["_id"]},
            {"$set": {"assigned_users": members, "updated_at": datetime.now(timezone.utc)}}
        )
        roles_updated += 1

    orphaned: List[uuid.UUID] = []
    for role_id, members in assignments.items():
        if role_id not in active_role_ids:
            logger.warning(f"{len(members)} user(s) reference missing or inactive role {role_id}")
            orphaned.extend(members)
    users_cleared = 0
    if orphaned:
        result = users_collection.update_many(
            {"_id": {"$in": orphaned}},
            {"$unset": {"role": ""}, "$set": {"updated_at": datetime.now(timezone.utc)}}
        )
        users_cleared = result.modified_count

    return {"roles_updated": roles_updated, "users_cleared": users_cleared}

def main():
    logger.info("Starting role assignment reconciliation")
    client = get_mongo_client()
    try:
        summary = reconcile_role_assignments(client[settings.DB_NAME])
        logger.info(f"Reconciliation completed: {summary}")
    except Exception as e:
        logger.error(f"Error during role reconciliation: {str(e)}")
        raise
    finally:
        client.close()

if __name__ == "__main__":
    main()
