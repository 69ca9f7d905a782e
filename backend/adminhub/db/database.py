# adminhub/db/database.py
import motor.motor_asyncio
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timezone

from adminhub.core.config import settings, MONGODB_URL, DB_NAME, PROJECT_NAME

logger = logging.getLogger(f"{PROJECT_NAME}.db")

_client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None
_db: Optional[motor.motor_asyncio.AsyncIOMotorDatabase] = None
# Filled in from the server's `hello` reply on connect
_topology: Optional[str] = None


def _describe_topology(hello: Dict[str, Any]) -> str:
    if hello.get("msg") == "isdbgrid":
        return "sharded"
    if hello.get("setName"):
        return "replica_set"
    return "standalone"

def transactions_available() -> bool:
    """Multi-document transactions need them enabled in settings and a replica set or mongos."""
    return settings.MONGODB_TRANSACTIONS_ENABLED and _topology in ("replica_set", "sharded")

async def connect_to_mongo() -> bool:
    """
    Opens the motor client, pings the server and records its topology.

    Returns:
        bool: True if the database is reachable, False otherwise.
    """
    global _client, _db, _topology

    if _db is not None:
        logger.info("Database connection already established.")
        return True

    if not MONGODB_URL:
        logger.error("MONGODB_URL is not set. KYC, role and account endpoints will fail until it is configured.")
        return False

    logger.info(f"Connecting to MongoDB database '{DB_NAME}'...")
    try:
        client = motor.motor_asyncio.AsyncIOMotorClient(
            MONGODB_URL,
            tls=settings.MONGODB_TLS,
            serverSelectionTimeoutMS=10000,
            maxPoolSize=10,
            uuidRepresentation='standard',
            appname=PROJECT_NAME,
        )
        hello = await client.admin.command('hello')
    except Exception as e:
        logger.error(f"Could not connect to MongoDB: {e}", exc_info=True)
        return False

    _client = client
    _db = client[DB_NAME]
    _topology = _describe_topology(hello)
    logger.info(f"Connected to MongoDB database '{DB_NAME}' ({_topology}).")
    if settings.MONGODB_TRANSACTIONS_ENABLED and not transactions_available():
        logger.warning(
            "MONGODB_TRANSACTIONS_ENABLED is set but the server is standalone; "
            "role membership sync will run without a transaction."
        )
    return True

async def close_mongo_connection():
    global _client, _db, _topology
    if _client is None:
        logger.info("No active MongoDB connection to close.")
        return
    _client.close()
    _client = None
    _db = None
    _topology = None
    logger.info("MongoDB connection closed.")

def get_database() -> Optional[motor.motor_asyncio.AsyncIOMotorDatabase]:
    """Returns the database handle set up by connect_to_mongo(), or None before startup."""
    if _db is None:
        logger.warning("Database handle requested before a successful connect_to_mongo().")
    return _db

async def check_database_health() -> Dict[str, Any]:
    """
    Pings the server and compares the collection list with the collections the API writes to.

    Status is OK, WARNING (reachable but collections missing) or ERROR (unreachable).
    """
    from adminhub.db import crud
    expected_collections = list(crud.ALL_COLLECTIONS)

    health_info: Dict[str, Any] = {
        "status": "OK",
        "connected": False,
        "topology": _topology,
        "transactions": transactions_available(),
        "missing_collections": [],
        "error": None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    db_instance = get_database()
    if db_instance is None:
        health_info.update({"status": "ERROR", "error": "Database not connected"})
        return health_info

    try:
        await db_instance.client.admin.command('ping')
        collections = await db_instance.list_collection_names()
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        health_info.update({"status": "ERROR", "error": str(e)})
        return health_info

    health_info["connected"] = True
    missing = [name for name in expected_collections if name not in collections]
    if missing:
        # Collections are created lazily on first write, so a fresh deployment reports these
        health_info["missing_collections"] = missing
        health_info["status"] = "WARNING"
        logger.warning(f"Database health check: collections not created yet: {missing}")
    return health_info
