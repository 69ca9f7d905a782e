# adminhub/core/config.py
import os
import logging
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings

# --- Path Setup & .env Loading ---
# .env lives in the backend project root, two levels up from core
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = BASE_DIR / '.env'

if ENV_PATH.is_file():
    load_dotenv(dotenv_path=ENV_PATH)
else:
    # Logger is not configured yet at this point
    print(f"Warning: .env file not found at {ENV_PATH}. Relying on system environment variables.")

# --- Pydantic Settings Class ---
class Settings(BaseSettings):
    PROJECT_NAME: str = "AdminHub API"
    DEBUG: bool = False
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"

    # Database Settings
    MONGODB_URL: Optional[str] = None
    DB_NAME: str = "adminhub_dev"
    MONGODB_TLS: bool = False
    # Standalone mongod has no transactions; role sync then runs without a session
    MONGODB_TRANSACTIONS_ENABLED: bool = True

    # Token Settings
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 5

    # Azure Blob Storage Settings (KYC uploads)
    AZURE_BLOB_CONNECTION_STRING: Optional[str] = None
    AZURE_BLOB_CONTAINER_NAME: str = "kyc-documents"

    # KYC upload limits
    KYC_MAX_FILE_SIZE: int = 5 * 1024 * 1024
    KYC_ALLOWED_MIME_TYPES: List[str] = ["image/jpeg", "image/jpg", "image/png", "application/pdf"]
    KYC_VALIDITY_DAYS: int = 365

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

settings = Settings()

# --- Logging Setup ---
LOG_LEVEL_NAME: str = os.getenv("LOG_LEVEL", "WARNING").upper()
if settings.DEBUG:
    LOG_LEVEL_NAME = "DEBUG"

ACTUAL_LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.WARNING)

logging.basicConfig(
    level=ACTUAL_LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logging.getLogger('uvicorn').setLevel(logging.WARNING)
logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
logging.getLogger('fastapi').setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
logging.getLogger('motor').setLevel(logging.WARNING)
logging.getLogger('azure').setLevel(logging.WARNING)
logging.getLogger('pymongo').setLevel(logging.WARNING)
logging.getLogger('passlib').setLevel(logging.ERROR)

logger = logging.getLogger(__name__)

# --- Validate critical settings after loading ---
if not settings.MONGODB_URL:
    logger.critical("CRITICAL: MONGODB_URL environment variable is not set and no default provided.")

if not settings.JWT_SECRET:
    logger.warning("JWT_SECRET environment variable is not set. Login and protected endpoints will fail.")

if not settings.AZURE_BLOB_CONNECTION_STRING:
    logger.warning("AZURE_BLOB_CONNECTION_STRING environment variable is not set. KYC uploads will fail.")

if settings.DEBUG:
    logger.debug(f"PROJECT_NAME: {settings.PROJECT_NAME}")
    logger.debug(f"API_V1_PREFIX: {settings.API_V1_PREFIX}")
    logger.debug(f"DB_NAME: {settings.DB_NAME}")
    logger.debug(f"MONGODB_TRANSACTIONS_ENABLED: {settings.MONGODB_TRANSACTIONS_ENABLED}")
    logger.debug(f"AZURE_BLOB_CONTAINER_NAME: {settings.AZURE_BLOB_CONTAINER_NAME}")
    logger.debug(f"KYC_MAX_FILE_SIZE: {settings.KYC_MAX_FILE_SIZE}")
    logger.debug(f"MONGODB_URL Set: {'Yes' if settings.MONGODB_URL else 'No - CRITICAL'}")
    logger.debug(f"JWT_SECRET Set: {'Yes' if settings.JWT_SECRET else 'No - WARNING'}")

# Module-level aliases for modules that import constants directly
PROJECT_NAME = settings.PROJECT_NAME
DEBUG = settings.DEBUG
VERSION = settings.VERSION
API_V1_PREFIX = settings.API_V1_PREFIX
MONGODB_URL = settings.MONGODB_URL
DB_NAME = settings.DB_NAME
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
AZURE_BLOB_CONNECTION_STRING = settings.AZURE_BLOB_CONNECTION_STRING
AZURE_BLOB_CONTAINER_NAME = settings.AZURE_BLOB_CONTAINER_NAME
