import logging
import os

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n"
)

logger = logging.getLogger("artisan_sync")

# --- Configuration ---
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "artisianx")
REGION = os.getenv("GOOGLE_CLOUD_REGION", "us-central1")

FIRESTORE_DATABASE  = os.environ.get("FIRESTORE_DATABASE", "(default)")
FIREBASE_API_KEY    = os.environ.get("FIREBASE_API_KEY", "")

LLM_MODEL           = os.environ.get("LLM_MODEL", "gpt-4-turbo")
LLM_TIMEOUT         = float(os.environ.get("LLM_TIMEOUT", "60"))
OPENAI_SECRET_ID    = os.environ.get("OPENAI_SECRET_ID")

NOTIFICATION_TTL_SECONDS = float(os.environ.get("NOTIFICATION_TTL_SECONDS", "6"))
SEED_ON_START       = os.environ.get("SEED_ON_START", "true").lower() in ("1", "true", "yes")
DEBUG_TOOLS         = os.environ.get("ARTISAN_SYNC_DEBUG", "").lower() in ("1", "true", "yes")
SERVER_HOST         = os.environ.get("HOST", "0.0.0.0")
SERVER_PORT         = int(os.environ.get("PORT", "8000"))

# Collection names (schema-in-code; Firestore creates them on first write)
COLLECTION_USERS = "users"
COLLECTION_PRODUCTS = "products"
COLLECTION_PROJECTS = "projects"
COLLECTION_CERTIFICATES = "certificates"
COLLECTION_CONVERSATIONS = "conversations"
COLLECTION_MESSAGES = "messages"
COLLECTION_BARGAIN_REQUESTS = "bargainRequests"
COLLECTION_CONNECTION_REQUESTS = "connectionRequests"
COLLECTION_PROJECT_APPLICATIONS = "projectApplications"
COLLECTION_COLLABORATIONS = "collaborations"


def messages_path(conversation_id: str) -> str:
    return f"{COLLECTION_CONVERSATIONS}/{conversation_id}/{COLLECTION_MESSAGES}"
