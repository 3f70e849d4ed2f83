import os
import logging

from google.cloud import firestore, secretmanager
from google.oauth2 import service_account
from google.auth import default as google_auth_default

from artisan_sync.google_helpers import FIRESTORE_DATABASE, OPENAI_SECRET_ID


logger = logging.getLogger("artisan_sync")


class GCConnection:
    def __init__(self) -> None:
        # ---- env config (shared) ----
        self.PROJECT_ID         = os.getenv("GOOGLE_CLOUD_PROJECT", "")
        self.DATABASE           = FIRESTORE_DATABASE
        self.OPENAI_API_KEY     = os.getenv("OPENAI_API_KEY", "")
        self.OPENAI_SECRET_ID   = OPENAI_SECRET_ID or ""

        # ---- GCP clients ----
        self.creds = self._build_creds()
        self.secret_client = (
            secretmanager.SecretManagerServiceClient(credentials=self.creds)
            if not self.OPENAI_API_KEY and self.OPENAI_SECRET_ID
            else None
        )
        self._firestore_client = None

    # -------- GCP auth / creds --------
    def _build_creds(self):
        key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        scopes = ["https://www.googleapis.com/auth/cloud-platform"]
        if key_path and os.path.exists(key_path):
            return service_account.Credentials.from_service_account_file(key_path, scopes=scopes)
        creds, _ = google_auth_default(scopes=scopes)
        return creds

    # -------- OpenAI key (Secret Manager) --------
    def get_openai_api_key_lazy(self) -> str:
        if self.OPENAI_API_KEY:
            return self.OPENAI_API_KEY
        if self.secret_client and self.OPENAI_SECRET_ID:
            name = self.secret_client.secret_version_path(self.PROJECT_ID, self.OPENAI_SECRET_ID, "latest")
            resp = self.secret_client.access_secret_version(request={"name": name})
            self.OPENAI_API_KEY = resp.payload.data.decode("utf-8")
            # openai.OpenAI() reads the key from the environment
            os.environ["OPENAI_API_KEY"] = self.OPENAI_API_KEY
            return self.OPENAI_API_KEY
        raise RuntimeError("No OPENAI_API_KEY and no Secret Manager configured")

    # -------- Firestore client --------
    def build_firestore_client(self) -> firestore.Client:
        if self._firestore_client is None:
            logger.info(f"[FS] Connecting to Firestore project={self.PROJECT_ID or '(default)'} database={self.DATABASE}")
            self._firestore_client = firestore.Client(
                project=self.PROJECT_ID or None,
                credentials=self.creds,
                database=self.DATABASE,
            )
        return self._firestore_client
