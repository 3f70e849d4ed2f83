import logging
import threading
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from artisan_sync.google_helpers import DEBUG_TOOLS, SERVER_HOST, SERVER_PORT
from artisan_sync.identity import IdentityError
from artisan_sync.session_state import SessionTransitionError

logger = logging.getLogger("artisan_sync")

app = FastAPI()

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_session = None
_session_lock = threading.Lock()


class Event(BaseModel):
    type: str
    payload: Optional[Any] = None


class RoleSwitch(BaseModel):
    role: str


def build_session():
    from artisan_sync.GCConnection_hlpr import GCConnection
    from artisan_sync.certificate_text import CertificateTextGenerator
    from artisan_sync.doc_store import FirestoreStore
    from artisan_sync.identity import FirebaseIdentityProvider
    from artisan_sync.sync_session import SyncSession

    gc = GCConnection()
    session = SyncSession(
        FirestoreStore(gc.build_firestore_client()),
        identity=FirebaseIdentityProvider(),
        text_generator=CertificateTextGenerator(api_key_loader=gc.get_openai_api_key_lazy),
    )
    session.start()
    return session


def get_session():
    global _session
    with _session_lock:
        if _session is None:
            _session = build_session()
        return _session


@app.get("/state")
def get_state(session=Depends(get_session)):
    return session.view()


@app.get("/notifications")
def get_notifications(session=Depends(get_session)):
    return [n.model_dump(mode="json") for n in session.notifications.snapshot()]


@app.delete("/notifications/{notification_id}")
def delete_notification(notification_id: str, session=Depends(get_session)):
    # removing an expired or unknown id is not an error
    return {"status": "success", "removed": session.notifications.remove(notification_id)}


@app.post("/events")
def send_event(event: Event, session=Depends(get_session)):
    try:
        return session.process_request(event.model_dump())
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except IdentityError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing event {event.type}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


if DEBUG_TOOLS:
    from artisan_sync.debug_tools import switch_user_role

    @app.post("/debug/switch-role")
    def debug_switch_role(body: RoleSwitch, session=Depends(get_session)):
        try:
            user = switch_user_role(session, body.role)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"status": "success", "currentUser": user.model_dump(mode="json") if user else None}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
