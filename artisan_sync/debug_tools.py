# artisan_sync/debug_tools.py
"""
Development helper: swap the signed-in profile for a different role without
touching the store. Only wired when ARTISAN_SYNC_DEBUG is set.
"""

import logging
from typing import Optional

from artisan_sync.entities import User
from artisan_sync.session_state import SessionState


logger = logging.getLogger("artisan_sync")

MOCK_CUSTOMER_ID = "customer_switched_1"


def switch_user_role(session, role: str) -> Optional[User]:
    """
    customer -> a mock customer profile
    artisan / volunteer -> the first loaded user of that role that is not
    the current one
    """
    with session._lock:
        if session.session.state != SessionState.READY:
            logger.info("switch_user_role: no ready session")
            return None
        current = session.state.current_user

        if role == "customer":
            target = User(id=MOCK_CUSTOMER_ID, name="Demo Customer", role="customer", profileComplete=True)
        elif role in ("artisan", "volunteer"):
            pool = session.state.artisans if role == "artisan" else session.state.volunteers
            target = next((u for u in pool if current is None or u.id != current.id), None)
        else:
            raise ValueError(f"Unknown role: {role}")

        if target is None:
            logger.info(f"switch_user_role: no {role} profile available")
            return None

        session.session.replace_profile(target)
        session._set_current_user_local(target)
        logger.info(f"[DEBUG] switched to {target.role} {target.name} ({target.id})")
        return target
