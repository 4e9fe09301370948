import hmac
import random
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import jwt  # PyJWT

ALGORITHM = "HS256"


# PUBLIC_INTERFACE
def verify_password(password: str, stored: str) -> bool:
    """Compare a submitted password with the stored one."""
    if password is None or stored is None:
        return False
    return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))


# PUBLIC_INTERFACE
def create_session_token(session_id: str, secret_key: str, expires_delta: timedelta) -> Dict[str, Any]:
    """Create a signed JWT carrying the session id."""
    now = datetime.now(timezone.utc)
    exp = now + expires_delta
    payload = {
        "sub": session_id,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "type": "session",
    }
    token = jwt.encode(payload, secret_key, algorithm=ALGORITHM)
    return {"token": token, "expires_at": exp}


# PUBLIC_INTERFACE
def decode_session_token(token: str, secret_key: str) -> Optional[str]:
    """Return the session id from a cookie token, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None
    if payload.get("type") != "session":
        return None
    return payload.get("sub")


def random_avatar_color() -> str:
    return f"hsl({random.randint(0, 359)}, 70%, 50%)"
