import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from .config import SESSION_TTL_SECONDS
from .errors import BackendError, ErrorKind
from .models import row_to_dict

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(dt: datetime) -> str:
    return dt.isoformat()


@dataclass(frozen=True)
class AuthContext:
    """Credentials of the signed-in operator for one request.

    The only place backend calls get their bearer token from.
    """

    session_token: str
    user_id: str
    role: str
    access_token: str
    hostel_id: Optional[str] = None

    def get_token(self) -> str:
        return self.access_token

    def with_auth(self, headers: Dict[str, str]) -> Dict[str, str]:
        merged = dict(headers)
        merged["Authorization"] = f"Bearer {self.access_token}"
        return merged


def create_session(
    conn,
    user_id: str,
    access_token: str,
    role: str = "admin",
    email: Optional[str] = None,
    hostel_id: Optional[str] = None,
) -> str:
    token = secrets.token_urlsafe(32)
    now = _now()
    expires = now + timedelta(seconds=SESSION_TTL_SECONDS)
    conn.execute(
        """
        INSERT INTO sessions (
            token, user_id, email, role, access_token, hostel_id,
            created_at, last_seen_at, expires_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            token,
            user_id,
            email,
            role,
            access_token,
            hostel_id,
            _to_iso(now),
            _to_iso(now),
            _to_iso(expires),
        ),
    )
    conn.commit()
    return token


def get_session(conn, token: str) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    row = conn.execute(
        "SELECT * FROM sessions WHERE token = ?",
        (token,),
    ).fetchone()
    if row is None:
        return None
    expires_at = datetime.fromisoformat(row["expires_at"])
    now = _now()
    if now > expires_at:
        conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
        conn.commit()
        return None
    new_expires = now + timedelta(seconds=SESSION_TTL_SECONDS)
    conn.execute(
        "UPDATE sessions SET last_seen_at = ?, expires_at = ? WHERE token = ?",
        (_to_iso(now), _to_iso(new_expires), token),
    )
    conn.commit()
    session = row_to_dict(row)
    session["last_seen_at"] = _to_iso(now)
    session["expires_at"] = _to_iso(new_expires)
    return session


def delete_session(conn, token: str) -> bool:
    if not token:
        return False
    cursor = conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
    conn.commit()
    return cursor.rowcount > 0


def context_from_session(session: Dict[str, Any]) -> AuthContext:
    return AuthContext(
        session_token=session["token"],
        user_id=session["user_id"],
        role=session["role"],
        access_token=session["access_token"],
        hostel_id=session.get("hostel_id"),
    )


def login(conn, backend, email: str, password: str) -> Dict[str, Any]:
    """Exchange credentials with the hostel API and open a local session.

    Unverified accounts are refused with ``EMAIL_UNVERIFIED`` and get no
    session, so their token is never stored.
    """
    try:
        data = backend.post("/auth/login", {"email": email, "password": password})
    except BackendError as exc:
        if exc.kind in (ErrorKind.SESSION_EXPIRED, ErrorKind.INVALID_TOKEN):
            raise BackendError(ErrorKind.INVALID_CREDENTIALS, exc.status_code, exc.message) from exc
        raise

    if not isinstance(data, dict) or not data.get("access_token"):
        raise BackendError(ErrorKind.SERVER, 200, "Login response did not include an access token")
    user = data.get("user") or {}
    if not user.get("is_verified", False):
        logger.info("Login refused for unverified account %s", email)
        raise BackendError(ErrorKind.EMAIL_UNVERIFIED, 403, "Email address has not been verified")

    user_id = str(user.get("id", email))
    role = str(user.get("role") or "admin")
    hostel_id = user.get("hostelId") or user.get("hostel_id")
    token = create_session(
        conn,
        user_id,
        data["access_token"],
        role=role,
        email=user.get("email", email),
        hostel_id=str(hostel_id) if hostel_id else None,
    )
    logger.info("Opened session for user %s (role=%s)", user_id, role)
    return {"token": token, "user_id": user_id, "role": role}
