from jose import jwt

from app.core.config import settings


# ─── JWT ──────────────────────────────────────────────────────────────────────

def create_access_token(subject: str) -> str:
    """Issue an access token for `subject`; used by tests and the seed script."""
    return jwt.encode(
        {"sub": subject, "type": "access"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(token: str) -> dict:
    """Raises JWTError on invalid/expired token."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
