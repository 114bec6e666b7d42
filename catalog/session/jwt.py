import os, time
from typing import Any, Dict, List, Optional
import jwt  # PyJWT

ALGORITHM = "HS256"


def _secret() -> str:
    secret = os.environ.get("APP_JWT_SECRET")
    if not secret:
        raise RuntimeError("APP_JWT_SECRET must be set")
    return secret


def _iss() -> str:
    return os.getenv("APP_JWT_ISS", "http://localhost:8000")


def _aud() -> str:
    return os.getenv("APP_JWT_AUD", "movie-catalog")


def _access_ttl() -> int:
    return int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900"))  # 15m


def issue_access_token(sub: str, roles: List[str], email: Optional[str] = None) -> str:
    """
    Short-lived access token carrying sub/email/roles. Issuance normally
    belongs to the identity provider; this is used by tooling and tests.
    """
    iat = int(time.time())
    payload = {
        "iss": _iss(),
        "aud": _aud(),
        "iat": iat,
        "exp": iat + _access_ttl(),
        "sub": sub,
        "email": email,
        "roles": roles,
        "typ": "access",
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def verify_access(token: str) -> Dict[str, Any]:
    payload = jwt.decode(
        token,
        _secret(),
        algorithms=[ALGORITHM],
        audience=_aud(),
        issuer=_iss(),
        options={"require": ["exp", "iat", "aud", "iss", "sub"]},
    )
    if payload.get("typ") != "access":
        raise jwt.InvalidTokenError("wrong token type")
    return payload
