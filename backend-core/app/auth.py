from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import settings


auth_scheme = HTTPBearer(auto_error=True)


def verify_supabase_jwt(token: str):
    if not settings.supabase_jwt_secret:
        raise HTTPException(status_code=500, detail="SUPABASE_JWT_SECRET not configured.")
    options = {"verify_iss": bool(settings.supabase_issuer)}
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_jwt_audience,
            options=options,
            issuer=settings.supabase_issuer or None,
        )
    except JWTError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}") from exc
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Token has no subject.")
    return payload


def require_user(creds: HTTPAuthorizationCredentials = Depends(auth_scheme)):
    """Authenticated Supabase user claims; `sub` owns the stored report data."""
    return verify_supabase_jwt(creds.credentials)
