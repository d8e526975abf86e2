"""Auth utilities and dependencies for FastAPI.

- security: HTTPBearer instance
- require_auth(): dependency that validates the Authorization header; when
  TEACH_ME_API_TOKEN is set the bearer token must match it
"""
import os
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

security = HTTPBearer()


def require_auth(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing auth")
    expected = os.getenv("TEACH_ME_API_TOKEN")
    if expected and not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid auth")
    return credentials.credentials
