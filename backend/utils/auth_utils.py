"""
Cognito bearer-token authentication for the ledger API.

Settings come from the environment (COGNITO_REGION, COGNITO_USER_POOL_ID,
COGNITO_APP_CLIENT_ID). The pool's public keys are fetched once and reused
for `JWKS_TTL_SECONDS`.
"""
import json
import logging
import os
import time
import urllib.request
from typing import Any, Dict, List

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request, status
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

load_dotenv()

logger = logging.getLogger(__name__)

COGNITO_REGION = os.getenv("COGNITO_REGION", "eu-north-1")
COGNITO_USER_POOL_ID = os.getenv("COGNITO_USER_POOL_ID")
COGNITO_APP_CLIENT_ID = os.getenv("COGNITO_APP_CLIENT_ID")

COGNITO_ISSUER = f"https://cognito-idp.{COGNITO_REGION}.amazonaws.com/{COGNITO_USER_POOL_ID}"
COGNITO_JWKS_URL = f"{COGNITO_ISSUER}/.well-known/jwks.json"

JWKS_TTL_SECONDS = 60 * 60 * 24

_jwks = {"keys": [], "fetched_at": 0.0}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_jwks() -> List[Dict[str, Any]]:
    if _jwks["keys"] and time.time() - _jwks["fetched_at"] < JWKS_TTL_SECONDS:
        return _jwks["keys"]

    logger.info(f"Fetching JWKS from: {COGNITO_JWKS_URL}")
    try:
        with urllib.request.urlopen(COGNITO_JWKS_URL) as response:
            keys = json.loads(response.read().decode("utf-8"))["keys"]
    except Exception as e:
        logger.error(f"Error fetching JWKS: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not fetch Cognito public keys for token validation."
        )
    _jwks.update(keys=keys, fetched_at=time.time())
    return keys


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise _unauthorized("Authorization header is missing")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Invalid authorization header format")
    return token.strip()


def _signing_key(token: str) -> Dict[str, Any]:
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError:
        raise _unauthorized("Invalid token header")
    for key in get_jwks():
        if key.get("kid") == kid:
            return {field: key[field] for field in ("kty", "kid", "use", "n", "e")}
    raise _unauthorized("Unable to find a matching public key to verify the token")


def get_current_user(request: Request) -> Dict[str, Any]:
    """FastAPI dependency: the verified claims of the request's Cognito ID token."""
    token = _bearer_token(request)
    try:
        return jwt.decode(
            token,
            _signing_key(token),
            algorithms=["RS256"],
            audience=COGNITO_APP_CLIENT_ID,
            issuer=COGNITO_ISSUER,
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTClaimsError as e:
        raise _unauthorized(f"Invalid token claims: {e}")
    except JWTError as e:
        raise _unauthorized(f"Token validation failed: {e}")


def get_user_identifier(user: Dict[str, Any]) -> str:
    """Best human-readable identity from the token claims."""
    if not user:
        return "system"
    return user.get("email") or user.get("cognito:username") or user.get("username") or user.get("sub") or "unknown"


def require_group(allowed_groups: List[str]):
    """Dependency factory: the user must belong to one of `allowed_groups`."""
    def checker(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        groups = user.get("cognito:groups", []) or []
        if not any(group in allowed_groups for group in groups):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user
    return checker
