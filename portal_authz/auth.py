"""
Caller identity.

Bearer tokens are issued by the external identity provider; this module
only verifies them and extracts the caller uid from the ``sub`` claim.
A missing, expired or invalid token yields no caller, and each permission
operation then fails with UNAUTHENTICATED.
"""

import logging

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt

from portal_authz.config import settings
from portal_authz.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

# auto_error=False: an anonymous call must reach the operation, which decides
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def decode_access_token(token: str) -> str | None:
    """Return the uid carried by *token*, or None if it cannot be trusted."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {str(e)}")
        return None

    uid = payload.get("sub")
    if not uid or not isinstance(uid, str):
        logger.warning("Token does not contain a usable 'sub' claim")
        return None
    return uid


async def get_caller_uid(request: Request, token: str | None = Depends(oauth2_scheme)) -> str | None:
    if not token:
        return None
    uid = decode_access_token(token)
    # Picked up by the access log
    request.state.caller_uid = uid
    return uid


def require_authenticated(caller_uid: str | None) -> str:
    if not caller_uid:
        raise AuthenticationError()
    return caller_uid


async def require_management_access(store, caller_uid: str | None) -> str:
    """
    Gate for the two management operations.

    Authentication is always required.  The super admin check only applies
    when ``require_super_admin_for_management`` is enabled.
    """
    caller_uid = require_authenticated(caller_uid)
    if settings.require_super_admin_for_management:
        caller = await store.get_user(caller_uid)
        if caller is None or not caller.is_super_admin:
            logger.warning(f"Permission management denied for caller {caller_uid}")
            raise AuthorizationError("Super admin privileges required")
    return caller_uid
