from typing import Optional

from fastapi import Header

from .errors import Unauthorized


def get_current_user(authorization: Optional[str] = Header(default=None)) -> str:
    """Return the principal named by the bearer token.

    Credentials are issued elsewhere; this service trusts the token value to
    be the user identifier.
    """
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        raise Unauthorized("Missing bearer token")
    user_id = authorization[len(prefix) :].strip()
    if not user_id:
        raise Unauthorized("Missing bearer token")
    return user_id
