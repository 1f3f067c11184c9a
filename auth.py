import logging
from functools import lru_cache
from typing import Optional

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from schemas import CurrentUser

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


class AuthClient:
    """Validates bearer tokens against the auth service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def validate(self, token: str) -> Optional[CurrentUser]:
        """Return the token's subject, or None when the token is rejected.

        Raises ``httpx.RequestError`` when the auth service cannot be reached.
        """
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            res = await client.get(
                f"{self.base_url}/users/validate",
                headers={"Authorization": f"Bearer {token}"},
            )
        if res.status_code != status.HTTP_200_OK:
            return None

        payload = res.json()
        try:
            return CurrentUser(user_id=int(payload["user_id"]), role=payload.get("role") or "user")
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Auth service returned an unusable payload: {payload!r}")
            return None


@lru_cache
def get_auth_client() -> AuthClient:
    return AuthClient(settings.AUTH_SERVICE_URL, timeout=settings.AUTH_TIMEOUT_SECONDS)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_client: AuthClient = Depends(get_auth_client),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token format")

    try:
        user = await auth_client.validate(credentials.credentials)
    except httpx.RequestError as exc:
        logger.error(f"Auth service communication error: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth service unavailable",
        )

    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user
