"""
Session-scoped authentication against Supabase auth.

Holds the signed-in user's session; the gateway reads user_id and
access_token from here to scope cart, wishlist and order rows.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from storefront.errors import AuthError
from storefront.models import AuthSession, AuthUser
from storefront.notifications import Notifier
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient

logger = get_logger("auth")


class SupabaseAuth:
    def __init__(self, client: SupabaseClient, notifier: Notifier) -> None:
        self._client = client
        self._notifier = notifier
        self.session: Optional[AuthSession] = None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self.session.user if self.session else None

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user.id if self.session else None

    @property
    def access_token(self) -> Optional[str]:
        return self.session.access_token if self.session else None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthSession:
        logger.info("auth: method=sign_in email=%s", email)
        try:
            data = await self._client.auth_request(
                "token",
                {"email": email, "password": password},
                params={"grant_type": "password"},
            )
            session = AuthSession.model_validate(data)
        except httpx.HTTPStatusError as e:
            logger.error("auth: method=sign_in email=%s result=error status=%s", email, e.response.status_code)
            self._notifier.error("Invalid email or password")
            raise AuthError("Invalid email or password") from e
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: a non-JSON body or a session payload that does not validate
            logger.error("auth: method=sign_in email=%s result=error error=%s", email, e)
            self._notifier.error("Unable to sign in right now")
            raise AuthError("Unable to sign in right now") from e

        self.session = session
        logger.info("auth: method=sign_in user_id=%s result=success", self.user_id)
        self._notifier.success("Welcome back!")
        return self.session

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> AuthUser:
        """
        Register a new account.

        When the project has email confirmation disabled Supabase returns a
        live session and the user is signed in immediately; otherwise only
        the user record comes back.
        """
        logger.info("auth: method=sign_up email=%s", email)
        metadata: Dict[str, Any] = {}
        if full_name:
            metadata["full_name"] = full_name
        if phone:
            metadata["phone"] = phone
        try:
            data = await self._client.auth_request(
                "signup",
                {"email": email, "password": password, "data": metadata},
            )
            if data.get("access_token"):
                session = AuthSession.model_validate(data)
                user = session.user
            else:
                session = None
                user = AuthUser.model_validate(data.get("user") or data)
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response) or "Registration failed"
            logger.error("auth: method=sign_up email=%s result=error error=%s", email, message)
            self._notifier.error(message)
            raise AuthError(message) from e
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error("auth: method=sign_up email=%s result=error error=%s", email, e)
            self._notifier.error("Registration failed")
            raise AuthError("Registration failed") from e

        if session is not None:
            self.session = session
        logger.info("auth: method=sign_up user_id=%s result=success", user.id)
        self._notifier.success("Account created successfully!")
        return user

    async def sign_out(self) -> None:
        token = self.access_token
        self.session = None
        if not token:
            return
        try:
            await self._client.auth_request("logout", access_token=token)
        except httpx.HTTPError as e:
            # Local session is already gone; the token expires server-side
            logger.warning("auth: method=sign_out result=error error=%s", e)
        self._notifier.info("Signed out")


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("msg") or body.get("error_description") or body.get("message")
    return None
