"""
Authentication - login/logout and the single auth-retry combinator.

The job subsystem never prompts for credentials itself. It wraps each
remote call in ``with_auth_retry`` and hands an ``Authenticator`` in;
on an "unauthorized" answer the authenticator logs in (updating the
session cookie) and the call is issued exactly once more.

Usage:
    from deployr_cli.core.auth import PromptAuthenticator, with_auth_retry

    auth = PromptAuthenticator()
    jobs = await with_auth_retry(session, auth, lambda: client.list_jobs())
"""

import asyncio
import getpass
import logging
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from deployr_cli.core.errors import AuthenticationError
from deployr_cli.core.services import DeployRApiError, ServiceError
from deployr_cli.core.session import Session

logger = logging.getLogger("auth")

T = TypeVar("T")

MAX_LOGIN_ATTEMPTS = 3


class Authenticator(Protocol):
    """Anything that can refresh the session cookie."""

    async def login(self, session: Session) -> None:
        ...


class PromptAuthenticator:
    """
    Prompt for username/password and log in against ``user/login``.

    The username prompt defaults to the stored username. Three password
    attempts are allowed before giving up.
    """

    def __init__(
        self,
        prompt: Callable[[str], str] = input,
        read_password: Callable[[str], str] = getpass.getpass,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
    ):
        self._prompt = prompt
        self._read_password = read_password
        self.max_attempts = max_attempts

    def _ask_username(self, default: Optional[str]) -> str:
        label = f"Username [{default}]: " if default else "Username: "
        while True:
            answer = self._prompt(label).strip() or (default or "")
            if answer:
                return answer
            print(" Please enter a valid username")

    async def login(self, session: Session) -> None:
        username = self._ask_username(session.username)

        for attempt in range(self.max_attempts):
            password = self._read_password("Password: ")
            # Login goes out without the stale cookie
            session.cookie = None
            try:
                response = await asyncio.to_thread(
                    session.call,
                    "user/login",
                    {"username": username, "password": password},
                )
            except DeployRApiError as e:
                logger.debug(f"Login attempt {attempt + 1} rejected: {e.error}")
                print("Permission denied, please try again.")
                continue

            user = response.get("user") or {}
            session.update_credentials(
                user.get("username", username),
                response.get("httpcookie"),
            )
            logger.info(f"Logged in as {session.username}")
            return

        raise AuthenticationError(
            f"Login failed for '{username}' after {self.max_attempts} attempts"
        )


async def logout(session: Session) -> None:
    """Log out on the server (best effort) and forget the cookie locally."""
    if session.cookie:
        try:
            await asyncio.to_thread(session.call, "user/logout")
        except ServiceError as e:
            logger.warning(f"Server logout failed: {e}")
    session.clear_credentials()


async def with_auth_retry(
    session: Session,
    authenticator: Authenticator,
    call: Callable[[], Awaitable[T]],
) -> T:
    """
    Await ``call()``; on an auth error log in and await it exactly once more.

    Non-auth errors propagate untouched. A second auth error after a
    successful login becomes AuthenticationError, with no third attempt.
    """
    try:
        return await call()
    except ServiceError as e:
        if not e.is_auth:
            raise
        logger.info(f"Session rejected ({e}); logging in")

    await authenticator.login(session)

    try:
        return await call()
    except ServiceError as e:
        if e.is_auth:
            raise AuthenticationError(f"Still unauthorized after login: {e}") from e
        raise
