"""SQLAdmin authentication backend."""

import logging
import secrets

from sqladmin.authentication import AuthenticationBackend
from starlette.requests import Request

from showtally.config import settings

logger = logging.getLogger(__name__)


def credentials_match(username: str, password: str) -> bool:
    """Compare against the configured admin credentials in constant time."""
    user_ok = secrets.compare_digest(username.encode(), settings.admin_username.encode())
    password_ok = secrets.compare_digest(password.encode(), settings.admin_password.encode())
    return user_ok and password_ok


class AdminAuth(AuthenticationBackend):
    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = str(form.get("username") or "")
        if not credentials_match(username, str(form.get("password") or "")):
            logger.warning(f"Failed admin login for {username!r}")
            return False
        request.session.update({"admin_user": username})
        return True

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return "admin_user" in request.session
