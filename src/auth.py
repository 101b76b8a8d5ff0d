"""
Development sign-in backed by the key-value store.

There is no verification flow: requesting a magic link for an email signs
that user in straight away (creating a customer account on first use) and
stores a ``dev_<email>_<ms>`` token next to the user snapshot.  With
``auth_disabled`` set every caller is treated as the admin account.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from mock_db import MockDatabase
from models import User
from storage import AUTH_TOKEN_KEY, CURRENT_USER_KEY, KeyValueStore

logger = logging.getLogger(__name__)

BYPASS_EMAIL = "admin@buena.com"


@dataclass
class AuthResult:
    success: bool
    error: Optional[str] = None
    user: Optional[User] = None


class AuthService:
    def __init__(self, db: MockDatabase, store: KeyValueStore, auth_disabled: bool = False) -> None:
        self.db = db
        self.store = store
        self.auth_disabled = auth_disabled

    def request_magic_link(self, email: str) -> AuthResult:
        email = (email or "").strip()
        if "@" not in email:
            return AuthResult(False, error="A valid email address is required")
        user = self.db.get_user_by_email(email)
        if user is None:
            user = self.db.create_user(
                email=email,
                first_name=email.split("@")[0],
                last_name="User",
                role="customer",
            )
            logger.info(f"Created customer account for {email}", extra={"user_id": user.id})
        self.set_user(user)
        logger.info(f"User signed in: {email}", extra={"user_id": user.id})
        return AuthResult(True, user=user)

    def validate_magic_link(self, token: str) -> AuthResult:
        stored_token = self.store.get_item(AUTH_TOKEN_KEY)
        stored_user = self.store.get_item(CURRENT_USER_KEY)
        if not stored_token or not stored_user or stored_token != token:
            return AuthResult(False, error="Invalid or expired magic link")
        try:
            user = User.from_dict(json.loads(stored_user))
        except (ValueError, TypeError) as e:
            logger.warning(f"Stored user snapshot is unreadable: {e}")
            return AuthResult(False, error="Authentication failed")
        return AuthResult(True, user=user)

    def sign_out(self) -> AuthResult:
        self.store.remove_item(AUTH_TOKEN_KEY)
        self.store.remove_item(CURRENT_USER_KEY)
        return AuthResult(True)

    def get_current_user(self) -> Optional[User]:
        if self.auth_disabled:
            users = self.db.get_users()
            return self.db.get_user_by_email(BYPASS_EMAIL) or (users[0] if users else None)
        raw = self.store.get_item(CURRENT_USER_KEY)
        if not raw:
            return None
        try:
            return User.from_dict(json.loads(raw))
        except (ValueError, TypeError):
            return None

    def is_authenticated(self) -> bool:
        return self.get_current_user() is not None

    def current_token(self) -> Optional[str]:
        return self.store.get_item(AUTH_TOKEN_KEY)

    def set_user(self, user: User) -> None:
        """Sign ``user`` in directly and issue a fresh development token."""
        ms = int(self.db.now().timestamp() * 1000)
        self.store.set_item(CURRENT_USER_KEY, json.dumps(user.to_dict()))
        self.store.set_item(AUTH_TOKEN_KEY, f"dev_{user.email}_{ms}")

    def get_all_users(self) -> List[User]:
        return self.db.get_users()

    def switch_user(self, email: str) -> bool:
        user = self.db.get_user_by_email(email)
        if user is None:
            return False
        self.set_user(user)
        return True

    def get_auth_user(self) -> Optional[Dict[str, Any]]:
        """Current user with role information, or None when signed out."""
        user = self.get_current_user()
        if user is None:
            return None
        return {"id": user.id, "email": user.email, "role": user.role, "profile": user}
