from __future__ import annotations

import uuid
from typing import Optional

from app.db.connection import fetch_one


def find_credentials(email: str) -> Optional[dict]:
    return fetch_one(
        """
        SELECT id, email, password_hash, password_salt, created_at
        FROM users
        WHERE lower(email) = lower(%s)
        """,
        (email,),
    )


def find_session(token_hash: str) -> Optional[dict]:
    return fetch_one(
        """
        SELECT s.user_id, s.expires_at, u.email
        FROM user_sessions s
        JOIN users u ON u.id = s.user_id
        WHERE s.token_hash = %s AND s.expires_at > now()
        """,
        (token_hash,),
    )


def fetch_role(user_id: uuid.UUID) -> Optional[dict]:
    return fetch_one(
        """
        SELECT role, must_change_password, protected
        FROM user_roles
        WHERE user_id = %s
        """,
        (user_id,),
    )
