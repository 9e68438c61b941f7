from __future__ import annotations

from datetime import datetime, timedelta, timezone
import uuid

from fastapi import HTTPException

from app.core.security import new_password_hash
from app.db.connection import execute, run_transaction


def insert_user(cur, email: str, password: str) -> dict:
    cur.execute("SELECT id FROM users WHERE lower(email) = lower(%s)", (email,))
    if cur.fetchone():
        cur.close()
        raise HTTPException(status_code=409, detail="Email already registered")
    user_id = uuid.uuid4()
    password_hash, salt_hex = new_password_hash(password)
    cur.execute(
        """
        INSERT INTO users (id, email, password_hash, password_salt)
        VALUES (%s, %s, %s, %s)
        RETURNING id, email, created_at
        """,
        (user_id, email, password_hash, salt_hex),
    )
    row = cur.fetchone()
    return {"id": str(row[0]), "email": row[1], "created_at": row[2]}


def register_user(email: str, password: str) -> dict:
    def _handler(conn):
        cur = conn.cursor()
        user = insert_user(cur, email, password)
        cur.close()
        return user

    return run_transaction(_handler)


def open_session(user_id: str, token_hash: str, ttl_minutes: int) -> datetime:
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
    user_uuid = uuid.UUID(str(user_id))

    def _handler(conn):
        cur = conn.cursor()
        cur.execute(
            "DELETE FROM user_sessions WHERE user_id = %s AND expires_at <= now()",
            (user_uuid,),
        )
        cur.execute(
            "INSERT INTO user_sessions (token_hash, user_id, expires_at) VALUES (%s, %s, %s)",
            (token_hash, user_uuid, expires_at),
        )
        cur.close()

    run_transaction(_handler)
    return expires_at


def close_session(token_hash: str) -> int:
    return execute("DELETE FROM user_sessions WHERE token_hash = %s", (token_hash,))


def rotate_session(old_hash: str, new_hash: str, ttl_minutes: int) -> tuple[str, datetime]:
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)

    def _handler(conn):
        cur = conn.cursor()
        cur.execute(
            """
            DELETE FROM user_sessions
            WHERE token_hash = %s AND expires_at > now()
            RETURNING user_id
            """,
            (old_hash,),
        )
        row = cur.fetchone()
        if not row:
            cur.close()
            raise HTTPException(status_code=401, detail="Session expired or not found")
        cur.execute(
            "INSERT INTO user_sessions (token_hash, user_id, expires_at) VALUES (%s, %s, %s)",
            (new_hash, row[0], expires_at),
        )
        cur.close()
        return str(row[0])

    user_id = run_transaction(_handler)
    return user_id, expires_at


def change_password(user_id: str, password: str) -> None:
    password_hash, salt_hex = new_password_hash(password)

    def _handler(conn):
        cur = conn.cursor()
        cur.execute(
            "UPDATE users SET password_hash = %s, password_salt = %s WHERE id = %s",
            (password_hash, salt_hex, uuid.UUID(str(user_id))),
        )
        if cur.rowcount != 1:
            cur.close()
            raise HTTPException(status_code=404, detail="User not found")
        cur.execute(
            "UPDATE user_roles SET must_change_password = false WHERE user_id = %s",
            (uuid.UUID(str(user_id)),),
        )
        cur.close()

    run_transaction(_handler)
