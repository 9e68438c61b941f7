from __future__ import annotations

import logging
import uuid

import pg8000.dbapi as pgapi
from fastapi import HTTPException

from app.core.security import new_password_hash
from app.cqrs.commands.auth import insert_user
from app.db.connection import run_transaction

logger = logging.getLogger(__name__)

PROTECTED_DETAIL = "Protected account cannot be modified"


def _role_out(user_id, role: str, must_change_password: bool, protected: bool) -> dict:
    return {
        "user_id": str(user_id),
        "role": role,
        "must_change_password": bool(must_change_password),
        "protected": bool(protected),
    }


def _guarded(handler):
    """Run ``handler`` in a transaction, mapping the store's protected-role refusal to 403."""
    try:
        return run_transaction(handler)
    except pgapi.DatabaseError as exc:
        if "protected role" not in str(exc):
            raise
        logger.warning("Store refused change to a protected role: %s", exc)
        raise HTTPException(status_code=403, detail=PROTECTED_DETAIL) from exc


def create_admin(email: str, password: str) -> dict:
    def _handler(conn):
        cur = conn.cursor()
        user = insert_user(cur, email, password)
        cur.execute(
            """
            INSERT INTO user_roles (user_id, role, must_change_password, protected)
            VALUES (%s, 'admin', true, false)
            """,
            (uuid.UUID(user["id"]),),
        )
        cur.close()
        return {
            "user_id": user["id"],
            "email": user["email"],
            "role": "admin",
            "must_change_password": True,
            "protected": False,
            "created_at": user["created_at"],
        }

    admin = run_transaction(_handler)
    logger.info("Admin account %s created", admin["user_id"])
    return admin


def set_role(user_id: uuid.UUID, role: str) -> dict:
    def _handler(conn):
        cur = conn.cursor()
        cur.execute("SELECT id FROM users WHERE id = %s", (user_id,))
        if not cur.fetchone():
            cur.close()
            raise HTTPException(status_code=404, detail="User not found")
        cur.execute(
            """
            SELECT role, must_change_password, protected
            FROM user_roles
            WHERE user_id = %s
            FOR UPDATE
            """,
            (user_id,),
        )
        existing = cur.fetchone()
        if existing is None:
            cur.execute(
                """
                INSERT INTO user_roles (user_id, role, must_change_password, protected)
                VALUES (%s, %s, false, false)
                """,
                (user_id, role),
            )
            cur.close()
            return _role_out(user_id, role, False, False)
        _, must_change_password, protected = existing
        if protected:
            cur.close()
            raise HTTPException(status_code=403, detail=PROTECTED_DETAIL)
        cur.execute("UPDATE user_roles SET role = %s WHERE user_id = %s", (role, user_id))
        cur.close()
        return _role_out(user_id, role, must_change_password, False)

    result = _guarded(_handler)
    logger.info("User %s granted role %s", user_id, role)
    return result


def revoke_role(user_id: uuid.UUID) -> dict:
    def _handler(conn):
        cur = conn.cursor()
        cur.execute(
            "SELECT protected FROM user_roles WHERE user_id = %s FOR UPDATE",
            (user_id,),
        )
        row = cur.fetchone()
        if not row:
            cur.close()
            raise HTTPException(status_code=404, detail="User has no role")
        if row[0]:
            cur.close()
            raise HTTPException(status_code=403, detail=PROTECTED_DETAIL)
        cur.execute("DELETE FROM user_roles WHERE user_id = %s", (user_id,))
        cur.close()
        return {"status": "revoked", "user_id": str(user_id)}

    result = _guarded(_handler)
    logger.info("Role revoked for user %s", user_id)
    return result


def bootstrap_super_admin(email: str, password: str) -> dict:
    """Create or promote the distinguished account to a protected super admin."""

    def _handler(conn):
        cur = conn.cursor()
        cur.execute("SELECT id FROM users WHERE lower(email) = lower(%s)", (email,))
        row = cur.fetchone()
        created = row is None
        if created:
            user_id = uuid.UUID(insert_user(cur, email, password)["id"])
        else:
            user_id = row[0]
            if password:
                password_hash, salt_hex = new_password_hash(password)
                cur.execute(
                    "UPDATE users SET password_hash = %s, password_salt = %s WHERE id = %s",
                    (password_hash, salt_hex, user_id),
                )
        cur.execute(
            """
            INSERT INTO user_roles (user_id, role, must_change_password, protected)
            VALUES (%s, 'super_admin', false, true)
            ON CONFLICT (user_id) DO UPDATE
            SET role = 'super_admin', protected = true, must_change_password = false
            """,
            (user_id,),
        )
        cur.close()
        return {**_role_out(user_id, "super_admin", False, True), "created": created}

    result = run_transaction(_handler)
    logger.info("Super admin %s ready (created=%s)", result["user_id"], result["created"])
    return result
