from __future__ import annotations

from app.db.connection import fetch_all


def list_users() -> list[dict]:
    rows = fetch_all(
        """
        SELECT u.id, u.email, u.created_at, r.role,
               COALESCE(r.must_change_password, false) AS must_change_password,
               COALESCE(r.protected, false) AS protected
        FROM users u
        LEFT JOIN user_roles r ON r.user_id = u.id
        ORDER BY u.created_at ASC
        """
    )
    return [
        {
            "user_id": str(row["id"]),
            "email": row["email"],
            "role": row.get("role"),
            "must_change_password": bool(row["must_change_password"]),
            "protected": bool(row["protected"]),
            "created_at": row["created_at"],
        }
        for row in rows
    ]
