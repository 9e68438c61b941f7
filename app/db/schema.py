from __future__ import annotations


def ensure_schema(conn) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id uuid PRIMARY KEY,
            email text NOT NULL UNIQUE,
            password_hash text NOT NULL,
            password_salt text NOT NULL,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS user_sessions (
            token_hash text PRIMARY KEY,
            user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at timestamptz NOT NULL DEFAULT now(),
            expires_at timestamptz NOT NULL
        );
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS user_sessions_user_id_idx ON user_sessions (user_id);"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS user_roles (
            user_id uuid PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            role text NOT NULL CHECK (role IN ('admin', 'super_admin')),
            must_change_password boolean NOT NULL DEFAULT true,
            protected boolean NOT NULL DEFAULT false,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    cur.execute(
        """
        CREATE OR REPLACE FUNCTION guard_protected_role() RETURNS trigger AS $$
        BEGIN
            IF TG_OP = 'DELETE' THEN
                IF OLD.protected THEN
                    RAISE EXCEPTION 'protected role cannot be revoked';
                END IF;
                RETURN OLD;
            END IF;
            IF OLD.protected AND (NEW.role <> OLD.role OR NOT NEW.protected) THEN
                RAISE EXCEPTION 'protected role cannot be changed';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    cur.execute("DROP TRIGGER IF EXISTS user_roles_protected_guard ON user_roles;")
    cur.execute(
        """
        CREATE TRIGGER user_roles_protected_guard
        BEFORE UPDATE OR DELETE ON user_roles
        FOR EACH ROW EXECUTE FUNCTION guard_protected_role();
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS raffles (
            id uuid PRIMARY KEY,
            name text NOT NULL,
            price numeric(10,2) NOT NULL CHECK (price > 0),
            ticket_count int NOT NULL CHECK (ticket_count > 0),
            description text NOT NULL,
            date date NOT NULL,
            time time NOT NULL,
            status text NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'closed', 'finalized')),
            winner_number int,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS tickets (
            id uuid PRIMARY KEY,
            raffle_id uuid NOT NULL REFERENCES raffles(id) ON DELETE CASCADE,
            number int NOT NULL CHECK (number > 0),
            status text NOT NULL DEFAULT 'free' CHECK (status IN ('free', 'sold')),
            buyer_name text,
            buyer_email text,
            buyer_phone text,
            purchase_time timestamptz,
            UNIQUE (raffle_id, number)
        );
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS tickets_raffle_status_idx ON tickets (raffle_id, status);"
    )
    conn.commit()
    cur.close()
