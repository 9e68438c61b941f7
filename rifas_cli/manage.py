from __future__ import annotations

import argparse
import getpass
import os
import sys
import uuid
from pathlib import Path


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        os.environ.setdefault(key, value)


def _migrate(_: argparse.Namespace) -> int:
    from app.cqrs.commands.migrations import run_migrations

    result = run_migrations()
    print(f"Schema applied at {result['applied_at'].isoformat()}")
    return 0


def _create_super_admin(args: argparse.Namespace) -> int:
    from app.cqrs.commands.roles import bootstrap_super_admin
    from app.services.validation import password_problem

    password = args.password or os.getenv("SUPER_ADMIN_PASSWORD") or getpass.getpass("Password: ")
    problem = password_problem(password, password)
    if problem:
        raise RuntimeError(problem)
    result = bootstrap_super_admin(args.email, password)
    action = "Created" if result["created"] else "Promoted"
    print(f"{action} protected super admin {args.email} ({result['user_id']})")
    return 0


def _export_buyers(args: argparse.Namespace) -> int:
    from app.cqrs.queries.tickets import list_sold_tickets
    from app.services.export import buyers_csv, buyers_filename

    raffle, sold = list_sold_tickets(uuid.UUID(args.raffle_id))
    output = Path(args.output) if args.output else Path(buyers_filename(raffle["name"]))
    output.write_text(buyers_csv(sold), encoding="utf-8")
    print(f"Wrote {len(sold)} buyers to {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sistema de Rifas maintenance commands")
    parser.add_argument("--env-file", default=".env", help="Load variables from this file first")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Create or update the database schema")
    migrate.set_defaults(func=_migrate)

    super_admin = subparsers.add_parser(
        "create-super-admin", help="Create or promote the protected super admin account"
    )
    super_admin.add_argument("email")
    super_admin.add_argument("--password")
    super_admin.set_defaults(func=_create_super_admin)

    export = subparsers.add_parser("export-buyers", help="Write a raffle's buyer list as CSV")
    export.add_argument("raffle_id")
    export.add_argument("--output")
    export.set_defaults(func=_export_buyers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _load_env_file(Path(args.env_file))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
