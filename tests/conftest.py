from types import SimpleNamespace

import pytest


def step(expect=None, rows=(), rowcount=None, columns=None, error=None):
    """One scripted reply of the fake cursor, matched in order against executed SQL."""
    return SimpleNamespace(
        expect=expect, rows=list(rows), rowcount=rowcount, columns=columns, error=error
    )


class FakeCursor:
    def __init__(self, script):
        self.script = list(script)
        self.executed = []
        self.rowcount = -1
        self.description = None
        self.closed = False
        self._rows = []

    def execute(self, sql, params=()):
        normalized = " ".join(sql.split())
        self.executed.append((normalized, params))
        reply = self.script.pop(0) if self.script else step()
        if reply.expect is not None:
            assert reply.expect in normalized, f"expected {reply.expect!r} in {normalized!r}"
        if reply.error is not None:
            raise reply.error
        self._rows = list(reply.rows)
        self.rowcount = reply.rowcount if reply.rowcount is not None else len(reply.rows)
        self.description = [(name,) for name in reply.columns] if reply.columns else None

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self.closed = True

    def statements(self):
        return [sql for sql, _ in self.executed]


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self):
        return self._cursor


@pytest.fixture
def fake_db(monkeypatch):
    """Replace ``run_transaction`` in a command module with a scripted connection."""

    def _install(module, *steps):
        cursor = FakeCursor(steps)
        conn = FakeConnection(cursor)
        monkeypatch.setattr(module, "run_transaction", lambda handler: handler(conn))
        return cursor

    return _install
