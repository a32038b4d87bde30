"""
Shared fixtures.

- FakeSupabase: in-memory stand-in for the supabase-py query builder, covering
  the calls the store helpers make (select/insert/update with eq, in_, is_,
  gte, order, limit, range and maybe_single).
- FakeClassifier: replaces services.ai.complete_json so no network is touched.
"""

from __future__ import annotations

import copy
import uuid

import pytest

from roadway import create_app
from roadway.services import ai, link_safety, supabase_client
from roadway.utils.errors import ExternalServiceUnavailable


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_count = None
        self.range_bounds = None
        self.single = False

    # --- operations ---

    def select(self, *_columns):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    # --- filters ---

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def range(self, start, end):
        self.range_bounds = (start, end)
        return self

    def maybe_single(self):
        self.single = True
        return self

    # --- execution ---

    def _matches(self, row) -> bool:
        return all(f(row) for f in self.filters)

    def execute(self):
        if self.db.fail:
            raise RuntimeError("connection refused")

        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in items:
                row = copy.deepcopy(item)
                row.setdefault("id", uuid.uuid4().hex)
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        if self.op == "update":
            if self.db.before_update is not None:
                hook, self.db.before_update = self.db.before_update, None
                hook(self.db)
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        indexed = [(i, row) for i, row in enumerate(rows) if self._matches(row)]
        if self.order_by:
            column, desc = self.order_by
            # Insertion order breaks ties so equal timestamps stay deterministic
            indexed.sort(key=lambda pair: (pair[1].get(column) or "", pair[0]), reverse=desc)
        result = [copy.deepcopy(row) for _, row in indexed]
        if self.range_bounds:
            start, end = self.range_bounds
            result = result[start:end + 1]
        if self.limit_count is not None:
            result = result[:self.limit_count]

        if self.single:
            return FakeResponse(result[0]) if result else None
        return FakeResponse(result)


class FakeSupabase:
    def __init__(self):
        self.tables = {"posts": [], "profiles": [], "notifications": []}
        self.fail = False
        # One-shot callable run just before the next update executes
        self.before_update = None

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    # --- test helpers ---

    def add_profile(self, user_id: str, **fields):
        row = {
            "id": user_id,
            "is_admin": False,
            "clean_post_count": 0,
            "post_violations": 0,
            "is_trusted": False,
        }
        row.update(fields)
        self.tables["profiles"].append(row)
        return row

    def profile(self, user_id: str):
        return next((r for r in self.tables["profiles"] if r["id"] == user_id), None)

    def add_post(self, author_id: str, status: str, created_at: str, **fields):
        row = {
            "id": fields.pop("id", uuid.uuid4().hex),
            "author_id": author_id,
            "course_name": "Course",
            "review": "Review",
            "rating": 4,
            "status": status,
            "created_at": created_at,
            "updated_at": created_at,
        }
        row.update(fields)
        self.tables["posts"].append(row)
        return row

    def post(self, post_id: str):
        return next((r for r in self.tables["posts"] if r["id"] == post_id), None)


class FakeClassifier:
    """Callable with the same signature as ai.complete_json."""

    def __init__(self):
        self.content_reply = {"isViolation": False, "reason": "", "severity": "low", "violationTypes": []}
        self.link_reply = {"isSafe": True, "riskLevel": "low", "reason": "", "warnings": []}
        self.calls = []

    def __call__(self, system_prompt, user_prompt, max_tokens=300):
        is_link = system_prompt == link_safety.LINK_SYSTEM_PROMPT
        self.calls.append(("link" if is_link else "content", user_prompt))
        reply = self.link_reply if is_link else self.content_reply
        if isinstance(reply, Exception):
            raise reply
        return copy.deepcopy(reply)

    def calls_of(self, kind: str):
        return [prompt for k, prompt in self.calls if k == kind]

    def violate(self, reason="hate speech detected", severity="high", types=("hate_speech",)):
        self.content_reply = {
            "isViolation": True,
            "reason": reason,
            "severity": severity,
            "violationTypes": list(types),
        }

    def content_down(self, message="timeout"):
        self.content_reply = ExternalServiceUnavailable(message)

    def link_down(self, message="timeout"):
        self.link_reply = ExternalServiceUnavailable(message)


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.add_profile("admin1", is_admin=True)
    fake.add_profile("user1")
    fake.add_profile("user2")
    return fake


@pytest.fixture
def classifier(monkeypatch):
    fake = FakeClassifier()
    monkeypatch.setattr(ai, "complete_json", fake)
    return fake


@pytest.fixture
def app(monkeypatch, db, classifier):
    monkeypatch.setenv("APP_CONFIG", "roadway.config.TestConfig")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    application = create_app()
    monkeypatch.setattr(supabase_client, "_supabase_admin", db)
    link_safety.clear_link_cache()
    ai._clear_router_cache()
    yield application
    link_safety.clear_link_cache()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()
