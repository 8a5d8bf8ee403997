# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Replaces Supabase with an in-memory store (FakeSupabase)
# - Mints HS256 tokens the auth layer accepts
# - Builds a TestClient with a fresh cache and realtime hub per test
# =============================================================================

import os
import time
from datetime import datetime, timezone
from unittest.mock import patch

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("REALTIME_BRIDGE_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from lib.supabase_client import SupabaseClientError


ALICE = {"user_id": "ALICE00001", "id": "11111111-1111-4111-8111-111111111111"}
BOB = {"user_id": "BOB0000002", "id": "22222222-2222-4222-8222-222222222222"}
TEACHER = {"user_id": "TEACH00003", "id": "33333333-3333-4333-8333-333333333333"}
ADMIN = {"user_id": "ADMIN00004", "id": "44444444-4444-4444-8444-444444444444"}


# =============================================================================
# In-memory Supabase
# =============================================================================

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeSupabase:
    """
    Stands in for lib.supabase_client.SupabaseClient.

    Only the methods the services call are implemented. Every read is
    counted in `reads` so tests can tell cache hits from database hits.
    Set `fail = True` to make every call raise SupabaseClientError.
    """

    def __init__(self):
        self.profiles: dict[str, dict] = {}
        self.friendships: set[frozenset] = set()
        self.presence: dict[str, bool] = {}
        self.progress: dict[str, dict] = {}
        self.subjects: dict[str, dict[str, dict]] = {}
        self.chats: dict[str, dict] = {}
        self.reads: dict[str, int] = {}
        self.fail = False

    def _check(self, operation: str) -> None:
        if self.fail:
            raise SupabaseClientError(message=f"{operation} failed", code="TEST_FAILURE")

    def _read(self, table: str) -> None:
        self._check(f"read {table}")
        self.reads[table] = self.reads.get(table, 0) + 1

    # Users

    def add_user(self, user: dict, role: str = "student") -> dict:
        profile = {
            "id": user["id"],
            "user_id": user["user_id"],
            "supabase_user_id": None,
            "role": role,
            "name": user["user_id"].title(),
            "avatar_url": None,
        }
        self.profiles[user["user_id"]] = profile
        return profile

    def befriend(self, first: dict, second: dict) -> None:
        self.friendships.add(frozenset({first["id"], second["id"]}))

    def fetch_user_profile(self, user_id: str):
        self._read("profiles")
        for profile in self.profiles.values():
            if user_id in (profile["id"], profile["user_id"]):
                return dict(profile)
        return None

    def update_presence(self, user_uuid: str, is_online: bool) -> None:
        self._check("update presence")
        self.presence[user_uuid] = is_online

    def are_friends(self, first_uuid: str, second_uuid: str) -> bool:
        self._read("friendships")
        return frozenset({first_uuid, second_uuid}) in self.friendships

    # Learner data

    def fetch_progress(self, user_id: str):
        self._read("users_progress")
        return self.progress.get(user_id)

    def upsert_progress(self, user_id: str, level: int) -> dict:
        self._check("upsert progress")
        row = {"user_id": user_id, "level": level, "updated_at": _now()}
        self.progress[user_id] = row
        return row

    def fetch_subjects(self, user_id: str) -> list:
        self._read("user_subjects")
        return list(self.subjects.get(user_id, {}).values())

    def upsert_subject(self, user_id: str, subject: str) -> dict:
        self._check("upsert subject")
        row = {"user_id": user_id, "subject": subject, "updated_at": _now()}
        self.subjects.setdefault(user_id, {})[subject] = row
        return row

    def delete_subject(self, user_id: str, subject: str) -> None:
        self._check("delete subject")
        self.subjects.get(user_id, {}).pop(subject, None)

    def fetch_chats(self, user_id: str):
        self._read("user_chats")
        return self.chats.get(user_id)

    def upsert_chats(self, user_id: str, messages: list) -> dict:
        self._check("upsert chats")
        row = {"user_id": user_id, "messages": messages, "updated_at": _now()}
        self.chats[user_id] = row
        return row


@pytest.fixture
def fake_supabase():
    """Patch every SupabaseClient consumer with one shared FakeSupabase."""
    fake = FakeSupabase()
    fake.add_user(ALICE)
    fake.add_user(BOB)
    fake.add_user(TEACHER, role="teacher")
    fake.add_user(ADMIN, role="admin")

    targets = [
        "core.services.learner_service.SupabaseClient",
        "app.websocket.authenticator.SupabaseClient",
        "app.websocket.presence.SupabaseClient",
    ]
    patchers = [patch(target, fake) for target in targets]
    for patcher in patchers:
        patcher.start()
    yield fake
    for patcher in patchers:
        patcher.stop()


# =============================================================================
# Auth
# =============================================================================

def make_token(user: dict, expires_in: int = 3600) -> str:
    """Mint a Supabase-style access token for a test user."""
    from app.config import settings

    now = int(time.time())
    claims = {
        "sub": user["id"],
        "aud": "authenticated",
        "iat": now,
        "exp": now + expires_in,
        "email": f"{user['user_id'].lower()}@example.com",
        "app_metadata": {"user_id": user["user_id"]},
    }
    return jwt.encode(claims, settings.SUPABASE_JWT_SECRET, algorithm="HS256")


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {make_token(user)}"}


# =============================================================================
# App
# =============================================================================

@pytest.fixture
def session_cache():
    from lib.session_cache import SessionCache
    return SessionCache(ttls={"chats": 180}, default_ttl=300)


@pytest.fixture
def realtime_hub():
    from app.websocket.hub import RealtimeHub
    return RealtimeHub()


@pytest.fixture
def client(fake_supabase, session_cache, realtime_hub):
    """TestClient with a fresh cache and realtime hub for each test."""
    from app.dependencies import get_session_cache
    from app.main import app
    from app.websocket.hub import get_realtime_hub

    app.dependency_overrides[get_session_cache] = lambda: session_cache
    app.dependency_overrides[get_realtime_hub] = lambda: realtime_hub

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
