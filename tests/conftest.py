"""Shared fixtures and in-memory collaborators for the Artwork Guide tests.

Only the external collaborators are faked (counter store, identity
provider, completion service, conversation store). The limiter, gate,
middleware, routers and client run for real.
"""

import time
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import pytest

from artwork_guide.domain.exceptions import (
    AuthenticationError,
    LimiterInfrastructureError,
    PersistenceError,
)
from artwork_guide.domain.models import (
    CompletionMessage,
    CompletionResult,
    Conversation,
    Message,
)
from artwork_guide.domain.policies import RateLimitPolicy, RateLimitPolicyRegistry
from artwork_guide.interfaces.completion import CompletionServicePort
from artwork_guide.interfaces.conversations import ConversationRepositoryPort
from artwork_guide.interfaces.counter_store import CounterStorePort
from artwork_guide.interfaces.identity import IdentityResolverPort
from artwork_guide.services.rate_limiter import SlidingWindowRateLimiter

VALID_TOKEN = "token-u1"
OTHER_TOKEN = "token-u2"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: Optional[int] = None):
        self.now = start if start is not None else int(time.time() * 1000)

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class InMemoryCounterStore(CounterStorePort):
    """Sorted-set stand-in with the same eviction and counting rules as Redis."""

    def __init__(self):
        self.entries: dict[str, list[tuple[int, str]]] = {}
        self.ttls: dict[str, int] = {}
        self.admit_calls = 0
        self.closed = False

    async def admit(self, key, window_start, now, member, ttl_seconds):
        self.admit_calls += 1
        kept = [e for e in self.entries.get(key, []) if e[0] >= window_start]
        kept.append((now, member))
        self.entries[key] = kept
        self.ttls[key] = ttl_seconds
        return len(kept)

    async def count(self, key, window_start):
        return sum(1 for score, _ in self.entries.get(key, []) if score >= window_start)

    async def delete(self, key):
        self.entries.pop(key, None)
        self.ttls.pop(key, None)

    async def close(self):
        self.closed = True


class FailingCounterStore(CounterStorePort):
    """Counter store whose every call fails like an unreachable Redis."""

    async def admit(self, key, window_start, now, member, ttl_seconds):
        raise LimiterInfrastructureError("connection refused", key=key)

    async def count(self, key, window_start):
        raise LimiterInfrastructureError("connection refused", key=key)

    async def delete(self, key):
        raise LimiterInfrastructureError("connection refused", key=key)


class StaticIdentityResolver(IdentityResolverPort):
    def __init__(self, tokens: Optional[dict[str, str]] = None):
        self.tokens = tokens or {VALID_TOKEN: "u1", OTHER_TOKEN: "u2"}
        self.calls: list[str] = []

    async def verify(self, token: str) -> str:
        self.calls.append(token)
        if token not in self.tokens:
            raise AuthenticationError()
        return self.tokens[token]


class FakeCompletionService(CompletionServicePort):
    def __init__(self, text: Optional[str] = "A fine painting.", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: list[list[CompletionMessage]] = []
        self.usage = {"prompt_tokens": 12, "completion_tokens": 4, "total_tokens": 16}

    async def complete(self, messages, max_tokens=500, temperature=None):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return CompletionResult(text=self.text, usage=self.usage)


class InMemoryConversationRepository(ConversationRepositoryPort):
    def __init__(self):
        self.conversations: dict[UUID, Conversation] = {}
        self.messages: dict[UUID, list[Message]] = {}
        self.fail = False
        self.closed = False
        self._tick = datetime(2026, 1, 1)

    def _now(self) -> datetime:
        # Strictly increasing timestamps keep ordering deterministic
        self._tick += timedelta(seconds=1)
        return self._tick

    def _check(self, action: str) -> None:
        if self.fail:
            raise PersistenceError(f"Failed to {action}")

    async def create_conversation(self, user_id, title, artwork_image_url=None):
        self._check("create conversation")
        now = self._now()
        conversation = Conversation(
            user_id=user_id,
            title=title,
            artwork_image_url=artwork_image_url,
            created_at=now,
            updated_at=now,
        )
        self.conversations[conversation.id] = conversation
        self.messages[conversation.id] = []
        return conversation

    async def get_conversation(self, conversation_id, user_id):
        self._check("fetch conversation")
        conversation = self.conversations.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            return None
        return conversation

    async def list_conversations(self, user_id):
        self._check("fetch conversations")
        owned = [c for c in self.conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return [c.model_copy(update={"messages": list(self.messages[c.id])}) for c in owned]

    async def append_message(self, conversation_id, role, content):
        self._check(f"save {role.value} message")
        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=self._now(),
        )
        self.messages[conversation_id].append(message)
        conversation = self.conversations[conversation_id]
        self.conversations[conversation_id] = conversation.model_copy(
            update={"updated_at": message.created_at}
        )
        return message

    async def list_messages(self, conversation_id):
        self._check("fetch conversation history")
        return list(self.messages.get(conversation_id, []))

    async def close(self):
        self.closed = True


# ===========================================
# FIXTURES
# ===========================================


@pytest.fixture()
def policy() -> RateLimitPolicy:
    return RateLimitPolicy(max_requests=10, window_ms=300_000)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture()
def limiter(store: InMemoryCounterStore, clock: FakeClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(store=store, clock=clock)


@pytest.fixture()
def identity() -> StaticIdentityResolver:
    return StaticIdentityResolver()


@pytest.fixture()
def completion() -> FakeCompletionService:
    return FakeCompletionService()


@pytest.fixture()
def repository() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture()
def registry() -> RateLimitPolicyRegistry:
    return RateLimitPolicyRegistry()


@pytest.fixture()
def app(limiter, identity, registry, completion, repository):
    """FastAPI app wired to the in-memory collaborators."""
    from artwork_guide.api.main import create_app

    return create_app(
        rate_limiter=limiter,
        identity_resolver=identity,
        policy_registry=registry,
        completion_service=completion,
        conversation_repository=repository,
    )


def auth_headers(token: str = VALID_TOKEN) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}

