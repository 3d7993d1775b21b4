"""HTTP tests for the FastAPI app, run in-process through httpx's ASGI transport."""

import httpx
import pytest

from artwork_guide.api.main import create_app
from artwork_guide.domain.exceptions import DownstreamServiceError
from artwork_guide.domain.models import MessageRole
from artwork_guide.services.rate_limiter import SlidingWindowRateLimiter

from conftest import OTHER_TOKEN, FailingCounterStore, auth_headers

IMAGE = "aGVsbG8gd29ybGQ="


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


# ===========================================
# AUTHENTICATION
# ===========================================


@pytest.mark.asyncio
async def test_health_needs_no_token(app, identity) -> None:
    async with _client(app) as client:
        resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}
    assert identity.calls == []


@pytest.mark.asyncio
async def test_missing_token_is_rejected_before_limiter(app, store, limiter, policy) -> None:
    async with _client(app) as client:
        resp = await client.post("/chat", json={"message": "hello"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing authorization header"}
    assert "X-RateLimit-Remaining" not in resp.headers
    assert store.admit_calls == 0
    assert await limiter.get_remaining_requests("u1", policy) == 10


@pytest.mark.asyncio
async def test_invalid_token_is_rejected_before_limiter(app, store, completion) -> None:
    async with _client(app) as client:
        resp = await client.post(
            "/analyze-artwork", json={"image": IMAGE}, headers=auth_headers("forged")
        )

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid authentication"}
    assert store.admit_calls == 0
    assert completion.calls == []


@pytest.mark.asyncio
async def test_read_endpoints_require_authentication(app) -> None:
    async with _client(app) as client:
        for path in ("/conversations", "/rate-limits"):
            resp = await client.get(path)
            assert resp.status_code == 401


@pytest.mark.asyncio
async def test_cors_preflight_skips_authentication(app, identity) -> None:
    async with _client(app) as client:
        resp = await client.options(
            "/chat",
            headers={
                "Origin": "http://localhost:8081",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization,content-type",
            },
        )

    assert resp.status_code == 200
    assert identity.calls == []


# ===========================================
# CHAT
# ===========================================


@pytest.mark.asyncio
async def test_chat_creates_conversation_and_sets_headers(app, repository, completion) -> None:
    async with _client(app) as client:
        resp = await client.post(
            "/chat",
            json={"message": "Who painted this?", "createNew": True, "title": "Water Lilies"},
            headers=auth_headers(),
        )

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "A fine painting."
    assert body["usage"] == completion.usage
    assert resp.headers["X-RateLimit-Remaining"] == "9"
    assert resp.headers["Retry-After"] == "0"
    assert int(resp.headers["X-RateLimit-Reset"]) > 0

    (conversation,) = repository.conversations.values()
    assert str(conversation.id) == body["conversationId"]
    assert conversation.user_id == "u1"
    assert conversation.title == "Water Lilies"
    roles = [m.role for m in repository.messages[conversation.id]]
    assert roles == [MessageRole.USER, MessageRole.ASSISTANT]


@pytest.mark.asyncio
async def test_chat_default_title(app, repository) -> None:
    async with _client(app) as client:
        await client.post("/chat", json={"message": "hi"}, headers=auth_headers())

    (conversation,) = repository.conversations.values()
    assert conversation.title == "New Conversation"


@pytest.mark.asyncio
async def test_chat_sends_history_to_completion(app, repository, completion) -> None:
    async with _client(app) as client:
        first = await client.post(
            "/chat", json={"message": "Who painted this?", "createNew": True}, headers=auth_headers()
        )
        conversation_id = first.json()["conversationId"]
        second = await client.post(
            "/chat",
            json={"message": "When?", "conversationId": conversation_id},
            headers=auth_headers(),
        )

    assert second.status_code == 200
    assert second.json()["conversationId"] == conversation_id
    assert second.headers["X-RateLimit-Remaining"] == "8"

    sent = completion.calls[1]
    assert [(m.role, m.content) for m in sent] == [
        ("user", "Who painted this?"),
        ("assistant", "A fine painting."),
        ("user", "When?"),
    ]
    assert len(repository.messages[next(iter(repository.messages))]) == 4


@pytest.mark.asyncio
async def test_chat_reply_fallback_text(app, completion) -> None:
    completion.text = None
    async with _client(app) as client:
        resp = await client.post("/chat", json={"message": "hi"}, headers=auth_headers())

    assert resp.json()["message"] == "No response available"


@pytest.mark.asyncio
async def test_chat_on_foreign_conversation_is_not_found(app, completion) -> None:
    async with _client(app) as client:
        other = await client.post(
            "/chat", json={"message": "mine", "createNew": True}, headers=auth_headers(OTHER_TOKEN)
        )
        resp = await client.post(
            "/chat",
            json={"message": "hijack", "conversationId": other.json()["conversationId"]},
            headers=auth_headers(),
        )

    assert resp.status_code == 404
    assert resp.json() == {"error": "Conversation not found"}
    assert len(completion.calls) == 1


@pytest.mark.asyncio
async def test_chat_validation_error_is_bad_request(app) -> None:
    async with _client(app) as client:
        resp = await client.post("/chat", json={"message": ""}, headers=auth_headers())

    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid message")


# ===========================================
# RATE LIMITING
# ===========================================


@pytest.mark.asyncio
async def test_eleventh_chat_request_is_throttled(app, completion) -> None:
    async with _client(app) as client:
        for i in range(10):
            resp = await client.post("/chat", json={"message": f"q{i}"}, headers=auth_headers())
            assert resp.status_code == 200
            assert resp.headers["X-RateLimit-Remaining"] == str(9 - i)

        resp = await client.post("/chat", json={"message": "one more"}, headers=auth_headers())

    assert resp.status_code == 429
    body = resp.json()
    assert body["error"] == "Rate limit exceeded. Please wait before sending more messages."
    assert body["retryAfter"] in (299, 300)
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.headers["Retry-After"] == str(body["retryAfter"])
    # The denied request never reached the completion service
    assert len(completion.calls) == 10


@pytest.mark.asyncio
async def test_throttled_analysis_message(app, completion) -> None:
    async with _client(app) as client:
        for _ in range(10):
            await client.post("/analyze-artwork", json={"image": IMAGE}, headers=auth_headers())
        resp = await client.post("/analyze-artwork", json={"image": IMAGE}, headers=auth_headers())

    assert resp.status_code == 429
    assert resp.json()["error"] == (
        "Rate limit exceeded. Please wait before analyzing more artworks."
    )
    assert len(completion.calls) == 10


@pytest.mark.asyncio
async def test_users_are_throttled_independently(app) -> None:
    async with _client(app) as client:
        for _ in range(11):
            await client.post("/chat", json={"message": "q"}, headers=auth_headers())
        resp = await client.post("/chat", json={"message": "q"}, headers=auth_headers(OTHER_TOKEN))

    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Remaining"] == "9"


@pytest.mark.asyncio
async def test_downstream_failure_is_not_reported_as_throttling(app, completion) -> None:
    completion.error = DownstreamServiceError("Failed to get AI response")
    async with _client(app) as client:
        resp = await client.post("/chat", json={"message": "hi"}, headers=auth_headers())

    assert resp.status_code == 502
    assert resp.json() == {"error": "Failed to get AI response"}
    assert resp.headers["X-RateLimit-Remaining"] == "9"


@pytest.mark.asyncio
async def test_requests_pass_when_limiter_store_is_down(
    identity, registry, completion, repository, clock
) -> None:
    app = create_app(
        rate_limiter=SlidingWindowRateLimiter(store=FailingCounterStore(), clock=clock),
        identity_resolver=identity,
        policy_registry=registry,
        completion_service=completion,
        conversation_repository=repository,
    )

    async with _client(app) as client:
        for _ in range(15):
            resp = await client.post("/chat", json={"message": "q"}, headers=auth_headers())
            assert resp.status_code == 200
            assert resp.headers["X-RateLimit-Remaining"] == "10"
            assert resp.headers["Retry-After"] == "0"

        limits = await client.get("/rate-limits", headers=auth_headers())

    assert limits.json()["chat"]["remaining"] == 10


@pytest.mark.asyncio
async def test_rate_limits_endpoint_is_read_only(app, store) -> None:
    async with _client(app) as client:
        for _ in range(3):
            await client.post("/chat", json={"message": "q"}, headers=auth_headers())

        first = await client.get("/rate-limits", headers=auth_headers())
        second = await client.get("/rate-limits", headers=auth_headers())

    assert first.status_code == 200
    assert first.json() == second.json()
    assert first.json()["chat"] == {"remaining": 7, "limit": 10, "windowMs": 300_000}
    assert "analysis" in first.json()
    assert "X-RateLimit-Remaining" not in first.headers
    assert store.admit_calls == 3


@pytest.mark.asyncio
async def test_cors_exposes_rate_limit_headers(app) -> None:
    async with _client(app) as client:
        resp = await client.post(
            "/chat",
            json={"message": "hi"},
            headers={**auth_headers(), "Origin": "http://localhost:8081"},
        )

    exposed = resp.headers["access-control-expose-headers"]
    for name in ("X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"):
        assert name in exposed


# ===========================================
# ANALYSIS
# ===========================================


@pytest.mark.asyncio
async def test_analysis_sends_image_to_completion(app, completion, repository) -> None:
    async with _client(app) as client:
        resp = await client.post(
            "/analyze-artwork",
            json={"image": IMAGE, "prompt": "What style is this?"},
            headers=auth_headers(),
        )

    assert resp.status_code == 200
    assert resp.json()["analysis"] == "A fine painting."
    assert resp.json()["conversationId"] is None
    assert resp.headers["X-RateLimit-Remaining"] == "9"
    assert repository.conversations == {}

    (message,) = completion.calls[0]
    assert message.role == "user"
    assert message.content[0] == {"type": "text", "text": "What style is this?"}
    assert message.content[1]["image_url"]["url"] == f"data:image/jpeg;base64,{IMAGE}"


@pytest.mark.asyncio
async def test_analysis_can_start_a_conversation(app, repository) -> None:
    async with _client(app) as client:
        resp = await client.post(
            "/analyze-artwork",
            json={
                "image": IMAGE,
                "createConversation": True,
                "imageUrl": "https://cdn.example.com/lilies.jpg",
            },
            headers=auth_headers(),
        )

    (conversation,) = repository.conversations.values()
    assert resp.json()["conversationId"] == str(conversation.id)
    assert conversation.title == "Artwork Analysis"
    assert conversation.artwork_image_url == "https://cdn.example.com/lilies.jpg"
    (message,) = repository.messages[conversation.id]
    assert message.role is MessageRole.ASSISTANT
    assert message.content == "A fine painting."


@pytest.mark.asyncio
async def test_analysis_survives_storage_failure(app, repository) -> None:
    repository.fail = True
    async with _client(app) as client:
        resp = await client.post(
            "/analyze-artwork",
            json={"image": IMAGE, "createConversation": True},
            headers=auth_headers(),
        )

    assert resp.status_code == 200
    assert resp.json()["analysis"] == "A fine painting."
    assert resp.json()["conversationId"] is None


@pytest.mark.asyncio
async def test_analysis_requires_image(app) -> None:
    async with _client(app) as client:
        resp = await client.post("/analyze-artwork", json={}, headers=auth_headers())

    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid image")


# ===========================================
# CONVERSATIONS
# ===========================================


@pytest.mark.asyncio
async def test_list_conversations_newest_first(app) -> None:
    async with _client(app) as client:
        first = await client.post(
            "/chat", json={"message": "a", "title": "First"}, headers=auth_headers()
        )
        await client.post("/chat", json={"message": "b", "title": "Second"}, headers=auth_headers())
        await client.post("/chat", json={"message": "c"}, headers=auth_headers(OTHER_TOKEN))
        # Continuing the first conversation moves it to the top
        await client.post(
            "/chat",
            json={"message": "again", "conversationId": first.json()["conversationId"]},
            headers=auth_headers(),
        )

        resp = await client.get("/conversations", headers=auth_headers())

    conversations = resp.json()["conversations"]
    assert [c["title"] for c in conversations] == ["First", "Second"]
    assert len(conversations[0]["messages"]) == 4


@pytest.mark.asyncio
async def test_get_conversation_with_messages(app) -> None:
    async with _client(app) as client:
        created = await client.post(
            "/chat", json={"message": "Who painted this?"}, headers=auth_headers()
        )
        conversation_id = created.json()["conversationId"]

        resp = await client.get(f"/conversations/{conversation_id}", headers=auth_headers())
        foreign = await client.get(
            f"/conversations/{conversation_id}", headers=auth_headers(OTHER_TOKEN)
        )

    assert resp.status_code == 200
    body = resp.json()
    assert body["conversation"]["id"] == conversation_id
    assert "messages" not in body["conversation"]
    assert [m["role"] for m in body["messages"]] == ["user", "assistant"]
    assert foreign.status_code == 404
    assert foreign.json() == {"error": "Conversation not found"}


@pytest.mark.asyncio
async def test_storage_failure_is_server_error(app, repository) -> None:
    repository.fail = True
    async with _client(app) as client:
        resp = await client.get("/conversations", headers=auth_headers())

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch conversations"}


@pytest.mark.asyncio
async def test_cors_exposes_headers_on_throttled_response(app) -> None:
    headers = {**auth_headers(), "Origin": "http://localhost:8081"}
    async with _client(app) as client:
        for _ in range(10):
            await client.post("/chat", json={"message": "q"}, headers=headers)
        resp = await client.post("/chat", json={"message": "q"}, headers=headers)

    assert resp.status_code == 429
    assert "access-control-allow-origin" in resp.headers
    exposed = resp.headers["access-control-expose-headers"]
    for name in ("X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"):
        assert name in exposed


@pytest.mark.asyncio
async def test_cors_headers_on_unauthenticated_response(app) -> None:
    async with _client(app) as client:
        resp = await client.post(
            "/chat", json={"message": "q"}, headers={"Origin": "http://localhost:8081"}
        )

    assert resp.status_code == 401
    assert "access-control-allow-origin" in resp.headers


# ===========================================
# LIFESPAN
# ===========================================


@pytest.mark.asyncio
async def test_shutdown_closes_the_app_collaborators(app, store, repository) -> None:
    async with app.router.lifespan_context(app):
        assert store.closed is False

    assert store.closed is True
    assert repository.closed is True
