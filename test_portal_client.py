"""
HTTP gateway used by the learner attempt session
"""

import json

import httpx
import pytest

from app.client.portal import PortalClient, PortalError


def recording_transport(responses):
    """Serve canned responses keyed by (method, path) and record every request."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status, body = responses[(request.method, request.url.path)]
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler), seen


async def test_login_keeps_token_for_later_calls():
    transport, seen = recording_transport(
        {
            ("POST", "/auth/login"): (200, {"access_token": "abc", "user": {}}),
            ("GET", "/student/quizzes"): (200, [{"id": 1}]),
        }
    )

    async with PortalClient(base_url="http://portal", transport=transport) as client:
        await client.login("ada@college.edu", "secret-pass")
        quizzes = await client.fetch_available_quizzes()

    assert quizzes == [{"id": 1}]
    assert "Authorization" not in seen[0].headers
    assert seen[1].headers["Authorization"] == "Bearer abc"


async def test_attempt_calls_send_expected_payloads():
    transport, seen = recording_transport(
        {
            ("POST", "/student/quizzes/3/attempts"): (201, {"attempt": {"id": 9}}),
            ("PUT", "/student/attempts/9/answers"): (200, {"answered_count": 1}),
            ("POST", "/student/attempts/9/submit"): (200, {"status": "completed"}),
        }
    )

    async with PortalClient(base_url="http://portal", token="t", transport=transport) as client:
        await client.create_attempt(3)
        await client.persist_answers(9, {"1": "a"})
        result = await client.complete_attempt(9, {"1": "a"})

    assert result == {"status": "completed"}
    assert json.loads(seen[1].content) == {"answers": {"1": "a"}}
    assert json.loads(seen[2].content) == {"answers": {"1": "a"}}


async def test_error_responses_raise_portal_error():
    transport, _ = recording_transport(
        {
            ("POST", "/student/attempts/9/submit"): (
                409,
                {"detail": "Attempt was abandoned"},
            ),
            ("GET", "/student/quizzes/4"): (422, {"error": "Validation error"}),
        }
    )

    async with PortalClient(base_url="http://portal", token="t", transport=transport) as client:
        with pytest.raises(PortalError) as conflict:
            await client.complete_attempt(9, None)
        with pytest.raises(PortalError) as invalid:
            await client.fetch_quiz_with_questions(4)

    assert conflict.value.status_code == 409
    assert conflict.value.detail == "Attempt was abandoned"
    assert invalid.value.detail == "Validation error"


async def test_transport_failure_has_no_status_code():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with PortalClient(
        base_url="http://portal", transport=httpx.MockTransport(handler)
    ) as client:
        with pytest.raises(PortalError) as failure:
            await client.abandon_attempt(1)

    assert failure.value.status_code is None
