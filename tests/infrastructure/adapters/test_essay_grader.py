import json

import httpx
import pytest

from mneme.domain.errors import EscalationFailure
from mneme.infrastructure.adapters.essay_grader import HttpEssayGrader, parse_verdict

URL = "http://grader.test/v1/chat/completions"


def _reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_grader(handler, **kwargs):
    kwargs.setdefault("retry_delays", (0, 0, 0))
    return HttpEssayGrader(URL, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_grade_essay_success():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply('{"score": 0.8, "rationale": "Covers paging"}'))

    grader = make_grader(handler, api_key="sk-test", model="tiny-model")
    verdict = await grader.grade_essay("Explain paging.", "Pages map to frames.", "Memory is split into pages")

    assert verdict.score == 0.8
    assert verdict.rationale == "Covers paging"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "tiny-model"
    assert "Memory is split into pages" in seen["body"]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_retries_then_succeeds():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=_reply('{"score": 1, "rationale": "ok"}'))

    verdict = await make_grader(handler).grade_essay("p", "r", "a")
    assert verdict.score == 1.0
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_gives_up_after_all_retries():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(EscalationFailure, match="4 attempt"):
        await make_grader(handler).grade_essay("p", "r", "a")
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_garbage_reply_is_a_failure():
    def handler(request):
        return httpx.Response(200, json=_reply("I think it's fine"))

    with pytest.raises(EscalationFailure):
        await make_grader(handler, retry_delays=()).grade_essay("p", "r", "a")


@pytest.mark.asyncio
async def test_no_auth_header_without_key():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json=_reply('{"score": 0.5}'))

    await make_grader(handler).grade_essay("p", "r", "a")
    assert seen["auth"] is None


# ---------- parse_verdict ----------


def test_parse_verdict_fenced_and_clamped():
    verdict = parse_verdict(_reply('```json\n{"score": 1.7, "rationale": " great "}\n```'))
    assert verdict.score == 1.0
    assert verdict.rationale == "great"


def test_parse_verdict_embedded_in_prose():
    verdict = parse_verdict(_reply('Here you go: {"score": -0.2, "rationale": "off topic"} Thanks'))
    assert verdict.score == 0.0


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"choices": []},
        _reply(None),
        _reply('{"rationale": "no score"}'),
        _reply('{"score": "NaN"}'),
        _reply('{"score": "high"}'),
    ],
)
def test_parse_verdict_rejects(body):
    with pytest.raises((ValueError, KeyError, TypeError, IndexError)):
        parse_verdict(body)
