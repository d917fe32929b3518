import asyncio
import json
import logging
import re
from collections.abc import Sequence
from typing import Any

import httpx

from mneme.domain.constants import (
    DEFAULT_ESCALATION_MODEL,
    ESCALATION_RETRY_DELAYS,
    ESCALATION_TIMEOUT,
)
from mneme.domain.errors import EscalationFailure
from mneme.domain.interfaces import EssayGrader
from mneme.domain.models import EssayVerdict

SYSTEM_PROMPT = (
    "You grade short essay answers against a reference answer. "
    'Reply with a JSON object only: {"score": <number between 0 and 1>, '
    '"rationale": "<one or two sentences>"}.'
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class HttpEssayGrader(EssayGrader):
    """Grades essays through an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        model: str = DEFAULT_ESCALATION_MODEL,
        timeout: float = ESCALATION_TIMEOUT,
        retry_delays: Sequence[float] = ESCALATION_RETRY_DELAYS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.retry_delays = tuple(retry_delays)
        self._transport = transport
        self.logger.debug(f"HttpEssayGrader initialized with url={self.url} model={self.model}")

    async def grade_essay(
        self, prompt: str, reference_answer: str, student_answer: str
    ) -> EssayVerdict:
        payload = {
            "model": self.model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"Question:\n{prompt}\n\n"
                        f"Reference answer:\n{reference_answer}\n\n"
                        f"Student answer:\n{student_answer}"
                    ),
                },
            ],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        last_error: Exception | None = None
        attempts = len(self.retry_delays) + 1
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(attempts):
                try:
                    resp = await client.post(self.url, json=payload, headers=headers)
                    resp.raise_for_status()
                    return parse_verdict(resp.json())
                except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
                    last_error = e
                    self.logger.warning(
                        f"Essay grading attempt {attempt + 1}/{attempts} failed: {e}"
                    )
                if attempt < len(self.retry_delays):
                    await asyncio.sleep(self.retry_delays[attempt])

        raise EscalationFailure(f"Essay grading failed after {attempts} attempt(s): {last_error}")


def _extract_json(content: str) -> Any:
    text = _FENCE_RE.sub("", content.strip())
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Some models wrap the object in prose
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError(f"No JSON object in grader reply: {content[:80]!r}") from None
        return json.loads(text[start : end + 1])


def parse_verdict(data: dict[str, Any]) -> EssayVerdict:
    """
    Read a chat-completions response body into a verdict.

    Raises:
        ValueError, KeyError, IndexError or TypeError: If the body does not carry
            a usable verdict.
    """
    content = data["choices"][0]["message"]["content"]
    if not isinstance(content, str):
        raise TypeError("Grader reply content is not text")

    obj = _extract_json(content)
    if not isinstance(obj, dict) or "score" not in obj:
        raise ValueError("Grader reply has no score")

    score = float(obj["score"])
    if score != score:  # NaN
        raise ValueError("Grader score is NaN")
    score = max(0.0, min(1.0, score))
    return EssayVerdict(score=score, rationale=str(obj.get("rationale") or "").strip())
