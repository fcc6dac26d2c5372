import logging
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import UpstreamContractViolation, UpstreamUnavailableError
from .schemas import (
    AIClone,
    ChatReply,
    ExperienceInput,
    ExperienceSummary,
    ProfileMatch,
    SelfIntroFeedback,
)

logger = logging.getLogger(__name__)


class AIBackendClient:
    """Client for the external AI backend.

    Every response body is validated against a schema before it is handed
    back; anything else raises ``UpstreamContractViolation``.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        self.http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self.http.close()

    def summarize_experience(self, experience: ExperienceInput) -> ExperienceSummary:
        payload = {
            "title": experience.title,
            "role": experience.role,
            "achievement": experience.achievement,
            "tags": experience.tags,
        }
        return self._request("POST", "/api/summarize-experience", ExperienceSummary, json=payload)

    def list_self_intro_feedback(self, token: str) -> list[SelfIntroFeedback]:
        return self._request("GET", "/api/SelfIntroList", list[SelfIntroFeedback], token=token)

    def request_self_intro_feedback(self, token: str, subject: str, content: str) -> SelfIntroFeedback:
        return self._request(
            "POST", "/api/AISelfIntroFeedback", SelfIntroFeedback,
            token=token, json={"subject": subject, "content": content},
        )

    def career_chat(self, token: str, user_id: int, message: str) -> ChatReply:
        return self._request(
            "POST", "/api/gpt/generate", ChatReply,
            token=token, json={"message": message, "userId": user_id},
        )

    def search_profiles(self, token: str, query: str, external: bool = False) -> list[ProfileMatch]:
        path = "/api/external_search" if external else "/api/search"
        return self._request(
            "POST", path, list[ProfileMatch],
            token=token, json={"selfIntroduction": query},
        )

    def generate_clone(self, token: str, user_id: int) -> AIClone:
        return self._request("POST", "/api/clone/generate", AIClone, token=token, json={"userId": user_id})

    def _request(self, method: str, path: str, schema: Any, token: Optional[str] = None, **kwargs) -> Any:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.http.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("AI backend %s %s returned %s", method, path, e.response.status_code)
            raise UpstreamUnavailableError(
                f"AI backend returned {e.response.status_code} for {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error("AI backend %s %s failed: %s", method, path, e)
            raise UpstreamUnavailableError(f"AI backend request to {path} failed: {e}") from e

        return _validate(path, response, schema)


def _validate(path: str, response: httpx.Response, schema: Any) -> Any:
    if not response.content:
        raise UpstreamContractViolation(path, "empty response body")
    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamContractViolation(path, f"invalid JSON: {e}") from e

    try:
        return TypeAdapter(schema).validate_python(data)
    except ValidationError as e:
        logger.warning("AI backend %s violated response schema: %s", path, e)
        raise UpstreamContractViolation(path, str(e)) from e
