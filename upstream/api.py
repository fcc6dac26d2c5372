from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from token_ledger.dependencies import get_ai_client, get_bearer_token, get_current_user_id

from .client import AIBackendClient
from .errors import UpstreamContractViolation, UpstreamError
from .schemas import (
    AIClone, ChatMessage, ChatRequest, ExperienceInput, ExperienceSummary,
    ProfileMatch, SelfIntroFeedback, SelfIntroFeedbackRequest,
)


router = APIRouter(tags=["AI"])


def _bad_gateway(e: UpstreamError) -> HTTPException:
    if isinstance(e, UpstreamContractViolation):
        detail = "AI 서버 응답 형식이 올바르지 않습니다."
    else:
        detail = "AI 서버에 연결할 수 없습니다."
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


@router.post("/experiences/summary", response_model=ExperienceSummary, status_code=status.HTTP_201_CREATED)
def summarize_experience(
    experience: ExperienceInput,
    client: AIBackendClient = Depends(get_ai_client),
) -> ExperienceSummary:
    try:
        return client.summarize_experience(experience)
    except UpstreamError as e:
        raise _bad_gateway(e)


@router.get("/self-intro/feedback", response_model=list[SelfIntroFeedback])
def list_self_intro_feedback(
    token: str = Depends(get_bearer_token),
    client: AIBackendClient = Depends(get_ai_client),
) -> list[SelfIntroFeedback]:
    try:
        return client.list_self_intro_feedback(token)
    except UpstreamError as e:
        raise _bad_gateway(e)


@router.post("/self-intro/feedback", response_model=SelfIntroFeedback, status_code=status.HTTP_201_CREATED)
def request_self_intro_feedback(
    request: SelfIntroFeedbackRequest,
    token: str = Depends(get_bearer_token),
    client: AIBackendClient = Depends(get_ai_client),
) -> SelfIntroFeedback:
    try:
        return client.request_self_intro_feedback(token, request.subject, request.content)
    except UpstreamError as e:
        raise _bad_gateway(e)


@router.post("/messages", response_model=ChatMessage, status_code=status.HTTP_201_CREATED)
def send_message(
    request: ChatRequest,
    user_id: int = Depends(get_current_user_id),
    token: str = Depends(get_bearer_token),
    client: AIBackendClient = Depends(get_ai_client),
) -> ChatMessage:
    try:
        reply = client.career_chat(token, user_id, request.content)
    except UpstreamError as e:
        raise _bad_gateway(e)
    return ChatMessage(user_id=user_id, content=reply.content, is_user=False, timestamp=datetime.now(timezone.utc))


def _search(client: AIBackendClient, token: str, query: Optional[str], external: bool) -> list[ProfileMatch]:
    if not query or not query.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query is required")
    try:
        return client.search_profiles(token, query.strip(), external=external)
    except UpstreamError as e:
        raise _bad_gateway(e)


@router.get("/search-profiles", response_model=list[ProfileMatch])
def search_profiles(
    query: Optional[str] = Query(default=None),
    token: str = Depends(get_bearer_token),
    client: AIBackendClient = Depends(get_ai_client),
) -> list[ProfileMatch]:
    return _search(client, token, query, external=False)


@router.get("/ex-search-profiles", response_model=list[ProfileMatch])
def search_external_profiles(
    query: Optional[str] = Query(default=None),
    token: str = Depends(get_bearer_token),
    client: AIBackendClient = Depends(get_ai_client),
) -> list[ProfileMatch]:
    return _search(client, token, query, external=True)


@router.post("/clone/generate", response_model=AIClone)
def generate_clone(
    user_id: int = Depends(get_current_user_id),
    token: str = Depends(get_bearer_token),
    client: AIBackendClient = Depends(get_ai_client),
) -> AIClone:
    try:
        return client.generate_clone(token, user_id)
    except UpstreamError as e:
        raise _bad_gateway(e)
