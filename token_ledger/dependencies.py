from typing import Optional

from fastapi import Header, HTTPException, Request, status

from rewards import RewardEngine, ReferralRegistry
from upstream.client import AIBackendClient

from .config import Settings
from .service import TokenService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_reward_engine(request: Request) -> RewardEngine:
    return request.app.state.reward_engine


def get_referral_registry(request: Request) -> ReferralRegistry:
    return request.app.state.referrals


def get_ai_client(request: Request) -> AIBackendClient:
    return request.app.state.ai_client


def get_current_user_id(request: Request, x_user_id: Optional[int] = Header(default=None)) -> int:
    if x_user_id is not None:
        return x_user_id
    return request.app.state.settings.DEFAULT_USER_ID


def get_bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return authorization.strip()
