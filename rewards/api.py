from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from token_ledger.dependencies import get_current_user_id, get_referral_registry, get_reward_engine

from .referrals import (
    ReferralRegistry, ReferralCode, Referral, ReferralSignupRequest,
    ReferralCodeNotFoundError, InvalidReferralError,
)
from .rule_engine import RewardEngine, TriggerEvent

router = APIRouter(tags=["Rewards"])


@router.get("/referrals/code", response_model=Optional[ReferralCode])
def get_referral_code(
    user_id: int = Depends(get_current_user_id),
    referrals: ReferralRegistry = Depends(get_referral_registry),
) -> Optional[ReferralCode]:
    return referrals.get_code(user_id)


@router.post("/referrals/code/generate", response_model=ReferralCode)
def generate_referral_code(
    user_id: int = Depends(get_current_user_id),
    referrals: ReferralRegistry = Depends(get_referral_registry),
) -> ReferralCode:
    return referrals.get_or_create_code(user_id)


@router.get("/referrals", response_model=list[Referral])
def list_referrals(
    user_id: int = Depends(get_current_user_id),
    referrals: ReferralRegistry = Depends(get_referral_registry),
) -> list[Referral]:
    return referrals.list_referrals(user_id)


@router.post("/referrals/signup", response_model=Referral, status_code=status.HTTP_201_CREATED)
def register_referral_signup(
    request: ReferralSignupRequest,
    referrals: ReferralRegistry = Depends(get_referral_registry),
) -> Referral:
    try:
        return referrals.register_signup(request.code, request.referred_user_id)
    except ReferralCodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidReferralError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/rewards/{trigger}")
def trigger_rewards(
    trigger: TriggerEvent,
    context: Optional[dict[str, Any]] = Body(default=None),
    user_id: int = Depends(get_current_user_id),
    engine: RewardEngine = Depends(get_reward_engine),
) -> list[dict]:
    return engine.execute(trigger, user_id, context)
