import itertools
import logging
import secrets
import string
import threading
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .rule_engine import RewardEngine, TriggerEvent

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


class ReferralError(Exception):
    pass


class ReferralCodeNotFoundError(ReferralError):
    pass


class InvalidReferralError(ReferralError):
    pass


class _ReferralModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReferralCode(_ReferralModel):
    id: int
    user_id: int
    code: str
    used_count: int = 0
    created_at: datetime


class Referral(_ReferralModel):
    id: int
    code: str
    referrer_id: int
    referred_id: int
    status: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    reward_amount: Optional[int] = None


class ReferralSignupRequest(_ReferralModel):
    code: str
    referred_user_id: int


class ReferralRegistry:
    """Referral codes and completed referrals.

    A successful signup fires ``referral_signup`` on the reward engine for the
    referrer; the credited amount comes from whichever rules match.
    """

    def __init__(self, engine: RewardEngine):
        self.engine = engine
        self.codes_by_user: dict[int, ReferralCode] = {}
        self.codes: dict[str, ReferralCode] = {}
        self.referrals: list[Referral] = []
        self._code_ids = itertools.count(1)
        self._referral_ids = itertools.count(1)
        self._lock = threading.Lock()

    def get_code(self, user_id: int) -> Optional[ReferralCode]:
        return self.codes_by_user.get(user_id)

    def get_or_create_code(self, user_id: int) -> ReferralCode:
        with self._lock:
            existing = self.codes_by_user.get(user_id)
            if existing:
                return existing

            code = self._new_code()
            referral_code = ReferralCode(
                id=next(self._code_ids), user_id=user_id, code=code,
                created_at=datetime.now(timezone.utc),
            )
            self.codes_by_user[user_id] = referral_code
            self.codes[code] = referral_code
            return referral_code

    def list_referrals(self, user_id: int) -> list[Referral]:
        return [r for r in self.referrals if r.referrer_id == user_id]

    def register_signup(self, code: str, referred_user_id: int) -> Referral:
        with self._lock:
            referral_code = self.codes.get(code.strip().upper())
            if referral_code is None:
                raise ReferralCodeNotFoundError(f"Referral code {code} not found")
            if referral_code.user_id == referred_user_id:
                raise InvalidReferralError("Users cannot refer themselves")
            if any(r.referred_id == referred_user_id for r in self.referrals):
                raise InvalidReferralError(f"User {referred_user_id} was already referred")

            now = datetime.now(timezone.utc)
            referral = Referral(
                id=next(self._referral_ids), code=referral_code.code,
                referrer_id=referral_code.user_id, referred_id=referred_user_id,
                status="completed", created_at=now, completed_at=now,
            )
            self.referrals.append(referral)
            referral_code.used_count += 1

        results = self.engine.execute(
            TriggerEvent.REFERRAL_SIGNUP,
            referral.referrer_id,
            {"referral": {"completed": True, "referred_id": referred_user_id}},
        )
        reward = sum(
            a["result"]["amount"]
            for r in results for a in r["actions_executed"] if a["success"]
        )
        referral.reward_amount = reward or None
        logger.info(
            "Referral %s completed: referrer=%s referred=%s reward=%s",
            referral.id, referral.referrer_id, referred_user_id, reward,
        )
        return referral

    def _new_code(self) -> str:
        while True:
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self.codes:
                return code
