"""
Tests for referral codes and referral rewards.
"""

import pytest
from fastapi.testclient import TestClient

from rewards import (
    InvalidReferralError,
    ReferralCodeNotFoundError,
    ReferralRegistry,
    RewardEngine,
    default_rules,
)
from token_ledger.api import create_app
from token_ledger.config import Settings
from token_ledger.service import TokenService


REFERRER_ID = 1
REFERRED_ID = 2


@pytest.fixture
def registry():
    engine = RewardEngine(TokenService())
    for rule in default_rules(Settings()):
        engine.add_rule(rule)
    return ReferralRegistry(engine)


class TestReferralCodes:
    """Tests for referral code generation."""

    def test_code_is_stable_per_user(self, registry):
        first = registry.get_or_create_code(REFERRER_ID)
        second = registry.get_or_create_code(REFERRER_ID)

        assert first.code == second.code
        assert len(first.code) == 8
        assert registry.get_code(REFERRER_ID) == first

    def test_no_code_until_generated(self, registry):
        assert registry.get_code(REFERRER_ID) is None

    def test_codes_differ_between_users(self, registry):
        assert registry.get_or_create_code(1).code != registry.get_or_create_code(2).code


class TestReferralSignup:
    """Tests for completing a referral."""

    def test_signup_credits_referrer(self, registry):
        """Test that a referral pays 500 tokens to the referrer."""
        code = registry.get_or_create_code(REFERRER_ID)

        referral = registry.register_signup(code.code.lower(), REFERRED_ID)

        assert referral.status == "completed"
        assert referral.reward_amount == 500
        assert registry.get_code(REFERRER_ID).used_count == 1
        ledger = registry.engine.token_service
        assert ledger.get_balance(REFERRER_ID).amount == 500
        assert ledger.store.get_history(REFERRER_ID)[0].title == "친구 초대 보상"
        assert ledger.get_balance(REFERRED_ID).amount == 0
        assert registry.list_referrals(REFERRER_ID) == [referral]

    def test_unknown_code(self, registry):
        with pytest.raises(ReferralCodeNotFoundError):
            registry.register_signup("NOPE0000", REFERRED_ID)

    def test_self_referral_rejected(self, registry):
        code = registry.get_or_create_code(REFERRER_ID)

        with pytest.raises(InvalidReferralError):
            registry.register_signup(code.code, REFERRER_ID)

        assert registry.engine.token_service.get_balance(REFERRER_ID).amount == 0

    def test_user_can_only_be_referred_once(self, registry):
        code = registry.get_or_create_code(REFERRER_ID)
        registry.register_signup(code.code, REFERRED_ID)

        with pytest.raises(InvalidReferralError):
            registry.register_signup(code.code, REFERRED_ID)

        assert registry.engine.token_service.get_balance(REFERRER_ID).amount == 500


class TestReferralEndpoints:
    """HTTP tests for referral and reward endpoints."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(Settings(SEED_DEMO_DATA=False)))

    def test_referral_flow(self, client):
        assert client.get("/referrals/code").json() is None
        code = client.post("/referrals/code/generate").json()["code"]

        response = client.post("/referrals/signup", json={"code": code, "referredUserId": REFERRED_ID})

        assert response.status_code == 201
        assert response.json()["rewardAmount"] == 500
        assert client.get("/referrals").json()[0]["referredId"] == REFERRED_ID
        assert client.get("/tokens/balance").json()["amount"] == 500

    def test_signup_with_unknown_code(self, client):
        response = client.post("/referrals/signup", json={"code": "XXXXXXXX", "referredUserId": REFERRED_ID})
        assert response.status_code == 404

    def test_self_referral_is_bad_request(self, client):
        code = client.post("/referrals/code/generate").json()["code"]

        response = client.post("/referrals/signup", json={"code": code, "referredUserId": REFERRER_ID})

        assert response.status_code == 400

    def test_trigger_daily_login(self, client):
        response = client.post("/rewards/daily_login")

        assert response.status_code == 200
        assert response.json()[0]["rule_id"] == "rule-daily-login"
        assert client.get("/tokens/balance").json()["amount"] == 100

    def test_replayed_reward_triggers_pay_once(self, client):
        """Test that repeating reward requests cannot farm tokens."""
        for _ in range(3):
            client.post("/rewards/profile_completed", json={"profile": {"completion": 100, "rewarded": False}})
            client.post("/rewards/daily_login", json={"login": {"first_today": True}})

        assert client.get("/tokens/balance").json()["amount"] == 400
        titles = [entry["title"] for entry in client.get("/tokens/history").json()]
        assert sorted(titles) == ["매일 로그인 보상", "프로필 완성 보상"]

    def test_replayed_trigger_returns_no_results(self, client):
        client.post("/rewards/daily_login")

        response = client.post("/rewards/daily_login")

        assert response.status_code == 200
        assert response.json() == []

    def test_unknown_trigger(self, client):
        response = client.post("/rewards/birthday", json={})
        assert response.status_code == 422
