"""
Token Reward Rules

Provides reward rule representation and evaluation, plus the referral
registry whose completed signups are paid out through the token ledger.
"""

from .rule_engine import (
    RewardEngine,
    RewardRule,
    Condition,
    ConditionGroup,
    Action,
    ConditionOperator,
    LogicalOperator,
    ActionType,
    TriggerEvent,
    RewardFrequency,
    default_rules,
)
from .referrals import (
    ReferralRegistry,
    ReferralCode,
    Referral,
    ReferralError,
    ReferralCodeNotFoundError,
    InvalidReferralError,
)

__all__ = [
    "RewardEngine",
    "RewardRule",
    "Condition",
    "ConditionGroup",
    "Action",
    "ConditionOperator",
    "LogicalOperator",
    "ActionType",
    "TriggerEvent",
    "RewardFrequency",
    "default_rules",
    "ReferralRegistry",
    "ReferralCode",
    "Referral",
    "ReferralError",
    "ReferralCodeNotFoundError",
    "InvalidReferralError",
]
