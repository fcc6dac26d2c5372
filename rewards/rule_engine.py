from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Union, Optional
import json
import logging
import threading

from token_ledger.config import Settings
from token_ledger.service import TokenService, LedgerServiceError

logger = logging.getLogger(__name__)


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    IN = "in"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ActionType(str, Enum):
    CREDIT_TOKENS = "credit_tokens"


class TriggerEvent(str, Enum):
    REFERRAL_SIGNUP = "referral_signup"
    DAILY_LOGIN = "daily_login"
    PROFILE_COMPLETED = "profile_completed"
    MANUAL = "manual"


class RewardFrequency(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    UNLIMITED = "unlimited"


@dataclass
class Condition:
    field: str
    operator: ConditionOperator
    value: Any = None

    def evaluate(self, context: dict) -> bool:
        return self._apply_operator(self._get_field_value(context, self.field), self.value)

    def _get_field_value(self, context: dict, field_path: str) -> Any:
        value = context
        for part in field_path.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return None
        return value

    def _apply_operator(self, field_value: Any, compare_value: Any) -> bool:
        op = self.operator
        if op == ConditionOperator.IS_TRUE: return bool(field_value) is True
        if op == ConditionOperator.IS_FALSE: return bool(field_value) is False
        if op == ConditionOperator.EQUALS: return field_value == compare_value
        if op == ConditionOperator.NOT_EQUALS: return field_value != compare_value
        if op == ConditionOperator.IN: return field_value in compare_value if compare_value else False
        # Ordering comparisons against a missing field never match.
        if field_value is None:
            return False
        if op == ConditionOperator.GREATER_THAN: return field_value > compare_value
        if op == ConditionOperator.LESS_THAN: return field_value < compare_value
        if op == ConditionOperator.GREATER_THAN_OR_EQUAL: return field_value >= compare_value
        if op == ConditionOperator.LESS_THAN_OR_EQUAL: return field_value <= compare_value
        return False

    def to_dict(self) -> dict:
        return {"field": self.field, "operator": self.operator.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Condition":
        return cls(field=data["field"], operator=ConditionOperator(data["operator"]), value=data.get("value"))


@dataclass
class ConditionGroup:
    operator: LogicalOperator
    conditions: list[Union[Condition, "ConditionGroup"]]

    def evaluate(self, context: dict) -> bool:
        if not self.conditions:
            return True
        results = [cond.evaluate(context) for cond in self.conditions]
        return all(results) if self.operator == LogicalOperator.AND else any(results)

    def to_dict(self) -> dict:
        return {"operator": self.operator.value, "conditions": [c.to_dict() for c in self.conditions]}

    @classmethod
    def from_dict(cls, data: dict) -> "ConditionGroup":
        return cls(
            operator=LogicalOperator(data["operator"]),
            conditions=[_condition_from_dict(c) for c in data["conditions"]],
        )


def _condition_from_dict(data: dict) -> Union[Condition, ConditionGroup]:
    if "operator" in data and "conditions" in data:
        return ConditionGroup.from_dict(data)
    return Condition.from_dict(data)


@dataclass
class Action:
    type: ActionType
    params: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "params": self.params}

    @classmethod
    def from_dict(cls, data: dict) -> "Action":
        return cls(type=ActionType(data["type"]), params=data.get("params", {}))


@dataclass
class RewardRule:
    id: str
    name: str
    trigger: TriggerEvent
    conditions: Union[Condition, ConditionGroup]
    actions: list[Action]
    description: str = ""
    is_active: bool = True
    priority: int = 0
    frequency: RewardFrequency = RewardFrequency.UNLIMITED
    created_at: datetime = field(default_factory=datetime.now)

    def evaluate(self, context: dict) -> bool:
        if not self.is_active:
            return False
        return self.conditions.evaluate(context)

    def to_dict(self) -> dict:
        return {
            "id": self.id, "name": self.name, "description": self.description,
            "is_active": self.is_active, "priority": self.priority,
            "frequency": self.frequency.value,
            "trigger": self.trigger.value, "conditions": self.conditions.to_dict(),
            "actions": [a.to_dict() for a in self.actions],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "RewardRule":
        return cls(
            id=data["id"], name=data["name"], description=data.get("description", ""),
            is_active=data.get("is_active", True), priority=data.get("priority", 0),
            frequency=RewardFrequency(data.get("frequency", RewardFrequency.UNLIMITED.value)),
            trigger=TriggerEvent(data["trigger"]),
            conditions=_condition_from_dict(data["conditions"]),
            actions=[Action.from_dict(a) for a in data["actions"]],
        )


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class RewardEngine:
    """
    Evaluates reward rules for a trigger and pays matching ones.

    Payouts of `once` and `daily` rules are recorded here, keyed by user,
    rule and period, so replaying a trigger never pays twice.
    """

    def __init__(self, token_service: TokenService, today: Optional[Callable[[], date]] = None):
        self.token_service = token_service
        self.today = today or _utc_today
        self.rules: dict[str, RewardRule] = {}
        self.action_handlers = {
            ActionType.CREDIT_TOKENS: self._handle_credit_tokens,
        }
        self.paid: set[tuple[int, str, str]] = set()
        self._paid_lock = threading.Lock()

    def add_rule(self, rule: RewardRule) -> None:
        self.rules[rule.id] = rule

    def remove_rule(self, rule_id: str) -> None:
        self.rules.pop(rule_id, None)

    def get_rule(self, rule_id: str) -> Optional[RewardRule]:
        return self.rules.get(rule_id)

    def list_rules(self, trigger: Optional[TriggerEvent] = None) -> list[RewardRule]:
        rules = list(self.rules.values())
        if trigger:
            rules = [r for r in rules if r.trigger == trigger]
        rules.sort(key=lambda r: r.priority, reverse=True)
        return rules

    def evaluate(self, trigger: TriggerEvent, context: dict) -> list[RewardRule]:
        return [rule for rule in self.list_rules(trigger) if rule.evaluate(context)]

    def execute(self, trigger: TriggerEvent, user_id: int, context: Optional[dict] = None) -> list[dict]:
        context = context or {}
        results = []
        for rule in self.evaluate(trigger, context):
            payout_key = self._payout_key(rule, user_id)
            if not self._claim(payout_key):
                logger.info("Reward rule %s already paid to user %s, skipping", rule.id, user_id)
                continue
            rule_result = {"rule_id": rule.id, "rule_name": rule.name, "actions_executed": []}
            for action in rule.actions:
                handler = self.action_handlers[action.type]
                try:
                    action_result = handler(user_id, action.params)
                except LedgerServiceError as e:
                    logger.warning("Reward rule %s failed for user %s: %s", rule.id, user_id, e)
                    rule_result["actions_executed"].append(
                        {"type": action.type.value, "success": False, "error": str(e)}
                    )
                else:
                    rule_result["actions_executed"].append(
                        {"type": action.type.value, "success": True, "result": action_result}
                    )
            if payout_key and not any(a["success"] for a in rule_result["actions_executed"]):
                self._release(payout_key)
            results.append(rule_result)
        return results

    def has_paid(self, rule_id: str, user_id: int) -> bool:
        rule = self.rules.get(rule_id)
        key = self._payout_key(rule, user_id) if rule else None
        with self._paid_lock:
            return key in self.paid

    def _payout_key(self, rule: RewardRule, user_id: int) -> Optional[tuple[int, str, str]]:
        if rule.frequency == RewardFrequency.ONCE:
            return (user_id, rule.id, RewardFrequency.ONCE.value)
        if rule.frequency == RewardFrequency.DAILY:
            return (user_id, rule.id, self.today().isoformat())
        return None

    def _claim(self, key: Optional[tuple[int, str, str]]) -> bool:
        if key is None:
            return True
        with self._paid_lock:
            if key in self.paid:
                return False
            self.paid.add(key)
            return True

    def _release(self, key: tuple[int, str, str]) -> None:
        with self._paid_lock:
            self.paid.discard(key)

    def _handle_credit_tokens(self, user_id: int, params: dict) -> dict:
        result = self.token_service.credit(user_id, params["title"], params.get("amount"))
        return {
            "transaction_id": result.transaction.id,
            "amount": result.transaction.amount,
            "new_balance": result.new_balance,
        }


def default_rules(settings: Settings) -> list[RewardRule]:
    return [
        RewardRule(
            id="rule-referral-signup", name="친구 초대 보상",
            trigger=TriggerEvent.REFERRAL_SIGNUP,
            conditions=Condition(field="referral.completed", operator=ConditionOperator.IS_TRUE),
            actions=[Action(type=ActionType.CREDIT_TOKENS, params={
                "amount": settings.REFERRAL_REWARD, "title": "친구 초대 보상",
            })],
            priority=10,
            frequency=RewardFrequency.UNLIMITED,
        ),
        RewardRule(
            id="rule-profile-completed", name="프로필 완성 보상",
            trigger=TriggerEvent.PROFILE_COMPLETED,
            conditions=ConditionGroup(operator=LogicalOperator.AND, conditions=[
                Condition(field="profile.completion", operator=ConditionOperator.GREATER_THAN_OR_EQUAL, value=100),
            ]),
            actions=[Action(type=ActionType.CREDIT_TOKENS, params={
                "amount": settings.PROFILE_COMPLETION_REWARD, "title": "프로필 완성 보상",
            })],
            priority=5,
            frequency=RewardFrequency.ONCE,
        ),
        RewardRule(
            id="rule-daily-login", name="매일 로그인 보상",
            trigger=TriggerEvent.DAILY_LOGIN,
            conditions=ConditionGroup(operator=LogicalOperator.AND, conditions=[]),
            actions=[Action(type=ActionType.CREDIT_TOKENS, params={
                "amount": settings.DAILY_LOGIN_REWARD, "title": "매일 로그인 보상",
            })],
            priority=1,
            frequency=RewardFrequency.DAILY,
        ),
    ]
