from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, PositiveInt
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenTransaction(CamelModel):
    id: int
    user_id: int
    title: str
    amount: int
    balance_after: int
    created_at: datetime

    model_config = ConfigDict(frozen=True, from_attributes=True)


class ServiceDescriptor(CamelModel):
    id: int
    title: str
    cost: PositiveInt
    icon: str = "file-text"
    description: str = ""

    model_config = ConfigDict(frozen=True)


class RedeemRequest(CamelModel):
    service_id: int = Field(..., description="Catalog id of the service to redeem")

    model_config = ConfigDict(json_schema_extra={"example": {"serviceId": 1}})


class CreditRequest(CamelModel):
    title: str = Field(..., min_length=1)
    amount: PositiveInt

    model_config = ConfigDict(json_schema_extra={
        "example": {"title": "친구 초대 보상", "amount": 500}
    })


class TokenBalance(CamelModel):
    user_id: int
    amount: int
    total_entries: int
    last_transaction_at: Optional[datetime] = None


class RedemptionResult(CamelModel):
    new_balance: int
    transaction: TokenTransaction


class TokenHistoryResponse(CamelModel):
    user_id: int
    entries: list[TokenTransaction]
    total_count: int
    current_balance: int
