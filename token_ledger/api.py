import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rewards import RewardEngine, ReferralRegistry, default_rules
from rewards.api import router as rewards_router
from upstream.api import router as upstream_router
from upstream.client import AIBackendClient

from .catalog import ServiceCatalog
from .config import Settings, get_settings
from .dependencies import get_current_user_id, get_token_service
from .models import (
    CreditRequest, RedeemRequest, RedemptionResult, ServiceDescriptor,
    TokenBalance, TokenHistoryResponse, TokenTransaction,
)
from .seed import seed_demo_ledger
from .service import (
    TokenService, ServiceNotFoundError, InsufficientBalanceError,
    InvalidAmountError, StorageUnavailableError,
)
from .sql_store import SqlLedgerStore
from .store import InMemoryLedgerStore, LedgerStore

logger = logging.getLogger(__name__)

SERVICE_NOT_FOUND_MESSAGE = "서비스를 찾을 수 없습니다."
INSUFFICIENT_BALANCE_MESSAGE = "토큰이 부족합니다. 충전이 필요합니다."

router = APIRouter(tags=["Tokens"])


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "token-ledger"}


@router.get("/tokens/balance", response_model=TokenBalance)
def get_balance(
    user_id: int = Depends(get_current_user_id),
    token_service: TokenService = Depends(get_token_service),
) -> TokenBalance:
    return token_service.get_balance(user_id)


@router.get("/tokens/history", response_model=list[TokenTransaction])
def get_history(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    token_service: TokenService = Depends(get_token_service),
) -> list[TokenTransaction]:
    return token_service.get_history(user_id, limit, offset).entries


@router.get("/tokens/ledger", response_model=TokenHistoryResponse)
def get_ledger(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    token_service: TokenService = Depends(get_token_service),
) -> TokenHistoryResponse:
    return token_service.get_history(user_id, limit, offset)


@router.get("/tokens/services", response_model=list[ServiceDescriptor])
def list_services(token_service: TokenService = Depends(get_token_service)) -> list[ServiceDescriptor]:
    return token_service.list_services()


@router.post("/tokens/use", response_model=RedemptionResult)
def use_tokens(
    request: RedeemRequest,
    user_id: int = Depends(get_current_user_id),
    token_service: TokenService = Depends(get_token_service),
) -> RedemptionResult:
    try:
        return token_service.redeem(user_id, request.service_id)
    except ServiceNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SERVICE_NOT_FOUND_MESSAGE)
    except InsufficientBalanceError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INSUFFICIENT_BALANCE_MESSAGE)


@router.post("/tokens/credit", response_model=RedemptionResult, status_code=status.HTTP_201_CREATED)
def credit_tokens(
    request: CreditRequest,
    user_id: int = Depends(get_current_user_id),
    token_service: TokenService = Depends(get_token_service),
) -> RedemptionResult:
    try:
        return token_service.credit(user_id, request.title, request.amount)
    except InvalidAmountError as e:
        raise HTTPException(status_code=422, detail=str(e))


def build_store(settings: Settings) -> LedgerStore:
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryLedgerStore()
    if settings.STORAGE_BACKEND == "sql":
        return SqlLedgerStore(settings.DATABASE_URL)
    raise ValueError(f"Unknown STORAGE_BACKEND {settings.STORAGE_BACKEND!r}")


def build_catalog(settings: Settings) -> ServiceCatalog:
    if settings.CATALOG_PATH:
        return ServiceCatalog.from_file(settings.CATALOG_PATH)
    return ServiceCatalog.default()


def create_app(
    settings: Optional[Settings] = None,
    ai_client: Optional[AIBackendClient] = None,
    root_path: str = "",
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = build_store(settings)
    token_service = TokenService(store, build_catalog(settings))
    if settings.SEED_DEMO_DATA:
        seed_demo_ledger(store, settings.DEFAULT_USER_ID)
        logger.info("Seeded demo ledger for user %s", settings.DEFAULT_USER_ID)

    reward_engine = RewardEngine(token_service)
    for rule in default_rules(settings):
        reward_engine.add_rule(rule)

    ai_client = ai_client or AIBackendClient(settings.AI_BACKEND_URL, settings.AI_BACKEND_TIMEOUT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        ai_client.close()

    app = FastAPI(
        title="Career Token Ledger API",
        description="Token balances, service redemption and rewards for the career platform",
        version="1.0.0",
        root_path=root_path,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_service = token_service
    app.state.reward_engine = reward_engine
    app.state.referrals = ReferralRegistry(reward_engine)
    app.state.ai_client = ai_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
        logger.error("Ledger storage unavailable during %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Token ledger is temporarily unavailable"},
        )

    app.include_router(router)
    app.include_router(rewards_router)
    app.include_router(upstream_router)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
