from .store import LedgerStore

# Oldest first, so ids and timestamps follow the original history order.
DEMO_TRANSACTIONS = [
    ("프로필 완성 보상", 300),
    ("매일 로그인 보상", 100),
    ("이력서 첨삭 사용", -200),
    ("친구 초대 보상", 500),
]


def seed_demo_ledger(store: LedgerStore, user_id: int) -> None:
    if store.get_history(user_id):
        return
    for title, amount in DEMO_TRANSACTIONS:
        store.record_transaction(user_id, title, amount)
