class LedgerServiceError(Exception):
    pass


class ServiceNotFoundError(LedgerServiceError):
    def __init__(self, service_id: int):
        self.service_id = service_id
        super().__init__(f"Service {service_id} not found")


class InsufficientBalanceError(LedgerServiceError):
    def __init__(self, user_id: int, balance: int, cost: int):
        self.user_id = user_id
        self.balance = balance
        self.cost = cost
        super().__init__(f"User {user_id} has {balance} tokens, {cost} required")


class InvalidAmountError(LedgerServiceError):
    pass


class StorageUnavailableError(LedgerServiceError):
    pass
