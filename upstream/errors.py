from typing import Optional


class UpstreamError(Exception):
    pass


class UpstreamUnavailableError(UpstreamError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UpstreamContractViolation(UpstreamError):
    def __init__(self, endpoint: str, detail: str):
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f"Unexpected response from {endpoint}: {detail}")
