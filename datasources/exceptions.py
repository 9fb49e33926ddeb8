# datasources/exceptions.py

class StoreError(Exception):
    kind = "store"
    # safe to show to API callers; the full message is only logged
    public_message = "Event store request failed"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class StoreUnavailable(StoreError):
    kind = "unavailable"
    public_message = "Event store unavailable"


class StoreTimeout(StoreError):
    kind = "timeout"
    public_message = "Event store request timed out"


class StoreAuthError(StoreError):
    kind = "auth"
    public_message = "Event store rejected the service credentials"


class InvalidStoreQuery(StoreError):
    kind = "invalid_query"
    public_message = "Event store rejected the query"


class BackendStartupTimeout(StoreError):
    kind = "startup_timeout"
    public_message = "Event store did not become ready"
