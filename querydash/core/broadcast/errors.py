from fastapi import status


class AppError(Exception):
    """Base error carrying the HTTP status it should be reported with."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# =========================
# Authentication
# =========================
class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class MissingCredentials(AuthError):
    def __init__(self, message: str = "No token provided"):
        super().__init__(message)


class InvalidCredentials(AuthError):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


# =========================
# Query resolution
# =========================
class QueryError(AppError):
    pass


class InvalidQueryInput(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST


class QueryExecutionFailed(QueryError):
    def __init__(self, message: str = "Query execution failed"):
        super().__init__(message)


class QueryPersistenceFailed(QueryError):
    def __init__(self, message: str = "Failed to record query"):
        super().__init__(message)


# Raised by cache backends only; the cache absorbs it before it reaches callers
class CacheError(Exception):
    pass
