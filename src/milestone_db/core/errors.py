from __future__ import annotations

from pymongo.errors import PyMongoError


# Backing-store failures reach callers unchanged; this alias only names the family.
StorageOperationFailed = PyMongoError


class MilestoneDBError(Exception):
    code: int = 5100
    message: str = "Milestone store error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ClosedStore(MilestoneDBError):
    """Raised when an operation needs a connection that is closed."""

    code = 5105
    message = "Already closed"


class ConfigurationError(MilestoneDBError):
    code = 5106
    message = "Invalid or missing connection descriptor"
