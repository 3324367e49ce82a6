"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """A precondition of a ledger operation was violated"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotFoundError(DomainException):
    """A referenced record does not exist"""

    def __init__(self, kind: str, record_id: object):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class ConsistencyError(DomainException):
    """Internal invariant broken; indicates a bug, never a business outcome"""

    pass
