class DomainError(Exception):
    pass


class NotFoundError(DomainError):
    pass


class ValidationError(DomainError):
    def __init__(self, errors: list[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__(", ".join(self.errors))


class InvalidStateError(DomainError):
    pass


class InsufficientStockError(DomainError):
    def __init__(self, label: str, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock for {label}. Available: {available}, Requested: {requested}")


class ConflictError(DomainError):
    pass
