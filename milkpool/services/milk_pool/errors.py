class PoolError(Exception):
    """Base class for ledger rejections. ``kind`` is surfaced to callers."""

    kind = 'error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PoolValidationError(PoolError):
    kind = 'validation'


class PoolNotFoundError(PoolError):
    kind = 'not_found'


class PoolConflictError(PoolError):
    kind = 'conflict'
