"""Timer errors. All are recoverable and reported to the caller."""


class TimerError(Exception):
    """Base class for timer controller errors."""


class StartConflict(TimerError):
    """The operator already has an active timer."""

    def __init__(self, operator_id: str, entry_id: str | None = None):
        self.operator_id = operator_id
        self.entry_id = entry_id
        detail = f" (entry {entry_id})" if entry_id else ""
        super().__init__(f"Operator {operator_id} already has an active timer{detail}")


class InvalidTransition(TimerError):
    """The requested operation is not valid in the current timer state."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} a timer that is {state}")


class PersistenceError(TimerError):
    """The time-entry repository failed; local timer state was left unchanged."""
