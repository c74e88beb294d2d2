"""
Correlation ids for one CLI command or one operator's timer session.

The CLI opens a context per command. TimerController re-enters its session
id around reminder callbacks, which fire on scheduler threads or event loop
callbacks where the caller's context is gone.
"""

import contextvars
import uuid

_correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def get_correlation_id() -> str | None:
    return _correlation_id_var.get()


def generate_correlation_id(prefix: str = "op") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


class OperationContext:
    """
    Binds a correlation id for the duration of a with-block.

        with OperationContext(correlation_id=controller.session_id):
            logger.info("Reminder fired")
    """

    def __init__(self, correlation_id: str | None = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token: contextvars.Token | None = None

    def __enter__(self) -> "OperationContext":
        self._token = _correlation_id_var.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _correlation_id_var.reset(self._token)
            self._token = None
