"""
Observability module: structured logging and correlation IDs.

Usage:
    logger = logging.getLogger(__name__)
    logger.info("Timer started", extra={"operator_id": "op-1"})

    with OperationContext(correlation_id="cli-conflicts"):
        logger.info("Checking conflicts")
"""

from .context import OperationContext, generate_correlation_id, get_correlation_id
from .logging import HumanFormatter, JSONFormatter, configure_logging

__all__ = [
    "OperationContext",
    "generate_correlation_id",
    "get_correlation_id",
    "HumanFormatter",
    "JSONFormatter",
    "configure_logging",
]
