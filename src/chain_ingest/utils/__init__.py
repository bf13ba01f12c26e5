"""
Utility functions for chain-ingest.

Logging:
- setup_logging(): Configure structured logging with structlog
- get_logger(name): Get a logger instance
- log_context(**kv): Bind context for a block of code
"""

from chain_ingest.utils.logging import (
    bind_context,
    clear_context,
    get_logger,
    log_context,
    setup_logging,
)

__all__ = [
    "bind_context",
    "clear_context",
    "get_logger",
    "log_context",
    "setup_logging",
]
