"""Structured logger shared by the service layer.

The rest of the codebase can ``from swapnet.utils.log import log`` and use
``log.info("event_name", key=value)``; records are rendered as JSON lines so
ledger transitions can be grepped by id in production logs.
"""

import structlog

# Keep the logger global so every import shares the same base instance.
log = structlog.get_logger("swapnet")

# Attach default processor chain only if structlog has not been configured by
# the application already.
if not structlog.is_configured():
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ]
    )

__all__ = ["log"]
