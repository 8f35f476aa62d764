from transcript_engine.logging_core.logger import (
    JSONFormatter,
    configure_logging,
    get_logger,
    log_event,
)

__all__ = ["JSONFormatter", "configure_logging", "get_logger", "log_event"]
