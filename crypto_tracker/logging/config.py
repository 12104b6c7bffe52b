"""
Centralized logging configuration for the crypto tracker.

structlog is configured once, from the ``logging`` section of tracker.yaml
or from explicit arguments, and renders through the stdlib root logger.
Sub-systems that produce audit events (cache tier decisions, alert firings)
get loggers with a bound ``subsystem`` field so their records can be
filtered downstream.
"""
import logging
import sys
from typing import Any, Optional, TextIO

import structlog
from structlog.types import FilteringBoundLogger, Processor

from ..config.defaults import LoggingParams
from ..config.validation import LOG_LEVELS


def _processor_chain(include_timestamp: bool, include_caller: bool) -> list[Processor]:
    chain: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if include_caller:
        chain.append(structlog.processors.CallsiteParameterAdder([
            structlog.processors.CallsiteParameter.MODULE,
            structlog.processors.CallsiteParameter.LINENO,
        ]))
    return chain


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure structlog for every crypto tracker component.

    Args:
        level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL
        format_json: Render JSON lines instead of console output
        include_timestamp: Add an ISO-8601 UTC timestamp to each event
        include_caller: Add the emitting module and line number
        stream: Output stream, stdout when omitted

    Raises:
        ValueError: Unknown level name
    """
    level_name = level.upper()
    if level_name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")

    stream = stream or sys.stdout
    logging.basicConfig(level=getattr(logging, level_name), stream=stream, format="%(message)s")

    if format_json:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[*_processor_chain(include_timestamp, include_caller), renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_params(params: LoggingParams, stream: Optional[TextIO] = None) -> None:
    """Apply the ``logging`` section of a loaded TrackerConfig."""
    configure_logging(
        level=params.level,
        format_json=params.format_json,
        include_caller=params.include_caller,
        stream=stream,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    return structlog.get_logger(name)


def get_sync_logger(name: str) -> FilteringBoundLogger:
    """Logger for freshness decisions made by the sync orchestrator."""
    return get_logger(name).bind(subsystem="sync", audit_trail=True)


def get_alert_logger(name: str) -> FilteringBoundLogger:
    """Logger for alert rule evaluation and notification fan-out."""
    return get_logger(name).bind(subsystem="alerts", audit_trail=True)


def log_freshness_decision(
    logger: FilteringBoundLogger,
    stream: str,
    cache_key: str,
    tier: str,
    action: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Record which tier a cache read landed in and what the orchestrator did.

    Args:
        logger: Structlog logger instance
        stream: Data stream name ("prices", "ohlc", "sentiment")
        cache_key: Storage key that was consulted
        tier: Freshness tier of the entry ("fresh", "stale", "expired")
        action: "serve", "revalidate" or "fetch"
        context: Extra fields such as the entry's written_at
    """
    decision = logger.bind(stream=stream, cache_key=cache_key, tier=tier, action=action)
    if context:
        decision = decision.bind(context=context)
    decision.debug("freshness_decision")


def log_alert_fired(
    logger: FilteringBoundLogger,
    rule_id: str,
    symbol: str,
    condition: str,
    target_price: float,
    current_price: float
) -> None:
    """Record a rule crossing its threshold."""
    logger.bind(
        rule_id=rule_id,
        symbol=symbol,
        condition=condition,
        target_price=target_price,
        current_price=current_price,
    ).info("alert_fired")
