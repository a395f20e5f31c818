"""
Rule engine wiring.
"""

from typing import Dict, Any, Iterable, Optional, Union

from prometheus_client import CollectorRegistry

from shared.config import BaseConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import get_metrics_collector

from .notifications import Notifier
from .rules.engine import RuleEngine
from .rules.models import ExecutorProfile, Rule
from .stores.base import ExecutionLogStore, ExecutorDirectory, RuleStore, TicketStore
from .stores.memory import (
    InMemoryExecutionLogStore, InMemoryExecutorDirectory, InMemoryRuleStore, InMemoryTicketStore
)


def create_rule_engine(rule_store: RuleStore,
                       ticket_store: TicketStore,
                       executor_directory: ExecutorDirectory,
                       log_store: ExecutionLogStore,
                       notifier: Optional[Notifier] = None,
                       config: Optional[BaseConfig] = None,
                       registry: Optional[CollectorRegistry] = None,
                       setup_logging: bool = True) -> RuleEngine:
    """Build a rule engine with configuration, logging and metrics set up.

    Metrics are exported only when ``registry`` is given, and only if
    ``enable_metrics`` is on.
    """
    config = config or get_config()

    if setup_logging:
        configure_logging(config.service_name, config.log_level)

    metrics = get_metrics_collector(
        config.service_name,
        registry if config.enable_metrics else None
    )

    engine = RuleEngine(
        rule_store,
        ticket_store,
        executor_directory,
        log_store,
        notifier=notifier,
        config=config,
        metrics=metrics
    )

    get_logger(f"{config.service_name}.main").info(
        "Rule engine created",
        env=config.env,
        metrics_exported=registry is not None and config.enable_metrics
    )
    return engine


def create_in_memory_engine(rules: Optional[Iterable[Union[Rule, Dict[str, Any]]]] = None,
                            tickets: Optional[Iterable[Dict[str, Any]]] = None,
                            executors: Optional[Iterable[ExecutorProfile]] = None,
                            notifier: Optional[Notifier] = None,
                            config: Optional[BaseConfig] = None,
                            registry: Optional[CollectorRegistry] = None,
                            setup_logging: bool = False) -> RuleEngine:
    """Build a rule engine over in-memory stores.

    Rules may be given as ``Rule`` objects or as plain definitions accepted
    by ``Rule.from_dict``. Executor load is counted live from the ticket
    store.
    """
    ticket_store = InMemoryTicketStore(tickets)
    rule_store = InMemoryRuleStore(
        rule if isinstance(rule, Rule) else Rule.from_dict(rule)
        for rule in rules or []
    )

    return create_rule_engine(
        rule_store,
        ticket_store,
        InMemoryExecutorDirectory(executors, ticket_store=ticket_store),
        InMemoryExecutionLogStore(),
        notifier=notifier,
        config=config,
        registry=registry,
        setup_logging=setup_logging
    )
