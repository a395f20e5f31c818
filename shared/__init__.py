"""
Shared utilities for the ticket rule engine.

This package aggregates the cross-cutting building blocks used by the
engine and its collaborators:

- config: Engine configuration via pydantic-settings
- logging: Structured logging with ticket/tenant/trigger correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- test_helpers: Factories for tickets, executors and rules

Do not import from service packages into shared/, except from
test_helpers, which builds engine models for tests.
"""
