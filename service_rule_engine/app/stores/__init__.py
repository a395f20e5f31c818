"""
Collaborator stores.

- base: Abstract contracts for rules, tickets, executors and the execution log.
- memory: Dict-backed implementations for embedding and tests.
"""
