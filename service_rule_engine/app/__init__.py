"""
Ticket rule engine package.

This package decides, for each ticket lifecycle event, which configured
business rules apply and carries out their actions. It provides:

- app.main: Factories wiring the engine to its collaborators.
- app.rules: Rule model, condition evaluation, actions and the engine.
- app.stores: Collaborator contracts and in-memory implementations.
- app.notifications: Extension point for notify actions.

Guidelines:
- The engine is stateless between passes; rely on the stores for state.
- Rules for one ticket run strictly in sequence.
- Keep every rule outcome observable (execution log + metrics + logs).
"""
