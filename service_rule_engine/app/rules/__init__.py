"""
Rules engine package.

Defines the rule model and the processing pipeline used by the rule
engine. Conditions are grouped and folded into a match decision, and
matched rules run their actions in step order.

Modules of interest:
- models: Data classes, enums and typed action parameters.
- fields / operators: Field path resolution and operator semantics.
- conditions: Condition grouping and evaluation.
- actions / assignment: Action dispatch and executor selection.
- execution_log: Audit trail writes and queries.
- engine: The per-ticket rule pass.
"""
