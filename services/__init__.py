"""
services/__init__.py

Stateful services backed by the SQLite store:
- database: schema and connection helper
- user_resolver: sender -> known user
- context_tracker: links a message to the sender's previous turn
- interaction_logger: one audit record per completed request
"""
