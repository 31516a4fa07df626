"""
shared/__init__.py

Shared models and helpers used across the dispatcher.

This package contains common functionality used by several components:
- models: the message data model and tagged stage results
- errors: the exception hierarchy mapped to HTTP responses
- utils: small parsing and logging helpers
"""
