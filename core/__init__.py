"""
core/__init__.py

Core dispatch modules.

This package contains the central coordination logic for the dispatcher:
- classifier: intent classification and online training
- input_builder: request parameter validation and Input construction
- orchestrator: the linear request handler from utterance to reply

These modules handle the high-level flow of user requests through the system.
"""
