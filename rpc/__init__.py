"""
rpc/__init__.py

Inbound side of the package protocol: the listener packages connect to when
they need something from the dispatcher, such as resolving a user.
"""
