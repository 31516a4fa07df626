"""
api/__init__.py

HTTP boundary of the dispatcher. Routers only translate between form fields
and the Dispatcher; all decisions happen in core/.
"""
