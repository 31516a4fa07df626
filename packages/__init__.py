"""
packages/__init__.py

Routing to independently deployed skill handlers ("packages").

- registry: which packages exist, where they live and which labels they handle
- client: the HTTP call to one package, with a bounded timeout
- router: picks exactly one package for a message and invokes it
"""
