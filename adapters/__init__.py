"""
Nexus Adapters
==============
Concrete backends for the engine-facing store protocols.
"""
