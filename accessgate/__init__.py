"""
accessgate - multi-tenant authorization and entitlement engine.

Every request passes through four gates in a fixed order:
Role -> Scope -> Entitlement -> Usage.
"""

__version__ = "0.1.0"
