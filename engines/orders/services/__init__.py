"""
Nexus Orders Engine - Application Services
===========================================
"""

from engines.orders.services.base import OrderServiceBase
from engines.orders.services.lifecycle import OrderLifecycleService
from engines.orders.services.workflow import OrderDraft, OrderWorkflowService

__all__ = [
    "OrderServiceBase",
    "OrderLifecycleService",
    "OrderWorkflowService",
    "OrderDraft",
]
