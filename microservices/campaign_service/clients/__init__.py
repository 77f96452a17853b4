"""
Campaign Service Clients

Outbound clients used by the campaign service.
"""

from .workflow_client import WorkflowClient

__all__ = ["WorkflowClient"]
