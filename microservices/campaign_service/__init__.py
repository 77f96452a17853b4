"""
Campaign Service

Lead enrichment campaign microservice providing:
- Per-user integration credentials with a cross-account key uniqueness rule
- Credential-gated campaign creation
- Dispatch to the external workflow engine with rollback to pending
- Pollable campaign reads with progress derived from contact rows
- Status callback for the workflow engine

Port: 8251
"""

__version__ = "1.0.0"
__service__ = "campaign_service"
