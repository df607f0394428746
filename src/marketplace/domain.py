"""Marketplace bounded context — multi-vendor Order Pipeline.

Handles orders spanning several independent suppliers: checkout, payment
reconciliation against an external gateway, role-gated fulfilment and the
commission settlement frozen once payment is approved.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
