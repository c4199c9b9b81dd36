"""
Business services built on the data layer.
"""

from .transfer import (
    ConnectionParamTransferService,
    DeclarativeTransferService,
    TransferService,
)

__all__ = [
    "ConnectionParamTransferService",
    "DeclarativeTransferService",
    "TransferService",
]
