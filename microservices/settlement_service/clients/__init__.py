"""
Settlement Service Clients

Adapters for the confidential-computation oracle and wallet transfers.
"""

from .oracle_client import OracleClient
from .transfer_client import TransferClient

__all__ = [
    "OracleClient",
    "TransferClient",
]
