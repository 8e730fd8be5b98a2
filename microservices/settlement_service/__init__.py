"""
Settlement Service

Confidential group-purchase settlement microservice providing:
- Campaign lifecycle (create, deactivate, begin processing)
- Confidential orders with one live order per participant and campaign
- Asynchronous disclosure protocol with the confidential-computation oracle
- Timeout recovery and a refund ledger with claimable pending balances

Port: 8250
"""

__version__ = "1.0.0"
__service__ = "settlement_service"
