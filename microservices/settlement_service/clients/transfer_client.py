"""
Transfer Client for Settlement Service

HTTP client sending refund payouts through wallet_service
"""

import httpx
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class TransferClient:
    """Client for wallet_service refund transfers"""

    def __init__(
        self,
        base_url: str = "http://localhost:8208",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Transfer client

        Args:
            base_url: Wallet service base URL
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.client = client or httpx.AsyncClient(timeout=timeout)
        logger.info(f"TransferClient initialized with base_url: {self.base_url}")

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def transfer(self, recipient: str, amount: int, reference: str) -> bool:
        """
        Send a refund to recipient's wallet

        Args:
            recipient: Participant identity
            amount: Amount in the smallest monetary unit
            reference: Idempotency reference (order or claim)

        Returns:
            True only if wallet_service confirmed the transfer
        """
        try:
            payload = {
                "user_id": recipient,
                "amount": amount,
                "reason": "settlement_refund",
                "transaction_id": reference,
            }

            response = await self.client.post(
                f"{self.base_url}/api/v1/wallet/credits/add",
                json=payload,
            )
            response.raise_for_status()
            return True

        except httpx.HTTPStatusError as e:
            logger.error(f"Refund transfer rejected: {e.response.status_code}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Error sending refund transfer: {e}")
            return False
