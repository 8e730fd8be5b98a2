"""
Oracle Client

HTTP adapter for the confidential-computation oracle. Handles are created,
combined and disclosed remotely; this client only moves opaque ids.

Unlike the transfer client, failures raise: every oracle call happens
inside a ledger transaction, and raising discards that transaction.
"""

import logging
from typing import List, Optional

import httpx

from ..models import ConfidentialHandle, HandleKind

logger = logging.getLogger(__name__)


class OracleClient:
    """Client for the confidential-computation oracle"""

    def __init__(
        self,
        base_url: str = "http://localhost:8260",
        timeout: float = 30.0,
        callback_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.callback_url = callback_url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        logger.info(f"OracleClient initialized with base_url: {self.base_url}")

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _post(self, path: str, payload: dict) -> dict:
        try:
            response = await self.client.post(f"{self.base_url}{path}", json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Oracle call {path} failed: {e.response.status_code} {e.response.text}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"Oracle call {path} failed: {e}")
            raise

    async def wrap(self, value: int, kind: HandleKind) -> ConfidentialHandle:
        data = await self._post("/api/v1/oracle/handles", {"value": value, "kind": kind.value})
        return ConfidentialHandle(handle_id=data["handle_id"], kind=kind)

    async def zero(self, kind: HandleKind) -> ConfidentialHandle:
        data = await self._post("/api/v1/oracle/handles/zero", {"kind": kind.value})
        return ConfidentialHandle(handle_id=data["handle_id"], kind=kind)

    async def combine(self, left: ConfidentialHandle, right: ConfidentialHandle) -> ConfidentialHandle:
        data = await self._post(
            "/api/v1/oracle/handles/combine",
            {"left": left.handle_id, "right": right.handle_id, "kind": left.kind.value},
        )
        return ConfidentialHandle(handle_id=data["handle_id"], kind=left.kind)

    async def authorize(self, handle: ConfidentialHandle, identity: str) -> None:
        await self._post(
            f"/api/v1/oracle/handles/{handle.handle_id}/authorize",
            {"identity": identity},
        )

    async def request_disclosure(self, handles: List[ConfidentialHandle], callback: str) -> str:
        """
        Submit handles for disclosure.

        Args:
            handles: Handles to reveal, in order
            callback: Callback selector the oracle answers to

        Returns:
            Oracle request id
        """
        data = await self._post(
            "/api/v1/oracle/disclosures",
            {
                "handles": [h.handle_id for h in handles],
                "callback": callback,
                "callback_url": self.callback_url,
            },
        )
        return data["request_id"]

    async def verify_proof(self, request_id: str, values: List[int], proof: str) -> bool:
        data = await self._post(
            f"/api/v1/oracle/disclosures/{request_id}/verify",
            {"values": values, "proof": proof},
        )
        return bool(data.get("valid", False))
