"""
Settlement Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, AsyncContextManager, List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from .models import ConfidentialHandle, HandleKind


# ============================================================================
# Custom Exceptions - defined here to avoid importing the ledger backends
# ============================================================================

class SettlementServiceError(Exception):
    """Base exception for settlement service errors"""
    error_code = "SETTLEMENT_ERROR"


class InvalidParameterError(SettlementServiceError):
    """Malformed or out-of-range input"""
    error_code = "INVALID_PARAMETER"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidProofError(InvalidParameterError):
    """Oracle correctness proof rejected"""
    error_code = "INVALID_PROOF"


class UnauthorizedError(SettlementServiceError):
    """Actor lacks the role required for the operation"""
    error_code = "UNAUTHORIZED"


class NotFoundError(SettlementServiceError):
    """Campaign or order does not exist"""
    error_code = "NOT_FOUND"


class InvalidStateError(SettlementServiceError):
    """Operation not legal for the entity's current status"""
    error_code = "INVALID_STATE"

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class WrongStateError(InvalidStateError):
    """Order is not in the status the disclosure protocol requires"""
    error_code = "WRONG_STATE"


class AlreadyRequestedError(InvalidStateError):
    """A disclosure request already exists for the order"""
    error_code = "ALREADY_REQUESTED"


class CampaignNotEligibleError(SettlementServiceError):
    """Campaign is inactive or past its deadline"""
    error_code = "CAMPAIGN_NOT_ELIGIBLE"


class DuplicateOrderError(SettlementServiceError):
    """Participant already holds a live order on the campaign"""
    error_code = "DUPLICATE_ORDER"


class CapacityExceededError(SettlementServiceError):
    """Campaign is at its order-count ceiling"""
    error_code = "CAPACITY_EXCEEDED"


class PaymentMismatchError(SettlementServiceError):
    """Paid amount differs from unit price times quantity"""
    error_code = "PAYMENT_MISMATCH"


class ExpiredError(SettlementServiceError):
    """Deadline passed"""
    error_code = "EXPIRED"


class UnknownRequestError(SettlementServiceError):
    """Unrecognized disclosure request id"""
    error_code = "UNKNOWN_REQUEST"


class NothingToClaimError(SettlementServiceError):
    """Pending refund balance is zero"""
    error_code = "NOTHING_TO_CLAIM"


class InsufficientFundsError(SettlementServiceError):
    """Settlement could not be funded - signals a bookkeeping bug"""
    error_code = "INSUFFICIENT_FUNDS"


class RefundTransferFailedError(SettlementServiceError):
    """Claimed refund could not be transferred; balance was restored"""
    error_code = "REFUND_TRANSFER_FAILED"


# ============================================================================
# Ledger Store Protocols
# ============================================================================

@runtime_checkable
class LedgerTransactionProtocol(Protocol):
    """
    One serialized unit of work against the ledger.

    Writes are only visible to other transactions after the owning
    context manager exits without an exception.
    """

    async def get(self, key: str) -> Optional[Any]:
        """Read a JSON-compatible value"""
        ...

    async def put(self, key: str, value: Any) -> None:
        """Stage a write"""
        ...

    async def delete(self, key: str) -> None:
        """Stage a delete"""
        ...

    async def lock(self, key: str) -> None:
        """Take an extra exclusive lock, held until the transaction ends; no-op if held"""
        ...


@runtime_checkable
class LedgerStoreProtocol(Protocol):
    """Interface for the transactional key-value ledger"""

    async def initialize(self) -> None:
        """Prepare the backend"""
        ...

    async def close(self) -> None:
        """Release backend resources"""
        ...

    def transaction(self, *lock_keys: str) -> AsyncContextManager[LedgerTransactionProtocol]:
        """Open a transaction holding exclusive locks on lock_keys"""
        ...

    async def peek(self, key: str) -> Optional[Any]:
        """Unlocked read of committed state"""
        ...

    async def health_check(self) -> bool:
        """Check backend health"""
        ...


# ============================================================================
# Event Bus Protocol
# ============================================================================

@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event"""
        ...


# ============================================================================
# External Boundary Protocols
# ============================================================================

@runtime_checkable
class ConfidentialComputeProtocol(Protocol):
    """
    Interface for the confidential-computation oracle.

    Handles are opaque; the settlement core never sees the plaintext behind
    them except through a verified disclosure callback.
    """

    async def wrap(self, value: int, kind: HandleKind) -> ConfidentialHandle:
        """Encrypt a plaintext value into a handle"""
        ...

    async def zero(self, kind: HandleKind) -> ConfidentialHandle:
        """Handle for an encrypted zero"""
        ...

    async def combine(self, left: ConfidentialHandle, right: ConfidentialHandle) -> ConfidentialHandle:
        """Homomorphic addition of two handles"""
        ...

    async def authorize(self, handle: ConfidentialHandle, identity: str) -> None:
        """Grant identity access to the value behind handle"""
        ...

    async def request_disclosure(self, handles: List[ConfidentialHandle], callback: str) -> str:
        """Ask the oracle to reveal handles; returns the request id"""
        ...

    async def verify_proof(self, request_id: str, values: List[int], proof: str) -> bool:
        """Check the oracle's correctness proof for revealed values"""
        ...


@runtime_checkable
class TransferClientProtocol(Protocol):
    """Interface for outbound money transfers"""

    async def transfer(self, recipient: str, amount: int, reference: str) -> bool:
        """Send amount to recipient; False or an exception means not sent"""
        ...


__all__ = [
    # Exceptions
    "SettlementServiceError",
    "InvalidParameterError",
    "InvalidProofError",
    "UnauthorizedError",
    "NotFoundError",
    "InvalidStateError",
    "WrongStateError",
    "AlreadyRequestedError",
    "CampaignNotEligibleError",
    "DuplicateOrderError",
    "CapacityExceededError",
    "PaymentMismatchError",
    "ExpiredError",
    "UnknownRequestError",
    "NothingToClaimError",
    "InsufficientFundsError",
    "RefundTransferFailedError",
    # Protocols
    "LedgerTransactionProtocol",
    "LedgerStoreProtocol",
    "EventBusProtocol",
    "ConfidentialComputeProtocol",
    "TransferClientProtocol",
]
