"""
Operation Surface - the single entry point for auction calls.

Payloads are plain mappings (or JSON text) tagged with an "op" field:

    {"op": "create", "item": "Art", "start": 10, "end": 20}
    {"op": "bid", "auction_id": 1, "amount": 100}
    {"op": "finalize", "auction_id": 1}
    {"op": "cancel_auction", "auction_id": 1}
    {"op": "claim_refund", "auction_id": 1}

They are parsed with pydantic, dispatched to the AuctionHouse, and answered
with an OperationResult. A payload that does not parse yields INVALID_INPUT;
a signed call that does not authenticate yields UNAUTHORIZED.
"""

import json
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter, ValidationError

from sealbid.core.auction.house import AuctionHouse
from sealbid.core.errors import AuctionError
from sealbid.core.identity import Authenticator, CallContext, SignedCall
from sealbid.utils.logger import get_logger

logger = get_logger("surface")


# =============================================================================
# Call Payloads
# =============================================================================


class _Call(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class CreateCall(_Call):
    op: Literal["create"]
    item: StrictStr
    start: StrictInt = Field(ge=0)
    end: StrictInt = Field(ge=0)


class BidCall(_Call):
    op: Literal["bid"]
    auction_id: StrictInt = Field(ge=0)
    amount: StrictInt = Field(ge=0)


class FinalizeCall(_Call):
    op: Literal["finalize"]
    auction_id: StrictInt = Field(ge=0)


class CancelAuctionCall(_Call):
    op: Literal["cancel_auction"]
    auction_id: StrictInt = Field(ge=0)


class ClaimRefundCall(_Call):
    op: Literal["claim_refund"]
    auction_id: StrictInt = Field(ge=0)


Call = Annotated[
    Union[CreateCall, BidCall, FinalizeCall, CancelAuctionCall, ClaimRefundCall],
    Field(discriminator="op"),
]

_call_adapter = TypeAdapter(Call)


def parse_call(payload: Union[str, bytes, Mapping[str, Any]]) -> Call:
    """Parse a payload into a typed call; raises pydantic.ValidationError."""
    if isinstance(payload, (str, bytes)):
        return _call_adapter.validate_json(payload)
    return _call_adapter.validate_python(dict(payload))


# =============================================================================
# Results
# =============================================================================


class OperationResult(BaseModel):
    """
    Outcome of one call.

    Attributes:
        ok: Whether the operation took effect
        value: Auction id for create, otherwise None
        error: Wire name of the AuctionError (e.g. "BidTooLow") on failure
        message: Human readable detail on failure
    """
    ok: bool
    value: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[int] = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: AuctionError, message: Optional[str] = None) -> "OperationResult":
        return cls(ok=False, error=error.wire_name, message=message or error.message)

    @property
    def auction_error(self) -> Optional[AuctionError]:
        return AuctionError.from_wire_name(self.error) if self.error else None


# =============================================================================
# Surface
# =============================================================================


class OperationSurface:
    """
    Dispatches parsed calls to an AuctionHouse.

    Callers are either supplied by the host (handle) or recovered from a
    signed call (handle_signed).
    """

    def __init__(self, house: AuctionHouse, authenticator: Optional[Authenticator] = None):
        self.house = house
        self.authenticator = authenticator or Authenticator()

    def handle(
        self,
        payload: Union[str, bytes, Mapping[str, Any]],
        context: Union[CallContext, str],
    ) -> OperationResult:
        """Run one call for a caller the host has already identified."""
        caller = context.caller if isinstance(context, CallContext) else context

        try:
            call = parse_call(payload)
        except ValidationError as e:
            logger.debug(f"Malformed call from {caller}: {e.error_count()} error(s)")
            return OperationResult.failure(AuctionError.INVALID_INPUT, _summarize(e))

        return self.dispatch(call, caller)

    def handle_signed(self, signed: Union[SignedCall, Mapping[str, Any]]) -> OperationResult:
        """Authenticate a signed call, then run it for the recovered caller."""
        if not isinstance(signed, SignedCall):
            try:
                signed = SignedCall.from_dict(signed)
            except (KeyError, ValueError, TypeError) as e:
                return OperationResult.failure(AuctionError.INVALID_INPUT, f"Malformed signed call: {e}")

        context, err = self.authenticator.authenticate(signed)
        if context is None:
            return OperationResult.failure(AuctionError.UNAUTHORIZED, err)

        return self.handle(signed.payload, context)

    def dispatch(self, call: Call, caller: str) -> OperationResult:
        """Invoke the house operation matching the call type."""
        if isinstance(call, CreateCall):
            auction_id, error = self.house.create(caller, call.item, call.start, call.end)
            return OperationResult.failure(error) if error else OperationResult.success(auction_id)

        if isinstance(call, BidCall):
            ok, error = self.house.bid(caller, call.auction_id, call.amount)
        elif isinstance(call, FinalizeCall):
            ok, error = self.house.finalize(caller, call.auction_id)
        elif isinstance(call, CancelAuctionCall):
            ok, error = self.house.cancel_auction(caller, call.auction_id)
        elif isinstance(call, ClaimRefundCall):
            ok, error = self.house.claim_refund(caller, call.auction_id)
        else:
            raise TypeError(f"Unsupported call type: {type(call).__name__}")

        return OperationResult.success() if ok else OperationResult.failure(error)

    # =========================================================================
    # Queries
    # =========================================================================

    def query(self, name: str, **kwargs) -> Optional[Dict[str, Any]]:
        """
        Read-only lookups: "auction" (auction_id), "bid" (auction_id, bidder),
        "last_auction_id". Missing records return None.
        """
        if name == "auction":
            auction = self.house.get_auction(kwargs["auction_id"])
            return auction.to_dict() if auction else None
        if name == "bid":
            record = self.house.get_bid(kwargs["auction_id"], kwargs["bidder"])
            return record.to_dict() if record else None
        if name == "last_auction_id":
            return {"last_auction_id": self.house.get_last_auction_id()}
        raise ValueError(f"Unknown query: {name}")


def _summarize(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid')}" if location else first.get("msg", "invalid")


def result_to_json(result: OperationResult) -> str:
    return json.dumps(result.model_dump(), sort_keys=True)


__all__ = [
    "CreateCall",
    "BidCall",
    "FinalizeCall",
    "CancelAuctionCall",
    "ClaimRefundCall",
    "Call",
    "parse_call",
    "OperationResult",
    "OperationSurface",
    "result_to_json",
]
