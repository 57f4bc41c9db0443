"""Deriv streaming API payloads: request builders and the inbound shapes the engine consumes."""

from typing import Any

from pydantic import BaseModel, ConfigDict

INVALID_CREDENTIAL_CODES = frozenset({"InvalidToken", "AuthorizationRequired"})


class ApiError(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str = ""
    code: str | None = None


class TickPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str = ""
    quote: float
    epoch: int


class BalancePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    balance: float
    currency: str = "USD"


class ProposalPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    ask_price: float | None = None
    payout: float | None = None


class BuyPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    contract_id: int
    buy_price: float | None = None
    balance_after: float | None = None


class OpenContractPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    contract_id: int
    is_sold: bool = False
    profit: float = 0.0
    status: str | None = None


class Envelope(BaseModel):
    """Generic inbound message. Body fields stay raw until the handler for msg_type validates them."""

    model_config = ConfigDict(extra="allow")

    msg_type: str = ""
    error: ApiError | None = None
    req_id: int | None = None

    def body(self) -> Any:
        return (self.model_extra or {}).get(self.msg_type)

    @property
    def is_invalid_credential(self) -> bool:
        return self.error is not None and self.error.code in INVALID_CREDENTIAL_CODES


def authorize_request(token: str) -> dict:
    return {"authorize": token}


def balance_subscription() -> dict:
    return {"balance": 1, "subscribe": 1}


def ticks_subscription(symbol: str) -> dict:
    return {"ticks": symbol, "subscribe": 1}


def proposal_request(
    amount: float,
    contract_type: str,
    duration: int,
    symbol: str,
    duration_unit: str = "m",
    currency: str = "USD",
) -> dict:
    return {
        "proposal": 1,
        "amount": amount,
        "basis": "stake",
        "contract_type": contract_type,
        "currency": currency,
        "duration": duration,
        "duration_unit": duration_unit,
        "symbol": symbol,
    }


def buy_request(proposal_id: str, price: float) -> dict:
    return {"buy": proposal_id, "price": price}


def open_contract_subscription(contract_id: int) -> dict:
    return {"proposal_open_contract": 1, "subscribe": 1, "contract_id": contract_id}


def forget_all(stream: str) -> dict:
    return {"forget_all": stream}
