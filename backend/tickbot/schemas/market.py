from pydantic import BaseModel, ConfigDict


class PriceSample(BaseModel):
    """One window entry built from a tick. high == low == close for tick data."""

    model_config = ConfigDict(frozen=True)

    high: float
    low: float
    close: float
    timestamp: int


def sample_from_quote(quote: float, timestamp: int) -> PriceSample:
    return PriceSample(high=quote, low=quote, close=quote, timestamp=timestamp)
