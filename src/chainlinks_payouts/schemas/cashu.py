"""Payload delivered by the encrypted-message payment rail."""

from typing import Literal

from pydantic import BaseModel, Field


class CashuPaymentMessage(BaseModel):
    """Plaintext placed inside the rumor when paying with an eCash token."""

    type: Literal["cashu_payment"] = "cashu_payment"
    amount: int = Field(..., gt=0, description="Token value in sats")
    token: str = Field(..., min_length=1, description="Serialized bearer token")
    message: str = Field(..., description="Human-readable note for the recipient")
