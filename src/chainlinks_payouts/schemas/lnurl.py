"""LNURL-pay (LUD-06 / LUD-16) response schemas."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

LNURL_ERROR_STATUS = "ERROR"


class LnurlPayParams(BaseModel):
    """Body served from ``/.well-known/lnurlp/{name}``."""

    callback: str = Field(..., min_length=1)
    min_sendable: int = Field(..., alias="minSendable", ge=0)
    max_sendable: int = Field(..., alias="maxSendable", ge=0)
    metadata: str
    comment_allowed: int | None = Field(default=None, alias="commentAllowed", ge=0)
    tag: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="after")
    def _bounds_ordered(self) -> "LnurlPayParams":
        if self.min_sendable > self.max_sendable:
            raise ValueError("minSendable exceeds maxSendable")
        return self


class LnurlInvoiceResponse(BaseModel):
    """Body returned from the LNURL-pay callback."""

    pr: str | None = None
    status: str | None = None
    reason: str | None = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_error(self) -> bool:
        return (self.status or "").upper() == LNURL_ERROR_STATUS
