"""LNURL-pay invoice resolution for Lightning addresses.

Turns ``name@domain`` into a bolt11 invoice in two requests:

- ``GET https://{domain}/.well-known/lnurlp/{name}`` for the pay parameters
- ``GET {callback}?amount={msat}&comment=...`` for the invoice

Every failure is logged and reported as ``None`` so the router can move on
to the next payment rail.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError as SchemaValidationError

from chainlinks_payouts.core.errors import NetworkError, ValidationError
from chainlinks_payouts.core.settings import settings
from chainlinks_payouts.models.payment import MSATS_PER_SAT, ResolvedLnurlEndpoint
from chainlinks_payouts.schemas.lnurl import LnurlInvoiceResponse, LnurlPayParams
from chainlinks_payouts.services.address import split_lightning_address

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/lnurlp/{name}"
PAY_REQUEST_TAG = "payRequest"


class LnurlInvoiceResolver:
    """HTTP client resolving Lightning addresses to invoices."""

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        scheme: str = "https",
    ) -> None:
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.lnurl_http_timeout_seconds
        )
        self.scheme = scheme
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def __aenter__(self) -> LnurlInvoiceResolver:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout_seconds),
                    transport=self._transport,
                    follow_redirects=True,
                    headers={"Accept": "application/json"},
                )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        client = await self._ensure_client()
        try:
            response = await client.get(url, params=params)
        except httpx.InvalidURL as exc:
            raise ValidationError(f"Invalid URL {url!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc
        if not response.is_success:
            raise NetworkError(f"{url} responded with {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise ValidationError(f"{url} returned a non-JSON body") from exc

    def discovery_url(self, address: str) -> str:
        parts = split_lightning_address(address)
        if parts is None:
            raise ValidationError(f"Invalid Lightning address: {address!r}")
        name, domain = parts
        path = WELL_KNOWN_PATH.format(name=quote(name, safe=""))
        return f"{self.scheme}://{domain}{path}"

    async def resolve_address(self, address: str) -> ResolvedLnurlEndpoint | None:
        """Fetch LNURL-pay parameters for ``address``.

        Returns:
            The endpoint with sat bounds, or None if the address is malformed,
            the server is unreachable or the body is not a valid pay response
        """
        try:
            url = self.discovery_url(address)
            body = await self._get_json(url)
            if isinstance(body, dict) and LnurlInvoiceResponse.model_validate(body).is_error:
                raise ValidationError(f"LNURL error for {address}: {body.get('reason')}")
            params = LnurlPayParams.model_validate(body)
            if params.tag is not None and params.tag != PAY_REQUEST_TAG:
                raise ValidationError(f"{address} is not a pay endpoint (tag {params.tag!r})")
        except (NetworkError, ValidationError) as exc:
            logger.warning("Failed to resolve Lightning address %s: %s", address, exc)
            return None
        except SchemaValidationError as exc:
            logger.warning("Malformed LNURL-pay response for %s: %s", address, exc)
            return None

        return ResolvedLnurlEndpoint.from_millisats(
            callback=params.callback,
            min_sendable_msat=params.min_sendable,
            max_sendable_msat=params.max_sendable,
            metadata=params.metadata,
            comment_allowed=params.comment_allowed,
        )

    async def get_invoice(
        self,
        endpoint: ResolvedLnurlEndpoint,
        amount_sats: int,
        comment: str | None = None,
    ) -> str | None:
        """Request a bolt11 invoice for ``amount_sats`` from the callback."""
        query = {"amount": str(amount_sats * MSATS_PER_SAT)}
        if comment:
            if endpoint.comment_allowed is None:
                query["comment"] = comment
            elif endpoint.comment_allowed > 0:
                query["comment"] = comment[: endpoint.comment_allowed]

        try:
            url = httpx.URL(endpoint.callback)
            body = await self._get_json(str(url.copy_merge_params(query)))
            response = LnurlInvoiceResponse.model_validate(body)
        except (NetworkError, ValidationError) as exc:
            logger.warning("Failed to get invoice from LNURL callback: %s", exc)
            return None
        except (SchemaValidationError, httpx.InvalidURL) as exc:
            logger.warning("Malformed LNURL callback exchange: %s", exc)
            return None

        if response.is_error:
            logger.warning("LNURL callback returned error: %s", response.reason or "LNURL error")
            return None
        if not response.pr:
            logger.warning("LNURL callback response did not include an invoice")
            return None
        return response.pr

    async def resolve_and_get_invoice(
        self,
        address: str,
        amount_sats: int,
        comment: str | None = None,
    ) -> str | None:
        """Resolve ``address`` and fetch an invoice, enforcing the sendable bounds."""
        endpoint = await self.resolve_address(address)
        if endpoint is None:
            return None
        if amount_sats < endpoint.min_sendable:
            logger.warning("Amount %s below minimum %s", amount_sats, endpoint.min_sendable)
            return None
        if amount_sats > endpoint.max_sendable:
            logger.warning("Amount %s above maximum %s", amount_sats, endpoint.max_sendable)
            return None
        return await self.get_invoice(endpoint, amount_sats, comment)

    async def validate_lightning_address(self, address: str) -> bool:
        """Return True if ``address`` resolves to a usable LNURL-pay endpoint."""
        return await self.resolve_address(address) is not None
