from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

import httpx
from loguru import logger

from volmon.config import get_settings
from volmon.errors import ProviderError, ProviderNotFoundError

settings = get_settings()

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass
class ChainOverview:
    symbol: str
    spot_price: float
    expirations: List[int] = field(default_factory=list)


class YahooOptionsClient:
    """Thin client over the Yahoo Finance v7 options endpoint.

    Every failure surfaces as :class:`ProviderError`; retry policy belongs to
    whoever schedules the cycles.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self.base_url = (base_url or settings.YAHOO_BASE_URL).rstrip("/")
        self.client = httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=self.timeout, read=self.timeout),
            headers=DEFAULT_HEADERS,
        )

    def _request(self, path: str, params: dict | None = None, *, symbol: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        start = time.perf_counter()
        try:
            response = self.client.get(url, params=params)
        except httpx.RequestError as exc:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            logger.error(
                "Yahoo request error",
                url=url,
                symbol=symbol,
                elapsed_ms=elapsed_ms,
                error=str(exc),
            )
            raise ProviderError(f"request failed for {symbol}: {exc}", symbol=symbol) from exc

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        status_code = response.status_code
        if status_code != 200:
            snippet = (response.text or "")[:300]
            logger.error(
                "Yahoo request non-200",
                url=url,
                symbol=symbol,
                status_code=status_code,
                elapsed_ms=elapsed_ms,
                response_snippet=snippet,
            )
            error_cls = ProviderNotFoundError if status_code == 404 else ProviderError
            raise error_cls(f"GET {path} returned {status_code}", symbol=symbol, status_code=status_code)

        logger.debug(
            "Yahoo request ok",
            url=url,
            symbol=symbol,
            status_code=status_code,
            elapsed_ms=elapsed_ms,
        )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"invalid JSON for {symbol}", symbol=symbol, status_code=status_code) from exc

    def _first_result(self, data: Dict[str, Any], symbol: str) -> Dict[str, Any]:
        try:
            results = ((data or {}).get("optionChain") or {}).get("result") or []
        except AttributeError as exc:
            raise ProviderError(f"malformed options payload for {symbol}", symbol=symbol) from exc
        if not results or not isinstance(results[0], dict):
            raise ProviderError(f"no options data in response for {symbol}", symbol=symbol)
        return results[0]

    def get_chain_overview(self, symbol: str) -> ChainOverview:
        result = self._first_result(self._request(f"/v7/finance/options/{symbol}", symbol=symbol), symbol)
        try:
            quote = result.get("quote") or {}
            spot = float(quote.get("regularMarketPrice") or quote.get("ask") or 0)
            expirations = sorted(int(exp) for exp in result.get("expirationDates") or [])
        except (AttributeError, OverflowError, TypeError, ValueError) as exc:
            raise ProviderError(f"malformed chain overview for {symbol}: {exc}", symbol=symbol) from exc
        if not math.isfinite(spot):
            raise ProviderError(f"non-finite spot price for {symbol}: {spot}", symbol=symbol)
        logger.info("chain overview fetched", symbol=symbol, spot=spot, expirations=len(expirations))
        return ChainOverview(symbol=symbol, spot_price=spot, expirations=expirations)

    def get_contracts(self, symbol: str, expiry: int) -> Dict[str, List[Dict[str, Any]]]:
        result = self._first_result(
            self._request(f"/v7/finance/options/{symbol}", params={"date": expiry}, symbol=symbol),
            symbol,
        )
        try:
            options = result.get("options") or []
            chain = options[0] if options else {}
            calls = [dict(c, expiration=c.get("expiration", expiry)) for c in chain.get("calls") or []]
            puts = [dict(p, expiration=p.get("expiration", expiry)) for p in chain.get("puts") or []]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"malformed option chain for {symbol}: {exc}", symbol=symbol) from exc
        return {"calls": calls, "puts": puts}

    def close(self) -> None:
        self.client.close()
