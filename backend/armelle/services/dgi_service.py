# /armelle/services/dgi_service.py

import asyncio
import httpx
import logging
import tenacity
from typing import Any, Dict, List, Optional

from armelle.models.taxpayer import Taxpayer
from armelle.utils.circuit_breaker import CircuitBreaker, CircuitOpenError
from armelle.utils.metrics import dgi_requests_counter

# This service wraps the DGI taxpayer lookup API (search by name, verify a
# NIU). Transport errors are retried, repeated failures open a circuit breaker,
# and every failure surfaces as a single DGIServiceError for the callers.

logger = logging.getLogger(__name__)


class DGIServiceError(Exception):
    """The DGI lookup service could not answer."""


class DGIService:
    def __init__(
        self,
        base_url: str,
        timeout: float = 8.0,
        http_client: Optional[httpx.AsyncClient] = None,
        budget_seconds: Optional[float] = None
    ):
        self.base_url = base_url.rstrip("/")
        # Ceiling for one lookup, retries and backoff included
        self.budget_seconds = budget_seconds
        self.circuit_breaker = CircuitBreaker("dgi")
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0)
        )

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=0.5, min=0.5, max=4),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING)
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await self.circuit_breaker.call(func, *args, **kwargs)

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """GET a DGI resource. Returns None on 404, raises on any other error status."""
        response = await self.http_client.get(f"{self.base_url}{path}", params=params)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def _fetch(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        call = self.resilient_api_call(self._get_json, path, params=params)
        if not self.budget_seconds:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.budget_seconds)
        except asyncio.TimeoutError:
            # The cancelled attempt never reached the breaker's failure hook
            await self.circuit_breaker.record_failure()
            raise

    async def search(self, name: str) -> List[Taxpayer]:
        """Search taxpayers by full name."""
        try:
            payload = await self._fetch("/taxpayers/search", params={"name": name})
            results = (payload or {}).get("results", [])
            taxpayers = [Taxpayer.model_validate(item) for item in results]
        except CircuitOpenError as e:
            dgi_requests_counter.labels(operation="search", status="circuit_open").inc()
            raise DGIServiceError(str(e)) from e
        except asyncio.TimeoutError as e:
            dgi_requests_counter.labels(operation="search", status="timeout").inc()
            logger.error(f"DGI search gave up after {self.budget_seconds}s")
            raise DGIServiceError(f"DGI search timed out after {self.budget_seconds}s") from e
        except (httpx.HTTPError, tenacity.RetryError, ValueError) as e:
            dgi_requests_counter.labels(operation="search", status="error").inc()
            logger.error(f"DGI search failed for name '{name}': {e}")
            raise DGIServiceError(f"DGI search failed: {e}") from e

        dgi_requests_counter.labels(operation="search", status="success").inc()
        logger.info(f"DGI search for '{name}' returned {len(taxpayers)} result(s)")
        return taxpayers

    async def verify(self, niu: str) -> Optional[Taxpayer]:
        """Look up a taxpayer by NIU. Returns None when the NIU is unknown."""
        try:
            payload = await self._fetch(f"/taxpayers/{niu}")
            taxpayer = Taxpayer.model_validate(payload) if payload else None
        except CircuitOpenError as e:
            dgi_requests_counter.labels(operation="verify", status="circuit_open").inc()
            raise DGIServiceError(str(e)) from e
        except asyncio.TimeoutError as e:
            dgi_requests_counter.labels(operation="verify", status="timeout").inc()
            logger.error(f"DGI verify gave up after {self.budget_seconds}s")
            raise DGIServiceError(f"DGI verify timed out after {self.budget_seconds}s") from e
        except (httpx.HTTPError, tenacity.RetryError, ValueError) as e:
            dgi_requests_counter.labels(operation="verify", status="error").inc()
            logger.error(f"DGI verification failed for NIU {niu}: {e}")
            raise DGIServiceError(f"DGI verification failed: {e}") from e

        dgi_requests_counter.labels(operation="verify", status="found" if taxpayer else "not_found").inc()
        return taxpayer

    async def close(self):
        await self.http_client.aclose()
