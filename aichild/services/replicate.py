"""
Replicate predictions API client.

Creates one prediction, then polls it until it stops being pending.

Docs: https://replicate.com/docs/reference/http
API:  https://api.replicate.com/v1/predictions
"""

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Optional

import httpx

from ..core.config import Settings
from ..models.prediction import PollPolicy, Prediction

logger = logging.getLogger(__name__)


# ── Errors ───────────────────────────────────────────────────────────

class ReplicateError(Exception):
    """Base class for Replicate client failures."""


class ReplicateTransportError(ReplicateError):
    """Network failure or timeout. No HTTP response was received."""


class ReplicateHTTPError(ReplicateError):
    """Replicate answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Replicate returned HTTP {status_code}: {body[:200]}")


class ReplicateServiceError(ReplicateError):
    """2xx response that carries an error field or is not a usable prediction."""


class PollCancelled(ReplicateError):
    """Polling was aborted through the cancel event."""


# ── Reusable HTTP client (connection pool) ───────────────────────────

_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(connect=10, read=30, write=10, pool=10),
        )
    return _client


async def close_client():
    """Close the shared HTTP client. Call on app shutdown."""
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


# ── Client ───────────────────────────────────────────────────────────

class ReplicateClient:
    """
    One instance per settings snapshot. The HTTP client is shared.

    sleep is injectable so tests can run the poll loop without real waits.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.replicate.com/v1",
        model_version: str = "",
        submit_timeout: float = 10.0,
        poll_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.model_version = model_version
        self.submit_timeout = submit_timeout
        self.poll_timeout = poll_timeout
        self._http = http_client
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ReplicateClient":
        return cls(
            api_token=settings.replicate_api_token,
            base_url=settings.replicate_base_url,
            model_version=settings.replicate_model_version,
            submit_timeout=settings.replicate_submit_timeout,
            poll_timeout=settings.replicate_poll_timeout,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_token)

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http or _get_client()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, url: str, timeout: float, **kwargs) -> dict:
        """Send one request. Maps every failure onto the ReplicateError hierarchy."""
        try:
            resp = await self.http.request(
                method, url, headers=self._headers(), timeout=timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            raise ReplicateTransportError(
                f"Replicate request timed out after {timeout:g}s"
            ) from e
        except httpx.HTTPError as e:
            raise ReplicateTransportError(f"Replicate request failed: {e}") from e

        if resp.status_code >= 400:
            raise ReplicateHTTPError(resp.status_code, resp.text[:500])

        try:
            body = resp.json()
        except ValueError as e:
            raise ReplicateServiceError("Replicate returned a non-JSON response") from e

        if not isinstance(body, dict):
            raise ReplicateServiceError(
                f"Replicate returned {type(body).__name__}, expected an object"
            )
        return body

    async def submit(self, model_input: dict) -> Prediction:
        """
        Create a prediction. Never retried.

        Raises: ReplicateTransportError, ReplicateHTTPError, ReplicateServiceError.
        """
        url = f"{self.base_url}/predictions"
        payload = {"version": self.model_version, "input": model_input}
        logger.info("Replicate: POST %s  version=%s", url, self.model_version)

        try:
            body = await self._request("POST", url, self.submit_timeout, json=payload)
        except ReplicateHTTPError as e:
            logger.error("Replicate submit error %d: %s", e.status_code, e.body)
            raise
        except ReplicateError as e:
            logger.error("Replicate submit failed: %s", e)
            raise

        prediction = Prediction.from_api(body)

        # A failed prediction carries its own error; anything else with an error field is a service error
        if body.get("error") and not prediction.is_terminal:
            logger.error("Replicate submit reported error: %s", body["error"])
            raise ReplicateServiceError(str(body["error"]))

        if not prediction.id and prediction.is_pending:
            raise ReplicateServiceError("Replicate did not return a prediction id")

        logger.info("Replicate prediction created: id=%s status=%s", prediction.id, prediction.status)
        return prediction

    async def get_prediction(self, prediction_id: str) -> Prediction:
        """Current state of a prediction. An `error` field here is data, not an exception."""
        url = f"{self.base_url}/predictions/{prediction_id}"
        body = await self._request("GET", url, self.poll_timeout)
        return Prediction.from_api(body)

    async def poll(
        self,
        prediction: Prediction,
        policy: PollPolicy,
        cancel: Optional[asyncio.Event] = None,
    ) -> Prediction:
        """
        Poll until the prediction is no longer pending or the attempts run out.

        Each attempt waits policy.interval, then queries once. A failed query is
        logged and still uses up the attempt. Returns the last prediction seen;
        it is still pending when the budget was exhausted.

        Raises: PollCancelled when `cancel` is set.
        """
        current = prediction

        for attempt in range(1, policy.max_attempts + 1):
            _raise_if_cancelled(cancel, prediction.id)
            await self._sleep(policy.interval)
            _raise_if_cancelled(cancel, prediction.id)

            try:
                polled = await self.get_prediction(prediction.id)
            except ReplicateError as e:
                logger.warning(
                    "Poll attempt %d/%d for %s failed: %s",
                    attempt, policy.max_attempts, prediction.id, e,
                )
                continue

            current = polled if polled.id else replace(polled, id=prediction.id)
            logger.info(
                "Poll attempt %d/%d: %s status=%s",
                attempt, policy.max_attempts, prediction.id, current.status,
            )
            if not current.is_pending:
                return current

        logger.warning(
            "Polling budget exhausted for %s after %d attempts (status=%s)",
            prediction.id, policy.max_attempts, current.status,
        )
        return current


def _raise_if_cancelled(cancel: Optional[asyncio.Event], prediction_id: str) -> None:
    if cancel is not None and cancel.is_set():
        logger.info("Polling cancelled for %s", prediction_id)
        raise PollCancelled(f"Polling cancelled for prediction {prediction_id}")

