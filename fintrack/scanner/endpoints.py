"""
Model endpoint selection.

Endpoints are tried one at a time in the order produced by a selection
policy. The first 2xx response wins; failures are logged and remembered, and
only the last one is raised once the attempt budget is spent. No backoff and
no parallel attempts.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Endpoint(BaseModel):
    model: str
    url: str
    weight: float = 1.0


class EndpointError(Exception):
    """One failed attempt against one endpoint."""

    def __init__(self, endpoint: Endpoint, message: str):
        super().__init__(message)
        self.endpoint = endpoint


class AllEndpointsFailed(Exception):
    """Every attempted endpoint failed; carries the last recorded error."""

    def __init__(self, message: str, last_error: Optional[EndpointError] = None):
        super().__init__(message)
        self.last_error = last_error


# ---------------------------------------------------------------------------
# Selection policies
# ---------------------------------------------------------------------------

SelectionPolicy = Callable[[list[Endpoint]], list[Endpoint]]


def priority_policy(endpoints: list[Endpoint]) -> list[Endpoint]:
    """Configured order, newest/fastest models first."""
    return list(endpoints)


def weighted_policy(endpoints: list[Endpoint]) -> list[Endpoint]:
    """Heaviest first; equal weights keep configured order."""
    return sorted(endpoints, key=lambda e: -e.weight)


SELECTION_POLICIES: dict[str, SelectionPolicy] = {
    "priority": priority_policy,
    "weighted": weighted_policy,
}


def get_policy(name: str) -> SelectionPolicy:
    try:
        return SELECTION_POLICIES[name]
    except KeyError:
        raise ValueError(f"Unknown selection policy: {name}") from None


def build_endpoints(
    api_base: str,
    models: Iterable[str],
    weights: Optional[dict[str, float]] = None,
) -> list[Endpoint]:
    weights = weights or {}
    base = api_base.rstrip("/")
    return [
        Endpoint(
            model=model,
            url=f"{base}/models/{model}:generateContent",
            weight=weights.get(model, 1.0),
        )
        for model in models
    ]


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------

class EndpointSelector:
    def __init__(
        self,
        api_key: str,
        endpoints: list[Endpoint],
        policy: SelectionPolicy = priority_policy,
        attempt_budget: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.endpoints = list(endpoints)
        self.policy = policy
        if attempt_budget is not None and attempt_budget < 0:
            raise ValueError(f"attempt_budget must be >= 0, got {attempt_budget}")
        self.attempt_budget = attempt_budget
        self.timeout = timeout

    def plan(self) -> list[Endpoint]:
        """Endpoints in attempt order, cut to the attempt budget."""
        ordered = self.policy(self.endpoints)
        if self.attempt_budget:
            ordered = ordered[: self.attempt_budget]
        return ordered

    def attempt(self, client: httpx.Client, endpoint: Endpoint, body: dict) -> dict:
        """One request against one endpoint. Raises ``EndpointError``."""
        try:
            response = client.post(
                endpoint.url,
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout if self.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.HTTPError as exc:
            raise EndpointError(endpoint, f"Failed to connect to {endpoint.model}: {exc}") from exc

        if not response.is_success:
            raise EndpointError(
                endpoint,
                f"API request failed: {response.status_code} "
                f"{response.reason_phrase} - {response.text}",
            )
        try:
            return response.json()
        except ValueError as exc:
            raise EndpointError(endpoint, f"Invalid JSON from {endpoint.model}: {exc}") from exc

    def generate(self, client: httpx.Client, body: dict) -> tuple[Endpoint, dict]:
        """Return ``(endpoint, response_json)`` from the first endpoint that succeeds."""
        last_error: Optional[EndpointError] = None
        for endpoint in self.plan():
            logger.info("Trying endpoint: %s", endpoint.model)
            try:
                payload = self.attempt(client, endpoint, body)
            except EndpointError as exc:
                logger.warning("Endpoint %s failed: %s", endpoint.model, exc)
                last_error = exc
                continue
            logger.info("Endpoint %s succeeded", endpoint.model)
            return endpoint, payload

        if last_error is None:
            raise AllEndpointsFailed("No AI endpoints configured")
        logger.error("All endpoints failed: %s", last_error)
        raise AllEndpointsFailed(str(last_error), last_error)


def response_text(payload: Any) -> str:
    """``candidates[0].content.parts[0].text`` or an empty string."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return text if isinstance(text, str) else ""
