"""
GraphQL extractor with authentication, batching, rate limiting, and retry logic.

This module fetches response records with:
- Exponential backoff retry logic for transient failures
- Circuit breaker pattern to prevent cascading failures
- Retry-After aware handling of HTTP 429
- Fixed-size concurrent batches with an inter-batch pause
- An audit log entry for every fetch attempt
"""

import httpx
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional, Sequence, Union
from core.config import settings
from core.exceptions import (
    APIExtractionError,
    NetworkError,
    RateLimitError,
    AuthenticationError,
)
from ingestion.audit_log import append_fetch_attempt
from ingestion.extractors.queries import QUERIES
from models.base import QueryType
from schemas.records import ResponseRecord
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchTarget:
    """One repository to query"""
    owner: str
    name: str

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def variables(self) -> Dict[str, str]:
        return {"owner": self.owner, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FetchTarget":
        return cls(owner=str(data["owner"]), name=str(data.get("name") or data["repo"]))


@dataclass
class FetchFailure:
    """An entity that could not be fetched"""
    target: FetchTarget
    error_type: str
    message: str


@dataclass
class FetchResult:
    """Records fetched in one run, plus the entities that failed"""
    records: List[ResponseRecord] = field(default_factory=list)
    failures: List[FetchFailure] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "success" if not self.failures else "partial_success"


class GraphQLExtractor:
    """
    Fetch response records for one query type from a GraphQL endpoint.

    Features:
    - Bearer token authentication
    - Retry logic with exponential backoff
    - Circuit breaker pattern
    - Rate limiting protection
    - Bounded parallelism: one request per entity, batch by batch
    - A failing entity never aborts its batch

    Attributes:
        batch_size: Entities fetched concurrently (default: FETCH_BATCH_SIZE)
        batch_pause: Seconds between batches (default: FETCH_BATCH_PAUSE_SECONDS)
        max_retries: Maximum number of attempts per request (default: 3)
        retry_delay: Initial retry delay in seconds (default: 1.0)
        timeout: Request timeout in seconds (default: 30.0)
    """

    def __init__(
        self,
        query_type: Union[str, QueryType],
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        audit_log_path: Optional[Union[str, Path]] = None,
        batch_size: Optional[int] = None,
        batch_pause: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        self.query_type = QueryType(query_type)
        self.query = QUERIES[self.query_type]
        self.token = token or settings.GITHUB_TOKEN
        self.api_url = api_url or settings.GRAPHQL_URL
        self.audit_log_path = Path(audit_log_path) if audit_log_path else None
        self.batch_size = max(1, batch_size or settings.FETCH_BATCH_SIZE)
        self.batch_pause = settings.FETCH_BATCH_PAUSE_SECONDS if batch_pause is None else batch_pause
        self.max_retries = max_retries or settings.MAX_RETRIES
        self.retry_delay = settings.RETRY_DELAY if retry_delay is None else retry_delay
        self.timeout = timeout or settings.REQUEST_TIMEOUT

        # Circuit breaker state
        self._circuit_breaker_failures = 0
        self._circuit_breaker_threshold = 5
        self._circuit_breaker_open_until: Optional[datetime] = None
        self._circuit_breaker_timeout = 60  # seconds

    def _is_circuit_open(self) -> bool:
        """Check if circuit breaker is open."""
        if self._circuit_breaker_open_until is None:
            return False

        if datetime.now(timezone.utc) >= self._circuit_breaker_open_until:
            logger.info(f"Circuit breaker reset for {self.api_url}")
            self._circuit_breaker_failures = 0
            self._circuit_breaker_open_until = None
            return False

        return True

    def _record_failure(self):
        """Record a failure and potentially open circuit breaker."""
        self._circuit_breaker_failures += 1

        if self._circuit_breaker_failures >= self._circuit_breaker_threshold:
            self._circuit_breaker_open_until = datetime.now(timezone.utc) + timedelta(
                seconds=self._circuit_breaker_timeout
            )
            logger.warning(
                f"Circuit breaker opened for {self.api_url}. "
                f"Will retry after {self._circuit_breaker_timeout} seconds."
            )

    def _record_success(self):
        """Record a successful request."""
        self._circuit_breaker_failures = 0
        self._circuit_breaker_open_until = None

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _post_with_retry(
        self,
        client: httpx.AsyncClient,
        target: FetchTarget
    ) -> httpx.Response:
        """
        POST one query with retry logic and exponential backoff.

        Raises:
            AuthenticationError: On HTTP 401/403
            RateLimitError: If still rate limited after max retries
            NetworkError: For timeouts, transport errors and 5xx after max retries
            APIExtractionError: For other HTTP errors or an open circuit
        """
        if self._is_circuit_open():
            raise APIExtractionError(
                f"Circuit breaker is open for {self.api_url}",
                context={
                    "api_url": self.api_url,
                    "entity": target.key,
                    "open_until": self._circuit_breaker_open_until.isoformat()
                }
            )

        body = {"query": self.query, "variables": target.variables}

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries} for {target.key}")

                response = await client.post(
                    self.api_url,
                    headers=self.headers,
                    json=body,
                    timeout=self.timeout
                )

            except httpx.TimeoutException as e:
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(f"Request timeout for {target.key}. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Request timeout after {self.max_retries} retries",
                    context={
                        "api_url": self.api_url,
                        "entity": target.key,
                        "timeout": self.timeout,
                        "retry_count": attempt + 1
                    },
                    original_exception=e
                )

            except httpx.TransportError as e:
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(f"Network error for {target.key}. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Network error after {self.max_retries} retries",
                    context={
                        "api_url": self.api_url,
                        "entity": target.key,
                        "retry_count": attempt + 1
                    },
                    original_exception=e
                )

            if response.status_code in (401, 403):
                self._record_failure()
                raise AuthenticationError(
                    f"Authentication failed for {self.api_url}",
                    context={
                        "status_code": response.status_code,
                        "api_url": self.api_url,
                        "entity": target.key
                    }
                )

            if response.status_code == 429:
                retry_after = self._retry_after(response, attempt)
                logger.warning(f"Rate limited. Retrying after {retry_after} seconds")

                if attempt < self.max_retries - 1:
                    await asyncio.sleep(retry_after)
                    continue
                self._record_failure()
                raise RateLimitError(
                    f"Rate limit exceeded for {self.api_url}",
                    context={
                        "status_code": 429,
                        "api_url": self.api_url,
                        "entity": target.key,
                        "retry_count": attempt + 1
                    },
                    retry_after=retry_after
                )

            if response.status_code >= 500:
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)  # Exponential backoff
                    logger.warning(
                        f"Server error {response.status_code}. "
                        f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Server error after {self.max_retries} retries",
                    context={
                        "status_code": response.status_code,
                        "api_url": self.api_url,
                        "entity": target.key,
                        "retry_count": attempt + 1,
                        "response_body": response.text[:500]  # Truncate
                    }
                )

            if response.status_code >= 400:
                self._record_failure()
                raise APIExtractionError(
                    f"Request rejected with HTTP {response.status_code}",
                    context={
                        "status_code": response.status_code,
                        "api_url": self.api_url,
                        "entity": target.key,
                        "response_body": response.text[:500]
                    }
                )

            self._record_success()
            return response

        raise APIExtractionError(
            "Max retries exceeded",
            context={"api_url": self.api_url, "entity": target.key}
        )

    def _retry_after(self, response: httpx.Response, attempt: int) -> int:
        default = int(self.retry_delay * (2 ** attempt))
        try:
            return int(response.headers.get("Retry-After", default))
        except (TypeError, ValueError):
            return default

    async def fetch_one(self, client: httpx.AsyncClient, target: FetchTarget) -> ResponseRecord:
        """
        Fetch one entity and write its audit log entry.

        A body whose repository is null (not found, access denied) still
        yields a record; a body without data is a failure.
        """
        try:
            response = await self._post_with_retry(client, target)
            body = self._parse(response, target)
        except APIExtractionError as e:
            logger.error(
                f"Fetch failed for {target.key}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            self._audit(target, error=e.message)
            raise

        fetched_at = datetime.now(timezone.utc)
        self._audit(target, response=body, fetched_at=fetched_at)

        data = body.get("data") if isinstance(body, dict) else None
        errors = body.get("errors") if isinstance(body, dict) else None

        if not isinstance(data, dict):
            logger.error(f"GraphQL response for {target.key} carries no data: {errors}")
            raise APIExtractionError(
                "GraphQL response carries no data",
                context={
                    "api_url": self.api_url,
                    "entity": target.key,
                    "errors": errors
                }
            )

        if errors:
            logger.warning(f"GraphQL errors returned for {target.key}: {errors}")
        if data.get("repository") is None:
            logger.info(f"Repository not found or access denied for {target.key}")

        return ResponseRecord(
            query_type=self.query_type.value,
            request_parameters=target.variables,
            fetched_at=fetched_at,
            payload=data,
        )

    def _parse(self, response: httpx.Response, target: FetchTarget) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIExtractionError(
                "Failed to parse JSON response",
                context={
                    "api_url": self.api_url,
                    "entity": target.key,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

    async def fetch_all(self, targets: Sequence[FetchTarget]) -> FetchResult:
        """
        Fetch every target, batch by batch.

        All entities of a batch are settled (record or failure) before the
        next batch starts.
        """
        targets = list(targets)
        result = FetchResult()
        batch_count = (len(targets) + self.batch_size - 1) // self.batch_size

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for index in range(batch_count):
                batch = targets[index * self.batch_size:(index + 1) * self.batch_size]
                logger.info(f"Fetching batch {index + 1}/{batch_count} ({len(batch)} entities)")

                outcomes = await asyncio.gather(
                    *(self.fetch_one(client, target) for target in batch),
                    return_exceptions=True
                )

                for target, outcome in zip(batch, outcomes):
                    if isinstance(outcome, ResponseRecord):
                        result.records.append(outcome)
                    elif isinstance(outcome, Exception):
                        result.failures.append(FetchFailure(
                            target=target,
                            error_type=type(outcome).__name__,
                            message=getattr(outcome, "message", str(outcome)),
                        ))
                    else:
                        raise outcome

                if index < batch_count - 1 and self.batch_pause > 0:
                    await asyncio.sleep(self.batch_pause)

        logger.info(
            f"Fetched {len(result.records)} {self.query_type.value} records, "
            f"{len(result.failures)} failed"
        )
        return result

    def _audit(
        self,
        target: FetchTarget,
        response: Any = None,
        error: Optional[str] = None,
        fetched_at: Optional[datetime] = None
    ):
        if self.audit_log_path is None:
            return
        append_fetch_attempt(
            self.audit_log_path,
            query_type=self.query_type.value,
            owner=target.owner,
            repo=target.name,
            response=response,
            inputs=target.variables,
            error=error,
            timestamp=fetched_at,
        )
