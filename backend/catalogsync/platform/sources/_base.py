"""Base class for catalog source adapters."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar
from xml.etree.ElementTree import ParseError

import httpx
from tenacity import AsyncRetrying, stop_after_attempt

from catalogsync.core.logging import ContextualLogger, LoggerConfigurator
from catalogsync.core.shared_models import Platform
from catalogsync.platform.entities import (
    CategoryRecord,
    DocumentRecord,
    ManufacturerRecord,
    ParameterRecord,
    ProductRecord,
)
from catalogsync.platform.sources.retry_helpers import (
    retry_if_status_or_timeout,
    wait_retry_after_with_backoff,
)

T = TypeVar("T")

# Errors an adapter swallows into an empty result: transport failures, non-retryable or
# exhausted HTTP statuses and malformed JSON/XML payloads.
SOURCE_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError, ParseError)

# Errors raised while turning a single vendor item into a record
ITEM_ERRORS = (KeyError, TypeError, AttributeError, ValueError)

MAX_ITEM_ERROR_LENGTH = 300


class BaseSource(ABC):
    """Base class for all vendor adapters.

    An adapter fetches one vendor's catalog and returns platform-neutral records. Every
    public ``fetch_*`` call applies the configured timeout, retries 429/503 and timeouts
    with backoff, and turns any remaining failure into an empty list plus a warning. An
    empty list therefore means "nothing to reconcile this run", never "the remote
    catalog is empty". A single malformed item inside a valid list is dropped on its own
    and reported through ``drain_malformed``.

    Class attributes describe the slug policy of the platform's categories:
    ``HIERARCHICAL_SLUGS`` prefixes child slugs with the parent slug and
    ``ROOT_SLUG_DISCRIMINATOR`` replaces the name-derived discriminator for roots.
    """

    platform: Platform
    HIERARCHICAL_SLUGS: bool = False
    ROOT_SLUG_DISCRIMINATOR: Optional[str] = None

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float,
        retry_attempts: int,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait: Optional[Callable[[Any], float]] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Configure the adapter.

        Args:
            base_url: Vendor API root, without trailing slash
            timeout_seconds: Per-request timeout
            retry_attempts: Total attempts per request, including the first
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
            retry_wait: Optional tenacity wait strategy overriding the default backoff
            logger: Optional logger; a platform logger is created otherwise
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, retry_attempts)
        self._transport = transport
        self._retry_wait = retry_wait or wait_retry_after_with_backoff
        self.logger = logger or LoggerConfigurator.configure_logger(
            f"catalogsync.sources.{self.platform.value}",
            dimensions={"platform": self.platform.value},
        )
        self._malformed: List[Tuple[str, str]] = []

    @property
    def label(self) -> str:
        """Log prefix, e.g. ``[Vali]``."""
        return f"[{self.platform.value.capitalize()}]"

    @property
    def excluded_category_ids(self) -> Set[str]:
        """External category ids that must never be synced."""
        return set()

    def _headers(self) -> Dict[str, str]:
        """Headers sent with every request."""
        return {}

    def _auth_params(self) -> Dict[str, str]:
        """Query parameters sent with every request."""
        return {}

    def http_client(self) -> httpx.AsyncClient:
        """Create an HTTP client bound to this adapter's timeout and transport."""
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
            headers=self._headers(),
        )

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """GET ``path`` with retries; raises on the final failure.

        Args:
            path: Path relative to the base URL
            params: Optional query parameters

        Returns:
            The successful response
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {**self._auth_params(), **(params or {})}

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            retry=retry_if_status_or_timeout,
            wait=self._retry_wait,
            reraise=True,
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    self.logger.info(f"{self.label} Retrying GET {path} (attempt {number})")
                async with self.http_client() as client:
                    response = await client.get(url, params=query or None)
                    response.raise_for_status()
                    return response

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET ``path`` and decode the JSON body."""
        response = await self._get(path, params)
        return response.json()

    async def _fetch_or_empty(self, what: str, fetch: Callable[[], Awaitable[List[T]]]) -> List[T]:
        """Run ``fetch`` and degrade any source failure to an empty list.

        Args:
            what: Human readable description for the log line
            fetch: Coroutine factory producing the records

        Returns:
            The fetched records, or ``[]`` if the source failed
        """
        try:
            records = await fetch()
        except httpx.HTTPStatusError as e:
            self.logger.warning(
                f"{self.label} Fetching {what} failed with HTTP {e.response.status_code}; "
                "nothing to reconcile this run"
            )
            return []
        except SOURCE_ERRORS as e:
            self.logger.warning(
                f"{self.label} Fetching {what} failed: {type(e).__name__}: {e}; "
                "nothing to reconcile this run"
            )
            return []
        self.logger.debug(f"{self.label} Fetched {len(records)} {what}")
        return records

    def _convert_each(
        self, what: str, items: Any, convert: Callable[[Any], T], key: str = "id"
    ) -> List[T]:
        """Convert vendor ``items`` one by one, dropping only the malformed ones.

        A dropped item is logged and remembered until ``drain_malformed`` is called, so the
        stage that asked for the records can count it as an error.

        Args:
            what: Kind of item, used in log lines and error keys (e.g. ``products``)
            items: The decoded vendor list
            convert: Turns one item into a record
            key: Field of a dict item that identifies it in the error key

        Returns:
            The records of every well-formed item, in vendor order

        Raises:
            ValueError: ``items`` is not a list at all
        """
        if items is None:
            return []
        if not isinstance(items, list):
            raise ValueError(f"expected a list of {what}, got {type(items).__name__}")

        records = []
        for position, item in enumerate(items):
            try:
                records.append(convert(item))
            except ITEM_ERRORS as e:
                item_id = item.get(key) if isinstance(item, dict) else None
                label = f"{what} {item_id}" if item_id is not None else f"{what} #{position}"
                error = " ".join(f"{type(e).__name__}: {e}".split())[:MAX_ITEM_ERROR_LENGTH]
                self.logger.warning(f"{self.label} Dropping malformed {label}: {error}")
                self._malformed.append((label, error))
        return records

    def drain_malformed(self) -> List[Tuple[str, str]]:
        """Return and forget the ``(key, error)`` pairs of items dropped so far."""
        malformed, self._malformed = self._malformed, []
        return malformed

    @abstractmethod
    async def fetch_categories(self) -> List[CategoryRecord]:
        """Fetch every category node."""

    @abstractmethod
    async def fetch_manufacturers(self) -> List[ManufacturerRecord]:
        """Fetch every manufacturer."""

    @abstractmethod
    async def fetch_parameters(self, category_external_id: str) -> List[ParameterRecord]:
        """Fetch the parameters (with options) of one category."""

    @abstractmethod
    async def fetch_products(self, category_external_id: str) -> List[ProductRecord]:
        """Fetch the products of one category."""

    @abstractmethod
    async def fetch_documents(
        self, product_external_id: Optional[str] = None
    ) -> List[DocumentRecord]:
        """Fetch the documents of one product, or of every product when no id is given."""

    async def test_connection(self) -> Tuple[bool, str]:
        """Check that the vendor answers; never raises.

        Returns:
            ``(connected, message)``
        """
        try:
            await self._get(self._connection_check_path())
        except SOURCE_ERRORS as e:
            self.logger.warning(f"{self.label} Connection test failed: {e}")
            return False, f"Connection failed: {e}"
        self.logger.info(f"{self.label} Connection test succeeded")
        return True, "Connection successful"

    def _connection_check_path(self) -> str:
        return "categories"

    def invalidate_cache(self) -> None:
        """Drop any cached vendor payloads. Adapters without a cache do nothing."""
        return None
