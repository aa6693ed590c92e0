"""Client-side orchestration of page and count requests.

Every filter change fires a page request and, for a first page, an
independent count request. Requests are registered under a hashed filter
signature; a newer submission cancels whatever was registered under the old
key, and a response arriving for a cancelled registration is dropped even if
the network call completed.
"""

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .models import FilterExpression

logger = logging.getLogger(__name__)

COUNT_KEY_SUFFIX = ":count"


@dataclass(frozen=True)
class InstantQuery:
    """Everything one page request sends to the server."""

    filters: Tuple[Tuple[str, str], ...] = ()
    sort_by: str = "revenue"
    order: Optional[str] = None
    limit: int = 100
    cursor: Optional[str] = None

    @classmethod
    def from_filters(cls, filters: FilterExpression, **kwargs: Any) -> "InstantQuery":
        """Build a query from a parsed filter expression."""
        return cls(filters=tuple(filters.to_pairs()), **kwargs)

    def signature(self) -> str:
        """Hash of every field except the cursor."""
        payload = {
            "filters": sorted([list(pair) for pair in self.filters]),
            "sortBy": self.sort_by,
            "order": self.order,
            "limit": self.limit,
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def count_params(self) -> List[Tuple[str, str]]:
        return list(self.filters)

    def page_params(self) -> List[Tuple[str, str]]:
        params = list(self.filters)
        params.append(("sortBy", self.sort_by))
        if self.order:
            params.append(("order", self.order))
        params.append(("limit", str(self.limit)))
        if self.cursor:
            params.append(("cursor", self.cursor))
        return params


class CancelToken:
    """Marks a registration as superseded."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ViewState:
    """What the list view renders."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None
    total: Optional[int] = None
    took_ms: Optional[int] = None
    is_loading: bool = False
    is_updating: bool = False
    error: Optional[str] = None


class InstantListOrchestrator:
    """Coordinates page/count requests against the instant list API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        on_change: Optional[Callable[[ViewState], None]] = None,
    ):
        """Initialize with an HTTP client whose base URL points at the API."""
        self.client = client
        self.on_change = on_change
        self.state = ViewState()
        self._tokens: Dict[str, CancelToken] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._current_key: Optional[str] = None

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    def _cancel(self, key: str) -> None:
        token = self._tokens.pop(key, None)
        if token is not None:
            token.cancel()
        task = self._tasks.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    def _register(self, key: str) -> CancelToken:
        token = CancelToken()
        self._tokens[key] = token
        return token

    def submit(self, query: InstantQuery) -> asyncio.Task:
        """Start the requests for ``query``; must be called inside a running loop."""
        key = query.signature()
        count_key = key + COUNT_KEY_SUFFIX
        first_page = query.cursor is None

        if self._current_key is not None and self._current_key != key:
            self._cancel(self._current_key)
            self._cancel(self._current_key + COUNT_KEY_SUFFIX)
        self._cancel(key)
        self._current_key = key

        # Only one page request is ever in flight; its kind decides the flag.
        self.state.is_loading = first_page
        self.state.is_updating = not first_page
        self._notify()

        page_token = self._register(key)
        page_task = asyncio.create_task(self._fetch_page(query, page_token))
        self._tasks[key] = page_task

        if first_page:
            self._cancel(count_key)
            count_token = self._register(count_key)
            self._tasks[count_key] = asyncio.create_task(
                self._fetch_count(query, count_token)
            )
        return page_task

    async def _fetch_page(self, query: InstantQuery, token: CancelToken) -> None:
        first_page = query.cursor is None
        try:
            response = await self.client.get("/businesses", params=query.page_params())
            response.raise_for_status()
            payload = response.json()
            if token.cancelled:
                return
            items = payload.get("items") or []
            self.state.items = items if first_page else self.state.items + items
            self.state.next_cursor = (payload.get("cursor") or {}).get("next")
            self.state.took_ms = payload.get("tookMs")
            self.state.error = None
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            if token.cancelled:
                return
            logger.warning(f"Page request failed: {e}")
            self.state.items = []
            self.state.next_cursor = None
            self.state.error = str(e)
        finally:
            # A superseding submit has already set the flags for its request.
            if not token.cancelled:
                self.state.is_loading = False
                self.state.is_updating = False
                self._notify()

    async def _fetch_count(self, query: InstantQuery, token: CancelToken) -> None:
        try:
            response = await self.client.get(
                "/businesses/count", params=query.count_params()
            )
            response.raise_for_status()
            total = int(response.json().get("total", 0))
        except (httpx.HTTPError, ValueError, TypeError) as e:
            # The previous total stays on screen.
            logger.warning(f"Count request failed: {e}")
            return
        if token.cancelled:
            return
        self.state.total = total
        self._notify()

    async def drain(self) -> None:
        """Wait for every registered request to settle."""
        await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel everything in flight and wait for the tasks to unwind."""
        for token in self._tokens.values():
            token.cancel()
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tokens.clear()
        self._tasks.clear()
        self.state.is_loading = False
        self.state.is_updating = False
