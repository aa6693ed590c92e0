"""Bulk list materializer: persist a whole filtered result set as a saved list."""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional

from ..db import RegistryDatabase
from ..models import FilterExpression, SavedListCreate
from ..predicates import compile_saved_list_predicates

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500
DEFAULT_BATCH_DELAY = 0.05


@dataclass(frozen=True)
class MaterializeEvent:
    """One named progress event of a materialization run."""

    event: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        """Render as a server-sent event frame."""
        return f"event: {self.event}\ndata: {json.dumps(self.data)}\n\n"


class BulkListMaterializer:
    """Creates a list, resolves its candidates and inserts them in batches.

    Events, in order: ``created{id}``, ``progress{total, inserted}`` once before
    the first batch and after every batch, then ``done{inserted, total, id}``.
    Any failure ends the run with ``error``; when the list already exists the
    error also carries ``inserted``, ``total`` and ``batch``, the index of the
    last fully inserted batch (-1 if none). Re-running with ``list_id`` set
    resumes into that list, since duplicate members are ignored on insert; the
    list must exist and belong to the same owner.
    """

    def __init__(
        self,
        db: RegistryDatabase,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize with the database, batch size and inter-batch delay."""
        self.db = db
        self.batch_size = max(1, batch_size)
        self.batch_delay = max(0.0, batch_delay)
        self._sleep = sleep

    def materialize(
        self,
        owner_id: str,
        name: str,
        filter_query: str,
        list_id: Optional[int] = None,
    ) -> Iterator[MaterializeEvent]:
        """Run one materialization, yielding progress events as it goes."""
        filter_query = (filter_query or "").lstrip("?")
        filters = FilterExpression.from_query_string(filter_query)

        if list_id is None:
            try:
                list_id = self.db.saved_lists.create_list(
                    SavedListCreate(
                        owner_id=owner_id,
                        name=name,
                        filter_query=f"?{filter_query}" if filter_query else None,
                    )
                )
            except Exception as e:
                logger.error(f"Failed to create list '{name}': {e}")
                yield MaterializeEvent("error", {"message": str(e)})
                return
            yield MaterializeEvent("created", {"id": list_id})
        else:
            try:
                saved = self.db.saved_lists.get_list(list_id)
            except Exception as e:
                logger.error(f"Failed to load list {list_id}: {e}")
                yield MaterializeEvent("error", {"message": str(e)})
                return
            if saved is None:
                logger.warning(f"Resume requested for missing list {list_id}")
                yield MaterializeEvent("error", {"message": f"List {list_id} not found"})
                return
            if saved.owner_id != owner_id:
                logger.warning(
                    f"Owner {owner_id} tried to resume list {list_id} "
                    f"owned by {saved.owner_id}"
                )
                yield MaterializeEvent(
                    "error", {"message": f"List {list_id} belongs to another owner"}
                )
                return
            logger.info(f"Resuming materialization into list {list_id}")

        inserted = 0
        total = 0
        last_batch = -1

        def failure(e: Exception) -> MaterializeEvent:
            return MaterializeEvent(
                "error",
                {
                    "message": str(e),
                    "id": list_id,
                    "inserted": inserted,
                    "total": total,
                    "batch": last_batch,
                },
            )

        try:
            candidates = self.db.saved_lists.resolve_candidates(
                compile_saved_list_predicates(filters)
            )
        except Exception as e:
            logger.error(f"Failed to resolve candidates for list {list_id}: {e}")
            yield failure(e)
            return

        total = len(candidates)
        logger.info(f"List {list_id}: {total} candidates")
        yield MaterializeEvent("progress", {"total": total, "inserted": 0})

        for batch_index, offset in enumerate(range(0, total, self.batch_size)):
            chunk = candidates[offset : offset + self.batch_size]
            try:
                self.db.saved_lists.insert_items(list_id, chunk)
            except Exception as e:
                logger.error(
                    f"List {list_id}: batch {batch_index} failed after "
                    f"{inserted}/{total}: {e}"
                )
                yield failure(e)
                return
            inserted += len(chunk)
            last_batch = batch_index
            yield MaterializeEvent("progress", {"total": total, "inserted": inserted})
            if inserted < total and self.batch_delay:
                self._sleep(self.batch_delay)

        logger.info(f"List {list_id}: materialized {inserted}/{total}")
        yield MaterializeEvent("done", {"inserted": inserted, "total": total, "id": list_id})
