"""Thread-safety utilities for per-item batch fan-out.

The scheduled jobs and the deletion cascade run one independent unit of
work per user or task. run_isolated() executes those units on a bounded
thread pool, awaits every one, and records failures per item so one bad
item never aborts the rest.
"""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Workers must not share boto3 resources; use dynamodb.thread_table()
MAX_WORKERS = 8


@dataclass
class BatchResult(Generic[R]):
    """Outcome of a run_isolated() fan-out.

    Attributes:
        succeeded: item key -> return value
        failed: item key -> exception type name
    """

    succeeded: dict[str, R] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)


def run_isolated(
    items: Iterable[T],
    work: Callable[[T], R],
    key: Callable[[T], str],
    label: str = "batch",
    max_workers: int = MAX_WORKERS,
) -> BatchResult[R]:
    """Run work(item) for every item concurrently, isolating failures.

    Every item is attempted and awaited before returning. Exceptions are
    logged with the item key and recorded in BatchResult.failed; they do
    not propagate.

    Args:
        items: Units of work
        work: Function applied to each item
        key: Stable identifier for an item (user_id, task_id)
        label: Name used in log lines
        max_workers: Thread pool size

    Returns:
        BatchResult keyed by item key
    """
    result: BatchResult[R] = BatchResult()
    items = list(items)
    if not items:
        return result

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(work, item): key(item) for item in items}

        for future in as_completed(futures):
            item_key = futures[future]
            try:
                result.succeeded[item_key] = future.result()
            except Exception as e:
                result.failed[item_key] = type(e).__name__
                logger.warning(
                    f"{label}: item failed",
                    extra={"item": item_key, "error_type": type(e).__name__},
                )

    return result
