"""Bounded fan-out/fan-in for fixture batches.

run_batch() runs N independent unit operations on a fixed-size thread pool
and hands back exactly N results in input order, whatever order the
workers finish in. A failing unit never cancels its siblings: the batch
always waits for every unit so the caller knows what was created and can
target it for cleanup.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Iterator, Optional, Sequence

from s3verify.errors import FixtureCleanupError, FixtureSetupError
from s3verify.models import FixtureResult

logger = logging.getLogger(__name__)

UnitOperation = Callable[[], Any]


class BatchResult:
    """Ordered results of one fixture batch.

    results[i] always belongs to operation i.
    """

    def __init__(self, results: Sequence[FixtureResult]):
        self.results = list(results)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[FixtureResult]:
        return iter(self.results)

    def __getitem__(self, index: int) -> FixtureResult:
        return self.results[index]

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def values(self) -> list[Any]:
        """Success payloads in input order (None where the unit failed)."""
        return [result.value for result in self.results]

    @property
    def succeeded(self) -> list[FixtureResult]:
        return [result for result in self.results if result.ok]

    @property
    def errors(self) -> list[tuple[int, BaseException]]:
        """(index, error) pairs of failed units, lowest index first."""
        return [(r.index, r.error) for r in self.results if r.error is not None]

    @property
    def first_error(self) -> Optional[BaseException]:
        errors = self.errors
        return errors[0][1] if errors else None

    def raise_for_setup(self) -> None:
        """Raise FixtureSetupError if any unit failed."""
        if not self.ok:
            raise FixtureSetupError(self) from self.first_error

    def cleanup_error(self) -> Optional[FixtureCleanupError]:
        """Return the aggregate cleanup error, or None if every unit succeeded."""
        if self.ok:
            return None
        error = FixtureCleanupError(self)
        error.__cause__ = self.first_error
        return error


def run_unit(index: int, operation: UnitOperation) -> FixtureResult:
    """Run one unit operation, capturing its exception as the result."""
    try:
        return FixtureResult(index=index, value=operation())
    except Exception as e:
        return FixtureResult(index=index, error=e)


def run_batch(
    operations: Sequence[UnitOperation],
    max_workers: int,
    best_effort: bool = False,
) -> BatchResult:
    """Run unit operations concurrently and collect every result.

    Args:
        operations: Zero-argument callables, one per fixture item.
        max_workers: Upper bound on concurrently running operations.
        best_effort: Teardown mode; failures are logged as warnings.

    Returns:
        BatchResult with exactly len(operations) results in input order.

    Raises:
        ValueError: If max_workers is less than 1.
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")

    total = len(operations)
    slots: list[Optional[FixtureResult]] = [None] * total
    if total == 0:
        return BatchResult([])

    with ThreadPoolExecutor(max_workers=min(max_workers, total)) as pool:
        futures = [
            pool.submit(run_unit, index, operation)
            for index, operation in enumerate(operations)
        ]
        for future in as_completed(futures):
            result = future.result()
            # Each index is written by exactly one unit
            slots[result.index] = result
            if result.error is not None:
                log = logger.warning if best_effort else logger.debug
                log("Fixture unit %d/%d failed: %s", result.index + 1, total, result.error)

    missing = [index for index, slot in enumerate(slots) if slot is None]
    if missing:
        raise RuntimeError(f"Fixture batch lost results for indices {missing}")

    return BatchResult(slots)  # type: ignore[arg-type]
