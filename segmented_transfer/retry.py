from __future__ import annotations

import logging
from typing import Callable
from typing import Optional
from typing import TypeVar


T = TypeVar("T")


def error_is(*kinds: type[BaseException]) -> Callable[[BaseException], bool]:
    """Build a recoverability predicate matching any of the given exception types."""

    def predicate(error: BaseException) -> bool:
        return isinstance(error, kinds)

    return predicate


class CreateOnDemandRetryPolicy:
    """Repair a missing (or non-empty) container and retry an operation once.

    ``is_recoverable`` decides whether a failure can be repaired; ``repair``
    performs the side effect (create the directory or bucket, empty the
    container). The operation runs at most twice. Errors that are not
    recoverable, a failing repair, and a second failure all propagate as-is.
    """

    def __init__(
        self,
        is_recoverable: Callable[[BaseException], bool],
        repair: Callable[[], None],
        *,
        name: str = "",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.is_recoverable = is_recoverable
        self.repair = repair
        self.name = name or getattr(repair, "__name__", "repair")
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def attempt(self, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except Exception as e:
            if not self.is_recoverable(e):
                raise
            self.logger.info(f"{self.name}: recovering from {type(e).__name__}: {e}")

        self.repair()
        return operation()
