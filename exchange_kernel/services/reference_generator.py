"""
ReferenceGenerator -- human-readable unique transaction references.

Responsibility:
    Produces ``<prefix><YYYYMMDD><suffix>`` (default ``TX20240101A1B2C3``)
    where the date comes from the injected clock and the suffix is drawn
    from A-Z0-9.

Architecture position:
    Kernel > Services.  Called by TransactionLifecycleController inside the
    create unit of work, after validation.

Invariants enforced:
    - Returned references did not exist in the transaction table as seen by
      the current unit of work.  Uniqueness at commit is backed by the
      ``uq_transaction_reference`` constraint; the lifecycle controller
      translates a violation into ConcurrencyConflictError.
    - Bounded: at most ``max_attempts`` candidates are tried.

Failure modes:
    - ReferenceGenerationExhaustedError (retryable) when every candidate
      collided.
"""

import secrets
import string
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from exchange_kernel.domain.clock import Clock, SystemClock
from exchange_kernel.exceptions import ReferenceGenerationExhaustedError
from exchange_kernel.logging_config import get_logger
from exchange_kernel.models.transaction import ExchangeTransaction
from exchange_kernel.services.base import BaseService

logger = get_logger("services.reference_generator")

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_PREFIX = "TX"
DEFAULT_SUFFIX_LENGTH = 6
DEFAULT_MAX_ATTEMPTS = 10


class RandomSource(Protocol):
    """Anything with ``choice``: random.Random, secrets.SystemRandom."""

    def choice(self, seq): ...


class ReferenceGenerator(BaseService):
    """Bounded-retry generator of unique transaction references."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        rng: RandomSource | None = None,
        prefix: str = DEFAULT_PREFIX,
        suffix_length: int = DEFAULT_SUFFIX_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        super().__init__(session)
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if suffix_length < 1:
            raise ValueError("suffix_length must be at least 1")
        self.clock = clock or SystemClock()
        self.rng = rng or secrets.SystemRandom()
        self.prefix = prefix
        self.suffix_length = suffix_length
        self.max_attempts = max_attempts

    def candidate(self) -> str:
        date_part = self.clock.now().strftime("%Y%m%d")
        suffix = "".join(
            self.rng.choice(REFERENCE_ALPHABET) for _ in range(self.suffix_length)
        )
        return f"{self.prefix}{date_part}{suffix}"

    def exists(self, reference: str) -> bool:
        return (
            self.session.execute(
                select(ExchangeTransaction.id)
                .where(ExchangeTransaction.reference == reference)
                .limit(1)
            ).first()
            is not None
        )

    def generate(self) -> str:
        """
        Return a reference not yet present in the transaction table.

        Raises:
            ReferenceGenerationExhaustedError: After ``max_attempts``
                collisions.
        """
        for attempt in range(1, self.max_attempts + 1):
            reference = self.candidate()
            if not self.exists(reference):
                return reference
            logger.debug(
                "reference_collision",
                extra={"reference": reference, "attempt": attempt},
            )

        logger.error(
            "reference_generation_exhausted",
            extra={"attempts": self.max_attempts, "prefix": self.prefix},
        )
        raise ReferenceGenerationExhaustedError(self.max_attempts, self.prefix)
