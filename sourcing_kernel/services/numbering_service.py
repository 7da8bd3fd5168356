"""
DocumentNumberService -- year-scoped document numbers for RFQs and Bids.

Responsibility:
    Implements the numbering collaborator contract ``next_number(prefix)``:
    find the highest existing number under a year-scoped prefix and
    increment it (``RFQ-2024-0041`` -> ``RFQ-2024-0042``).

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the RFQ
    and Bid services when a draft is created.

Invariants enforced:
    - Numbers are unique per column.  The scan is not a lock: two concurrent
      creators may compute the same number.  The unique constraint on the
      number column is the final arbiter and surfaces as
      ``DuplicateDocumentNumberError`` from the repositories; callers retry.
    - Ordering is numeric, not lexicographic: longer numbers sort first, so
      ``RFQ-2024-10000`` follows ``RFQ-2024-9999``.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from sourcing_kernel.domain.numbering import DEFAULT_WIDTH, next_number
from sourcing_kernel.logging_config import get_logger

logger = get_logger("services.numbering")


class DocumentNumberService:
    """
    Scans a number column for the highest sequence under a prefix.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        number_column: InstrumentedAttribute,
        width: int = DEFAULT_WIDTH,
    ):
        self._session = session
        self._column = number_column
        self._width = width

    def last_number(self, prefix: str) -> str | None:
        """Highest existing number under ``prefix``, or None."""
        return self._session.execute(
            select(self._column)
            .where(self._column.like(f"{prefix}%"))
            .order_by(func.length(self._column).desc(), self._column.desc())
            .limit(1)
        ).scalar_one_or_none()

    def next_number(self, prefix: str) -> str:
        """Next document number under ``prefix``."""
        last = self.last_number(prefix)
        number = next_number(prefix, last, self._width)
        logger.debug(
            "document_number_allocated",
            extra={"prefix": prefix, "last_number": last, "number": number},
        )
        return number
