"""
Bid persistence (``sourcing_modules.bid.repository``).

Loads and saves the Bid aggregate through ``BidModel``.  Validity expiry is
applied on every load and save.
"""

from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from sourcing_kernel.db.repository import BaseRepository
from sourcing_kernel.exceptions import (
    BidNotFoundError,
    DuplicateBidError,
    DuplicateDocumentNumberError,
)
from sourcing_kernel.logging_config import get_logger
from sourcing_modules.bid.lifecycle import recompute_derived, validate_bid
from sourcing_modules.bid.models import Bid, BidStatus
from sourcing_modules.bid.orm import BidModel

logger = get_logger("modules.bid.repository")


class BidRepository(BaseRepository[BidModel]):
    """Bid aggregate store."""

    entity_type = "bid"

    def _to_current(self, model: BidModel) -> Bid:
        return recompute_derived(model.to_dto(), self.clock.now(), touch=False)

    def get(self, bid_id: UUID) -> Bid:
        model = self.session.get(BidModel, bid_id)
        if model is None:
            raise BidNotFoundError(str(bid_id))
        return self._to_current(model)

    def find(self, bid_id: UUID) -> Bid | None:
        model = self.session.get(BidModel, bid_id)
        return self._to_current(model) if model is not None else None

    def get_stored(self, bid_id: UUID) -> Bid:
        """Bid exactly as persisted, without expiry applied."""
        model = self.session.get(BidModel, bid_id)
        if model is None:
            raise BidNotFoundError(str(bid_id))
        return model.to_dto()

    def find_for_supplier(self, rfq_id: UUID, supplier_id: UUID) -> Bid | None:
        model = self.session.execute(
            select(BidModel).where(
                BidModel.rfq_id == rfq_id, BidModel.supplier_id == supplier_id
            )
        ).scalar_one_or_none()
        return self._to_current(model) if model is not None else None

    def save(self, bid: Bid, actor_id: UUID | None = None) -> Bid:
        """
        Validate and persist ``bid``; returns the stored state.

        Raises:
            ValidationError: save-time validation failed (nothing written).
            DuplicateBidError: the supplier already has a bid on this RFQ.
            DuplicateDocumentNumberError: ``bid_number`` already taken.
            ConcurrencyConflictError: ``bid.version`` is stale.
        """
        bid = recompute_derived(bid, self.clock.now())
        validate_bid(bid)

        model = self.session.get(BidModel, bid.id)
        if model is None:
            if self.find_for_supplier(bid.rfq_id, bid.supplier_id) is not None:
                raise DuplicateBidError(str(bid.rfq_id), str(bid.supplier_id))
            model = BidModel.from_dto(bid)
            try:
                with self.session.begin_nested():
                    self.session.add(model)
                    self.session.flush()
            except IntegrityError as exc:
                # Lost a race: find out which constraint fired.
                if self.find_for_supplier(bid.rfq_id, bid.supplier_id) is not None:
                    raise DuplicateBidError(str(bid.rfq_id), str(bid.supplier_id)) from exc
                logger.warning(
                    "bid_number_conflict",
                    extra={"bid_id": str(bid.id), "bid_number": bid.bid_number},
                )
                raise DuplicateDocumentNumberError("bid", bid.bid_number) from exc
        else:
            self._check_version(bid.id, model.version, bid.version)
            model.apply_dto(bid, updated_by_id=actor_id)
            self._flush(bid.id)

        logger.debug(
            "bid_saved",
            extra={"bid_id": str(bid.id), "status": bid.status.value, "version": model.version},
        )
        return model.to_dto()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_by_rfq(self, rfq_id: UUID) -> list[Bid]:
        """Bids on an RFQ, best overall score first, then cheapest."""
        models = self.session.execute(
            select(BidModel)
            .where(BidModel.rfq_id == rfq_id)
            .order_by(
                BidModel.overall_score.desc().nulls_last(),
                BidModel.total_amount.asc(),
                BidModel.bid_number,
            )
        ).scalars()
        return [self._to_current(m) for m in models]

    def list_by_supplier(self, supplier_id: UUID) -> list[Bid]:
        """A supplier's bids, most recently submitted first."""
        models = self.session.execute(
            select(BidModel)
            .where(BidModel.supplier_id == supplier_id)
            .order_by(BidModel.submitted_at.desc().nulls_last(), BidModel.bid_number.desc())
        ).scalars()
        return [self._to_current(m) for m in models]

    def list_awarded(self) -> list[Bid]:
        models = self.session.execute(
            select(BidModel)
            .where(BidModel.status == BidStatus.AWARDED.value)
            .order_by(BidModel.awarded_at.desc())
        ).scalars()
        return [self._to_current(m) for m in models]

    def list_expiring(self, days: int = 7) -> list[Bid]:
        """Submitted bids whose validity ends within ``days`` (not yet lapsed)."""
        now = self.clock.now()
        threshold = now + timedelta(days=days)
        models = self.session.execute(
            select(BidModel)
            .where(
                BidModel.status == BidStatus.SUBMITTED.value,
                BidModel.validity_expiry > now,
                BidModel.validity_expiry <= threshold,
            )
            .order_by(BidModel.validity_expiry)
        ).scalars()
        return [self._to_current(m) for m in models]

    def count_by_rfq(self, rfq_id: UUID) -> int:
        return self.session.execute(
            select(func.count()).select_from(BidModel).where(BidModel.rfq_id == rfq_id)
        ).scalar_one()

    def ids_with_pending_expiry(self) -> list[UUID]:
        """Submitted bids whose validity expiry has passed."""
        now = self.clock.now()
        return list(
            self.session.execute(
                select(BidModel.id).where(
                    BidModel.status == BidStatus.SUBMITTED.value,
                    BidModel.validity_expiry < now,
                )
            ).scalars()
        )
