"""
Sourcing Modules.

One package per aggregate, each laid out the same way:

- ``models``     -- frozen DTOs and status enums (the nouns)
- ``workflows``  -- state machine declarations
- ``lifecycle``  -- pure functions that move the aggregate between states
- ``orm``        -- SQLAlchemy persistence model
- ``repository`` -- load/save with time-driven transitions applied
- ``service``    -- transaction-owning facade

Modules:
- RFQ: requests for quotation, supplier invitations, Q&A, amendments,
  standardized evaluations
- Bid: supplier bids, priced items, compliance, per-criterion evaluations
"""

from sourcing_modules import bid, rfq

__all__ = ["bid", "rfq"]
