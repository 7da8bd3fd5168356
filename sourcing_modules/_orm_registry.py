"""
Module ORM Registry (``sourcing_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``sourcing_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import the kernel audit table and every ``sourcing_modules.*.orm`` module.

    RFQs are registered before bids: ``sourcing_bids.rfq_id`` references
    ``sourcing_rfqs.id``.  Idempotent.
    """
    import sourcing_kernel.services.audit_service  # noqa: F401
    import sourcing_modules.rfq.orm  # noqa: F401
    import sourcing_modules.bid.orm  # noqa: F401
