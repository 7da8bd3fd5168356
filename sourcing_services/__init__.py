"""
sourcing_services -- Package init and public API.

Responsibility:
    Orchestration that spans more than one aggregate (awarding an RFQ to a
    bid) or that acts on many aggregates at once (the time-transition
    sweep).

Architecture position:
    Services -- stateful orchestration over the modules and kernel.

    Dependency direction:
        sourcing_services/ -> sourcing_modules/  (allowed)
        sourcing_services/ -> sourcing_kernel/   (allowed)
        sourcing_modules/  -> sourcing_services/ (FORBIDDEN)
        sourcing_kernel/   -> sourcing_services/ (FORBIDDEN)
"""

from sourcing_services.award_orchestrator import AwardOrchestrator
from sourcing_services.time_sweep import SweepResult, TimeTransitionSweep

__all__ = [
    "AwardOrchestrator",
    "SweepResult",
    "TimeTransitionSweep",
]
