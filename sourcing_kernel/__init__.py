"""
Sourcing Kernel

Shared foundation for the RFQ sourcing evaluation and award engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Injectable clock and workflow value objects
- SQLAlchemy base classes and engine management
- Collaborator contracts (numbering, audit, notification, aggregate locks)
"""

__version__ = "0.1.0"
