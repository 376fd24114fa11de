"""
ERP Kernel - document workflow core

Shared foundation for the document approval workflow:
- Closed workflow enumerations and the immutable permission table
- Injectable clock
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy persistence for workflow documents and their audit trail
"""

__version__ = "0.1.0"
