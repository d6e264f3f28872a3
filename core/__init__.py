"""Core module - settings and observability shared by every layer.

Nothing here knows about orders or stages; the domain lives in models/,
stages/, reconciliation/ and reports/.
"""

__version__ = "1.0.0"
