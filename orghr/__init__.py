"""orghr: multi-tenant HR leave, comp-off and time-entry service."""

__version__ = "1.0.0"
