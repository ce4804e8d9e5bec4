"""containerflow - WordPress hosting stack reconciliation core."""

__version__ = "0.4.0"
