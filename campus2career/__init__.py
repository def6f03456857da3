"""Campus2Career notification dispatch and application reconciliation service."""

__version__ = "0.1.0"
