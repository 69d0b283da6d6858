"""Drug shortage sync: BDPM registry ingestion, status reconciliation, alert fan-out."""

__version__ = "0.1.0"
