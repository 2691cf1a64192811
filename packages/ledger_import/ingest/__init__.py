"""Format-specific ingestion for ``ledger_import``.

``adapters`` holds one parser per non-tabular source format; ``utils`` picks
the adapter from the sniffed :class:`~ledger_import.models.SourceFormat`.
"""
