"""
Data ingestion layer.

Loaders read delimited files or bundled datasets and validate them
against Pandera schemas.
"""
