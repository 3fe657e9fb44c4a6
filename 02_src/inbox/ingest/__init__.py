"""Inbound ingestion module."""

from .ingestor import IInboundIngestor, InboundIngestor

__all__ = ["IInboundIngestor", "InboundIngestor"]
