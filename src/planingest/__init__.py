"""Ingestion pipeline for government-plan PDF documents."""

__version__ = "0.3.0"
