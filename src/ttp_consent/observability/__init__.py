"""Logging for consent resolution"""
from ttp_consent.observability.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
