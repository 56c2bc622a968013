"""Shared configuration for the inquiry engine."""

from .config import InquiryConfig, load_config

__all__ = ["InquiryConfig", "load_config"]
