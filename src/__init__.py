"""Inquiry lifecycle engine."""
