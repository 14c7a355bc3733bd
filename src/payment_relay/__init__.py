"""Payments relay: signed, retried webhook delivery for transaction events."""
