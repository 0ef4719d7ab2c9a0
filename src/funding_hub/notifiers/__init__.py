"""Digest delivery implementations."""

from .base import DeliveryError, DigestNotifier
from .buttondown import ButtondownNotifier, should_send_digest

__all__ = ["ButtondownNotifier", "DeliveryError", "DigestNotifier", "should_send_digest"]
