"""Core primitives shared across the editor host."""

from .subscriptions import Subscription

__all__ = ["Subscription"]
