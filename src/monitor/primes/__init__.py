"""Prime rules -- conditional one-shot market orders."""

from monitor.primes.engine import PrimeEngine
from monitor.primes.models import ClearPolicy, PrimeRule, PrimeType

__all__ = ["ClearPolicy", "PrimeEngine", "PrimeRule", "PrimeType"]
