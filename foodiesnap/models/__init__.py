"""Convenience exports for ORM models."""
from .kv_record import KeyValueRecord

__all__ = ["KeyValueRecord"]
