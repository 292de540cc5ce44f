"""Infra layer utilities (record stores)."""

from .storage import JsonFileStore, RecordStore, parse_store_text

__all__ = ["JsonFileStore", "RecordStore", "parse_store_text"]
