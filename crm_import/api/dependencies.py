"""
Shared dependencies and state for the import API.

Parsed uploads are cached by content hash for a short time so the mapping,
validation and import requests of one wizard session can refer to the file
by ``file_id`` instead of re-posting every row.
"""
import logging
import threading
import time
from typing import Any, Dict, Optional

from fastapi import Header

from crm_import.core.config import settings
from crm_import.db.session import get_engine
from crm_import.domain.imports.parsers import ParsedFile
from crm_import.domain.imports.store import RecordStore, SqlRecordStore

logger = logging.getLogger(__name__)

# Key: file_id (sha256 of the upload), Value: dict with 'parsed' and 'timestamp'
parsed_files_cache: Dict[str, Dict[str, Any]] = {}
_cache_lock = threading.Lock()


def _evict_expired(now: float) -> None:
    expired = [
        key for key, entry in parsed_files_cache.items()
        if now - entry.get("timestamp", 0) > settings.parse_cache_ttl_seconds
    ]
    for key in expired:
        del parsed_files_cache[key]
    if expired:
        logger.debug("Evicted %d expired parsed files", len(expired))


def cache_parsed_file(file_id: str, parsed: ParsedFile) -> None:
    now = time.time()
    with _cache_lock:
        _evict_expired(now)
        parsed_files_cache[file_id] = {"parsed": parsed, "timestamp": now}


def get_cached_parsed_file(file_id: str) -> Optional[ParsedFile]:
    now = time.time()
    with _cache_lock:
        _evict_expired(now)
        entry = parsed_files_cache.get(file_id)
        if entry is None:
            return None
        entry["timestamp"] = now
        return entry["parsed"]


def discard_parsed_file(file_id: str) -> bool:
    with _cache_lock:
        return parsed_files_cache.pop(file_id, None) is not None


def get_record_store(
    x_tenant_id: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> RecordStore:
    """Tenant-scoped store; tenant resolution itself happens upstream of this service."""
    return SqlRecordStore(
        get_engine(),
        tenant_id=x_tenant_id or settings.default_tenant_id,
        user_id=x_user_id or settings.default_user_id,
    )
