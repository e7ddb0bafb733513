"""Redis cache of keyword extraction results.

Entries are keyed by model and a hash of the stripped study text, so a model
switch never serves keywords extracted by another model. Each value is a JSON
envelope ``{"model", "cached_at", "keywords"}``; an entry that no longer
decodes into keyword entries is dropped and reported as a miss.
"""
import os
import json
import time
import hashlib
from typing import Optional, List, Dict, Any

from pydantic import ValidationError

from studyaid.highlight import KeywordEntry
from studyaid.utils import get_logger
from .keyword_extractor import OPENAI_MODEL

LOG = get_logger()

KEY_PREFIX = 'keywords'


class CacheManager:
    _instance = None

    def __init__(self):
        import redis
        host = os.getenv('REDIS_HOST', 'localhost')
        port = int(os.getenv('REDIS_PORT', '6379'))
        password = os.getenv('REDIS_PASSWORD') or None
        self.enabled = os.getenv('REDIS_CACHE_ENABLED', 'true').lower() in ('1', 'true', 'yes')
        self.ttl = int(os.getenv('REDIS_CACHE_TTL', '3600'))
        self._client = None
        if not self.enabled:
            LOG.info('keyword_cache_disabled')
            return
        try:
            self._client = redis.Redis(host=host, port=port, password=password, decode_responses=True)
            self._client.ping()
            LOG.info('keyword_cache_connected', extra={'host': host, 'port': port})
        except Exception as e:
            LOG.warning('keyword_cache_unavailable', extra={'error': str(e)})
            self.enabled = False

    @classmethod
    def get_instance(cls) -> 'CacheManager':
        if cls._instance is None:
            cls._instance = CacheManager()
        return cls._instance

    @property
    def active(self) -> bool:
        return self.enabled and self._client is not None

    def _key(self, content: str, model: Optional[str] = None) -> str:
        digest = hashlib.sha256(content.strip().encode('utf-8')).hexdigest()[:16]
        return f'{KEY_PREFIX}:{model or OPENAI_MODEL}:{digest}'

    def _decode(self, raw: str) -> Optional[List[Dict[str, Any]]]:
        try:
            envelope = json.loads(raw)
            entries = [KeywordEntry.model_validate(k) for k in envelope['keywords']]
        except (ValueError, KeyError, TypeError, ValidationError):
            return None
        return [e.model_dump() for e in entries]

    def get_keywords(self, content: str, model: Optional[str] = None) -> Optional[List[Dict[str, Any]]]:
        if not self.active:
            return None
        key = self._key(content, model)
        try:
            raw = self._client.get(key)
            if raw is None:
                LOG.info('keyword_cache_miss', extra={'key': key})
                return None
            keywords = self._decode(raw)
            if keywords is None:
                LOG.warning('keyword_cache_entry_invalid', extra={'key': key})
                self._client.delete(key)
                return None
            LOG.info('keyword_cache_hit', extra={'key': key, 'keyword_count': len(keywords)})
            return keywords
        except Exception as e:
            LOG.warning('keyword_cache_get_failed', extra={'error': str(e)})
            return None

    def set_keywords(self, content: str, keywords: List[Dict[str, Any]], ttl: Optional[int] = None, model: Optional[str] = None):
        if not self.active:
            return
        key = self._key(content, model)
        ttl = ttl or self.ttl
        envelope = {'model': model or OPENAI_MODEL, 'cached_at': int(time.time()), 'keywords': list(keywords)}
        try:
            self._client.setex(key, ttl, json.dumps(envelope))
            LOG.info('keyword_cache_set', extra={'key': key, 'ttl': ttl, 'keyword_count': len(envelope['keywords'])})
        except Exception as e:
            LOG.warning('keyword_cache_set_failed', extra={'error': str(e)})

    def invalidate_keywords(self, content: str, model: Optional[str] = None):
        if not self.active:
            return
        key = self._key(content, model)
        try:
            self._client.delete(key)
            LOG.info('keyword_cache_invalidated', extra={'key': key})
        except Exception as e:
            LOG.warning('keyword_cache_invalidate_failed', extra={'error': str(e)})

    def health_check(self) -> str:
        if not self.active:
            return 'disabled'
        try:
            self._client.ping()
            return 'ok'
        except Exception as e:
            return f'error: {str(e)}'
