"""LLM-based keyword extraction for study material.

Provides:
- KeywordExtractor singleton wrapping OpenAI chat completions (JSON mode) with retries
- extract_keywords convenience function

Custom exceptions: KeywordExtractorError, KeywordInputError, KeywordAPIError, KeywordValidationError, KeywordTimeoutError
"""
from __future__ import annotations

import os
import time
import json
from typing import List, Optional, Dict, Any

from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from openai import OpenAI, APITimeoutError, OpenAIError

from studyaid.highlight import KeywordEntry
from studyaid.utils import get_logger, log_llm_call

LOG = get_logger()


class KeywordExtractorError(Exception):
    pass

class KeywordInputError(KeywordExtractorError):
    pass

class KeywordAPIError(KeywordExtractorError):
    pass

class KeywordValidationError(KeywordExtractorError):
    pass

class KeywordTimeoutError(KeywordExtractorError):
    pass


OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_MAX_TOKENS = int(os.getenv('OPENAI_MAX_TOKENS', '2000'))
OPENAI_TEMPERATURE = float(os.getenv('OPENAI_TEMPERATURE', '0.7'))
OPENAI_TIMEOUT = int(os.getenv('OPENAI_TIMEOUT', '60'))
OPENAI_RETRY_ATTEMPTS = int(os.getenv('OPENAI_RETRY_ATTEMPTS', '3'))
OPENAI_RETRY_MULTIPLIER = int(os.getenv('OPENAI_RETRY_MULTIPLIER', '2'))
OPENAI_RETRY_MAX_WAIT = int(os.getenv('OPENAI_RETRY_MAX_WAIT', '10'))
KEYWORD_MAX_TEXT_LENGTH = int(os.getenv('KEYWORD_MAX_TEXT_LENGTH', '50000'))
LLM_ENABLE_COST_TRACKING = os.getenv('LLM_ENABLE_COST_TRACKING', 'true').lower() in ('1', 'true', 'yes')

SYSTEM_PROMPT = (
    "You are an expert study assistant. Analyze the provided study material and extract the most important "
    "keywords and concepts. For each keyword, provide a clear, detailed explanation that would help a student "
    "understand and remember the concept.\n\n"
    "Respond with JSON in this exact format:\n"
    '{"keywords": [{"keyword": "Term or concept name", "detail": "Clear, detailed explanation of this concept"}]}\n\n'
    "Extract 5-10 of the most important concepts. Use each keyword exactly as it is written in the material. "
    "Focus on key terms, definitions, processes, and important facts. "
    "Make explanations concise but comprehensive."
)


def estimate_cost(prompt_tokens: int, completion_tokens: int, model: str) -> float:
    # USD per 1000 tokens, approximate
    if 'mini' in model:
        return (prompt_tokens / 1000.0) * 0.00015 + (completion_tokens / 1000.0) * 0.0006
    if 'gpt-4' in model:
        return (prompt_tokens / 1000.0) * 0.0025 + (completion_tokens / 1000.0) * 0.01
    return (prompt_tokens / 1000.0) * 0.0005 + (completion_tokens / 1000.0) * 0.0015


class KeywordExtractor:
    _instance = None

    def __init__(self):
        key = os.getenv('OPENAI_API_KEY')
        if not key:
            raise KeywordExtractorError('OPENAI_API_KEY not set')
        self.model = OPENAI_MODEL
        self.timeout = OPENAI_TIMEOUT
        self.client = OpenAI(api_key=key, timeout=self.timeout, max_retries=0)
        LOG.info('KeywordExtractor initialized', extra={'model': self.model})

    @classmethod
    def get_instance(cls) -> 'KeywordExtractor':
        if cls._instance is None:
            cls._instance = KeywordExtractor()
        return cls._instance

    @retry(stop=stop_after_attempt(OPENAI_RETRY_ATTEMPTS), wait=wait_exponential(multiplier=OPENAI_RETRY_MULTIPLIER, max=OPENAI_RETRY_MAX_WAIT), retry=retry_if_exception_type((KeywordAPIError, KeywordTimeoutError)), reraise=True)
    def _call_openai(self, messages: List[Dict[str, str]], request_id: Optional[str] = None):
        start = time.time()
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={'type': 'json_object'},
                max_tokens=OPENAI_MAX_TOKENS,
                temperature=OPENAI_TEMPERATURE,
            )
        except APITimeoutError as e:
            LOG.exception('openai_timeout', exc_info=True)
            raise KeywordTimeoutError(str(e))
        except OpenAIError as e:
            LOG.exception('openai_api_error', exc_info=True)
            raise KeywordAPIError(str(e))
        duration_ms = int((time.time() - start) * 1000)
        usage = getattr(resp, 'usage', None)
        prompt_tokens = getattr(usage, 'prompt_tokens', 0) or 0
        completion_tokens = getattr(usage, 'completion_tokens', 0) or 0
        if request_id:
            cost = estimate_cost(prompt_tokens, completion_tokens, self.model) if LLM_ENABLE_COST_TRACKING else None
            log_llm_call(request_id, self.model, prompt_tokens, completion_tokens, duration_ms, cost=cost)
        return resp

    def _parse_keywords(self, content: Optional[str]) -> List[KeywordEntry]:
        try:
            payload = json.loads(content or '{}')
        except json.JSONDecodeError:
            raise KeywordValidationError('Response is not valid JSON')
        if not isinstance(payload, dict):
            raise KeywordValidationError('Response JSON must be an object')
        raw = payload.get('keywords') or []
        if not isinstance(raw, list):
            raise KeywordValidationError('"keywords" must be a list')

        out: List[KeywordEntry] = []
        for item in raw:
            try:
                out.append(KeywordEntry.model_validate(item))
            except ValidationError:
                LOG.warning('keyword_entry_skipped', extra={'item': str(item)[:200]})
        return out

    def extract(self, content: str, request_id: Optional[str] = None) -> List[KeywordEntry]:
        if not content or not content.strip():
            raise KeywordInputError('Empty text')
        if len(content) > KEYWORD_MAX_TEXT_LENGTH:
            raise KeywordInputError(f'Text too long ({len(content)} > {KEYWORD_MAX_TEXT_LENGTH})')
        messages = [
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': content},
        ]
        resp = self._call_openai(messages, request_id=request_id)
        choices = getattr(resp, 'choices', None) or []
        if not choices:
            raise KeywordAPIError('No choices returned')
        return self._parse_keywords(choices[0].message.content)


def extract_keywords(content: str, request_id: Optional[str] = None) -> List[Dict[str, Any]]:
    extractor = KeywordExtractor.get_instance()
    return [k.model_dump() for k in extractor.extract(content, request_id=request_id)]
