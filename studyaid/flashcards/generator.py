from __future__ import annotations

import os
import time
import json
from typing import Optional, List, Dict, Any, Sequence

from pydantic import BaseModel, Field, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from openai import OpenAI, APITimeoutError, OpenAIError

from studyaid.highlight import KeywordEntry
from studyaid.semantic.keyword_extractor import estimate_cost
from studyaid.utils import get_logger, log_llm_call, log_flashcard_generation

LOG = get_logger()


class FlashcardGeneratorError(Exception):
    pass


class FlashcardInputError(FlashcardGeneratorError):
    pass


class FlashcardAPIError(FlashcardGeneratorError):
    pass


class FlashcardValidationError(FlashcardGeneratorError):
    pass


class FlashcardTimeoutError(FlashcardGeneratorError):
    pass


class FlashcardDraft(BaseModel):
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)


# Config
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
FLASHCARD_MAX_TOKENS = int(os.getenv('FLASHCARD_MAX_TOKENS', '2000'))
FLASHCARD_TEMPERATURE = float(os.getenv('FLASHCARD_TEMPERATURE', '0.7'))
OPENAI_TIMEOUT = int(os.getenv('OPENAI_TIMEOUT', '60'))
OPENAI_RETRY_ATTEMPTS = int(os.getenv('OPENAI_RETRY_ATTEMPTS', '3'))
OPENAI_RETRY_MULTIPLIER = int(os.getenv('OPENAI_RETRY_MULTIPLIER', '2'))
OPENAI_RETRY_MAX_WAIT = int(os.getenv('OPENAI_RETRY_MAX_WAIT', '10'))
FLASHCARD_MAX_KEYWORDS = int(os.getenv('FLASHCARD_MAX_KEYWORDS', '50'))

SYSTEM_PROMPT = (
    "You are an expert study assistant creating flashcards for effective learning. Based on the provided keywords "
    "and their explanations, create flashcards with a question on the front and the answer on the back.\n\n"
    "Respond with JSON in this exact format:\n"
    '{"flashcards": [{"front": "Question about the concept", "back": "Clear, concise answer"}]}\n\n'
    "Create one flashcard per keyword. Make questions clear and specific. Answers should be comprehensive but "
    'concise. Use various question formats: "What is...", "Explain...", "How does...", "Why is...", etc.'
)


class FlashcardGenerator:
    _instance = None

    def __init__(self):
        key = os.getenv('OPENAI_API_KEY')
        if not key:
            raise FlashcardGeneratorError('OPENAI_API_KEY not set')
        self.model = OPENAI_MODEL
        self.timeout = OPENAI_TIMEOUT
        self.client = OpenAI(api_key=key, timeout=self.timeout, max_retries=0)
        LOG.info('FlashcardGenerator initialized', extra={'model': self.model})

    @classmethod
    def get_instance(cls) -> 'FlashcardGenerator':
        if cls._instance is None:
            cls._instance = FlashcardGenerator()
        return cls._instance

    def _build_user_prompt(self, keywords: Sequence[KeywordEntry]) -> str:
        return '\n\n'.join(f'Keyword: {k.keyword}\nDetail: {k.detail}' for k in keywords)

    @retry(stop=stop_after_attempt(OPENAI_RETRY_ATTEMPTS), wait=wait_exponential(multiplier=OPENAI_RETRY_MULTIPLIER, max=OPENAI_RETRY_MAX_WAIT), retry=retry_if_exception_type((FlashcardAPIError, FlashcardTimeoutError)), reraise=True)
    def _call_openai(self, messages: List[Dict[str, str]], request_id: Optional[str] = None):
        start = time.time()
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={'type': 'json_object'},
                max_tokens=FLASHCARD_MAX_TOKENS,
                temperature=FLASHCARD_TEMPERATURE,
            )
        except APITimeoutError as e:
            LOG.exception('flashcard_timeout', exc_info=True)
            raise FlashcardTimeoutError(str(e))
        except OpenAIError as e:
            LOG.exception('flashcard_api_error', exc_info=True)
            raise FlashcardAPIError(str(e))
        duration_ms = int((time.time() - start) * 1000)
        usage = getattr(resp, 'usage', None)
        prompt_tokens = getattr(usage, 'prompt_tokens', 0) or 0
        completion_tokens = getattr(usage, 'completion_tokens', 0) or 0
        if request_id:
            log_llm_call(request_id, self.model, prompt_tokens, completion_tokens, duration_ms, cost=estimate_cost(prompt_tokens, completion_tokens, self.model))
        return resp

    def _parse_cards(self, text: Optional[str]) -> List[FlashcardDraft]:
        try:
            payload = json.loads(text or '{}')
        except json.JSONDecodeError:
            LOG.exception('flashcard_generation_parse_failed', exc_info=True)
            raise FlashcardValidationError('Could not parse flashcard generation output')
        cards = payload.get('flashcards') if isinstance(payload, dict) else None
        if not isinstance(cards, list):
            raise FlashcardValidationError('"flashcards" must be a list')

        out: List[FlashcardDraft] = []
        for c in cards:
            try:
                out.append(FlashcardDraft.model_validate(c))
            except ValidationError:
                # cards missing a front or back are dropped
                LOG.warning('flashcard_skipped', extra={'item': str(c)[:200]})
        return out

    def generate(self, keywords: Sequence[KeywordEntry], request_id: Optional[str] = None) -> List[FlashcardDraft]:
        if not keywords:
            raise FlashcardInputError('No keywords provided')
        if len(keywords) > FLASHCARD_MAX_KEYWORDS:
            raise FlashcardInputError(f'Too many keywords ({len(keywords)} > {FLASHCARD_MAX_KEYWORDS})')
        start = time.time()
        messages = [
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': self._build_user_prompt(keywords)},
        ]
        resp = self._call_openai(messages, request_id=request_id)
        choices = getattr(resp, 'choices', None) or []
        if not choices:
            raise FlashcardAPIError('No choices returned')
        drafts = self._parse_cards(choices[0].message.content)
        duration_ms = int((time.time() - start) * 1000)
        log_flashcard_generation(request_id or '', len(drafts), len(keywords), duration_ms)
        return drafts


def generate_flashcards(keywords: Sequence[KeywordEntry], request_id: Optional[str] = None) -> List[Dict[str, Any]]:
    gen = FlashcardGenerator.get_instance()
    return [d.model_dump() for d in gen.generate(keywords, request_id=request_id)]
