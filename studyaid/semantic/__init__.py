"""
Semantic processing for study material: LLM keyword extraction and the
redis cache of extraction results.
"""
from .keyword_extractor import KeywordExtractor, extract_keywords, KeywordExtractorError, KeywordInputError, KeywordAPIError, KeywordValidationError, KeywordTimeoutError
from .cache_manager import CacheManager

__all__ = [
	'KeywordExtractor', 'extract_keywords',
	'KeywordExtractorError', 'KeywordInputError', 'KeywordAPIError', 'KeywordValidationError', 'KeywordTimeoutError',
	'CacheManager',
]
