"""Utility subpackage for study aid modules"""

from .logger import (
	get_logger,
	log_request,
	log_error,
	log_llm_call,
	log_keyword_extraction,
	log_flashcard_generation,
	log_highlight,
	set_request_context,
	get_request_context,
)

__all__ = [
	'get_logger',
	'log_request',
	'log_error',
	'log_llm_call',
	'log_keyword_extraction',
	'log_flashcard_generation',
	'log_highlight',
	'set_request_context',
	'get_request_context',
]
