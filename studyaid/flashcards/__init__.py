"""
Flashcard generation: turns extracted keywords into question/answer cards using an LLM.
"""

from .generator import (
	FlashcardGenerator,
	FlashcardDraft,
	generate_flashcards,
	FlashcardGeneratorError,
	FlashcardInputError,
	FlashcardAPIError,
	FlashcardValidationError,
	FlashcardTimeoutError,
)

__all__ = [
	'FlashcardGenerator',
	'FlashcardDraft',
	'generate_flashcards',
	'FlashcardGeneratorError',
	'FlashcardInputError',
	'FlashcardAPIError',
	'FlashcardValidationError',
	'FlashcardTimeoutError',
]
