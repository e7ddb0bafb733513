"""Study aid service: keyword highlighting, LLM keyword extraction and flashcards."""
