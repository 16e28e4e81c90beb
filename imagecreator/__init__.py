"""Generate images from text prompts with the Google Gemini image API."""

__version__ = "0.1.0"
