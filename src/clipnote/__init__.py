"""
Clipnote: paste-and-forget personal notes.

A capture tool that provides:
- Local content triage (url, code, mixed, text, image)
- LLM-powered categorization with a keyword fallback
- Client-side search, analytics and reminder notifications
"""

__version__ = "0.1.0"
