"""chat2me - voice-enabled chat client for hosted LLM chat-completion APIs."""

__version__ = "0.1.0"
