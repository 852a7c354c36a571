"""Supported conversation languages and their provider instructions."""

from typing import Dict, List, Tuple

DEFAULT_LANGUAGE = "en-US"

SUPPORTED_LANGUAGES: Dict[str, Dict[str, str]] = {
    "en-US": {
        "name": "English",
        "instruction": "You are a helpful assistant. Always respond in English.",
    },
    "es-ES": {
        "name": "Spanish",
        "instruction": "Eres un asistente útil. Responde siempre en español.",
    },
    "fr-FR": {
        "name": "French",
        "instruction": "Tu es un assistant utile. Réponds toujours en français.",
    },
    "de-DE": {
        "name": "German",
        "instruction": "Du bist ein hilfreicher Assistent. Antworte immer auf Deutsch.",
    },
    "it-IT": {
        "name": "Italian",
        "instruction": "Sei un assistente utile. Rispondi sempre in italiano.",
    },
    "pt-BR": {
        "name": "Portuguese",
        "instruction": "Você é um assistente útil. Responda sempre em português.",
    },
}


def is_supported_language(code: str) -> bool:
    """Check whether a language code is in the supported set."""
    return code in SUPPORTED_LANGUAGES


def get_language_name(code: str) -> str:
    """Get the display name for a language code."""
    lang = SUPPORTED_LANGUAGES.get(code)
    if lang:
        return lang["name"]
    return code


def get_system_instruction(code: str) -> str:
    """Get the system instruction sent to the provider for a language.

    Raises:
        KeyError: If the language is not supported
    """
    return SUPPORTED_LANGUAGES[code]["instruction"]


def list_languages() -> List[Tuple[str, str]]:
    """List (code, name) pairs in display order."""
    return [(code, info["name"]) for code, info in SUPPORTED_LANGUAGES.items()]
