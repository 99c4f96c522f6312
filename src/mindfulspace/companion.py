"""The AI wellness companion: a system prompt around ``LLM.complete``."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from .conversations import ConversationLog
from .errors import ValidationError
from .llm import LLM
from .models import ASSISTANT_ROLE, SYSTEM_ROLE, USER_ROLE

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Eres un Acompañante de Bienestar Emocional.

REGLAS:
- No diagnosticas ni das tratamientos médicos.
- Usas lenguaje empático y claro.
- No reemplazas profesionales.
- Sugieres ayuda profesional si es necesario.

Idioma: {language}
"""

CHAT_ROLES = (USER_ROLE, ASSISTANT_ROLE)


def _clean_history(history: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    cleaned = []
    for item in history or ():
        role = item.get("role") if isinstance(item, dict) else None
        content = item.get("content") if isinstance(item, dict) else None
        if role in CHAT_ROLES and isinstance(content, str):
            cleaned.append({"role": role, "content": content})
    return cleaned


class Companion:
    def __init__(
        self,
        llm: LLM,
        conversations: Optional[ConversationLog] = None,
        temperature: float = 0.7,
        max_tokens: int = 300,
    ):
        self.llm = llm
        self.conversations = conversations
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete_raw(
        self,
        messages: Sequence[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Forwards ``messages`` unchanged to the provider."""
        kwargs = {"temperature": self.temperature if temperature is None else temperature}
        return await asyncio.to_thread(self.llm.complete, list(messages), model, **kwargs)

    async def reply(
        self,
        message: str,
        history: Sequence[Dict[str, Any]] = (),
        language: str = "es",
        conversation_id: Optional[str] = None,
    ) -> str:
        """Answers ``message`` in the companion persona.

        When ``conversation_id`` names a stored conversation, both the user
        message and the reply are appended to it after the provider answers.
        """
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("message must be a non-empty string")
        messages = [
            {"role": SYSTEM_ROLE, "content": SYSTEM_PROMPT.format(language=language)},
            *_clean_history(history),
            {"role": USER_ROLE, "content": message.strip()},
        ]
        reply = await asyncio.to_thread(
            self.llm.complete,
            messages,
            None,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if conversation_id and self.conversations is not None:
            stored = await self.conversations.add_message(
                conversation_id, {"role": USER_ROLE, "content": message.strip()}
            )
            if stored is None:
                logger.info("Conversation %s not found; reply not logged", conversation_id)
            else:
                await self.conversations.add_message(
                    conversation_id, {"role": ASSISTANT_ROLE, "content": reply}
                )
        return reply
