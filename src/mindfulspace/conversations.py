"""Append-only conversation log persisted as a single collection."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import pydantic

from .errors import StorageError, ValidationError
from .kv import KeyValue
from .models import ChatMessage, Conversation, utcnow, utcnow_iso
from .store import Records, generate_id

logger = logging.getLogger(__name__)

CONVERSATIONS_KEY = "db_conversations"


class ConversationLog:
    """Creates conversations and appends messages to them.

    Messages are never edited or removed once appended; their order is the
    order in which ``add_message`` was called.
    """

    def __init__(self, kv: KeyValue):
        self.records = Records(kv, CONVERSATIONS_KEY)

    async def _read(self) -> List[Dict[str, Any]]:
        return await self.records.read() or []

    @staticmethod
    def _load(doc: Dict[str, Any]) -> Conversation:
        try:
            return Conversation.model_validate(doc)
        except pydantic.ValidationError as exc:
            raise StorageError(f"Stored conversation is invalid: {exc}") from exc

    async def list(self, agent_name: Optional[str] = None) -> List[Conversation]:
        conversations = [self._load(doc) for doc in await self._read()]
        if agent_name is not None:
            conversations = [c for c in conversations if c.agent_name == agent_name]
        return conversations

    async def find(self, conversation_id: str) -> Optional[Conversation]:
        for doc in await self._read():
            if doc.get("id") == conversation_id:
                return self._load(doc)
        return None

    async def get(self, conversation_id: str) -> Conversation:
        """Returns the stored conversation, or an empty one that is not persisted."""
        found = await self.find(conversation_id)
        if found is None:
            return Conversation(id=conversation_id, messages=[])
        return found

    async def create(
        self, metadata: Optional[Any] = None, agent_name: Optional[str] = None
    ) -> Conversation:
        async with self.records.lock:
            docs = await self._read()
            taken = {doc.get("id") for doc in docs}
            new_id = generate_id()
            while new_id in taken:
                new_id = generate_id()
            conversation = Conversation(
                id=new_id,
                agent_name=agent_name,
                metadata=metadata,
                messages=[],
                created_date=utcnow_iso(),
            )
            docs.append(conversation.model_dump(mode="json"))
            await self.records.write(docs)
        logger.info("Created conversation %s", conversation.id)
        return conversation

    async def add_message(
        self, conversation_id: str, message: Union[ChatMessage, Mapping[str, Any]]
    ) -> Optional[ChatMessage]:
        """Appends ``message``; returns None if the conversation does not exist."""
        try:
            if isinstance(message, ChatMessage):
                message = message.model_copy(deep=True)
            else:
                message = ChatMessage.model_validate(dict(message))
        except (pydantic.ValidationError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid message: {exc}") from exc
        if message.timestamp is None:
            message.timestamp = utcnow()

        async with self.records.lock:
            docs = await self._read()
            for doc in docs:
                if doc.get("id") == conversation_id:
                    break
            else:
                return None
            messages = doc.get("messages") or []
            messages.append(message.model_dump(mode="json", exclude_none=True))
            doc["messages"] = messages
            await self.records.write(docs)
        return message
