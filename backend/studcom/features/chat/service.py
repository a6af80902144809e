"""
Chat feature: RAG answer generation for the doubt / concept-explainer tutors.
"""

import logging

from langchain_core.language_models import BaseChatModel

from studcom.core.exceptions import ResourceNotFoundError
from studcom.core.llm_provider import create_llm, message_text, wrap_llm_error
from studcom.features.chat.prompts import build_chat_prompt
from studcom.features.chat.schemas import ChatResponse
from studcom.features.knowledge.service import KnowledgeService, build_context
from studcom.storage.base import StorageBackend

logger = logging.getLogger(__name__)


async def generate_response(
    query: str,
    context: str,
    topic_name: str,
    chat_type: str,
    llm: BaseChatModel | None = None,
) -> str:
    """Ask the chat model, with the persona picked by chat_type.

    Raises:
        UpstreamAPIError: If the model call fails (QuotaExceededError on 429).
    """
    prompt = build_chat_prompt(query, context, topic_name, chat_type)
    model = llm or create_llm()
    try:
        result = await model.ainvoke(prompt)
    except Exception as e:
        raise wrap_llm_error(e) from e

    text = message_text(result.content).strip()
    if not text:
        raise wrap_llm_error(ValueError("No response from Gemini"))
    return text


class ChatService:
    """Retrieve → generate → persist, for one user and one topic."""

    def __init__(
        self,
        storage: StorageBackend,
        knowledge: KnowledgeService | None = None,
        llm: BaseChatModel | None = None,
    ):
        self.storage = storage
        self.knowledge = knowledge or KnowledgeService(storage)
        self.llm = llm

    async def ask(
        self,
        user_id: str,
        topic_id: str,
        message: str,
        chat_type: str,
        topic_name: str | None = None,
    ) -> ChatResponse:
        if topic_name is None:
            topic = self.storage.get_topic(topic_id)
            if topic is None:
                raise ResourceNotFoundError("topic", topic_id)
            topic_name = topic["name"]

        matches = await self.knowledge.search(topic_id, message)
        logger.info(f"🔎 {len(matches)} chunks matched for topic {topic_id} ({chat_type})")

        answer = await generate_response(
            message, build_context(matches), topic_name, chat_type, llm=self.llm
        )

        # Both turns are written only once an answer exists
        self.storage.save_chat_message(
            user_id=user_id,
            topic_id=topic_id,
            message=message,
            response=None,
            role="user",
            chat_type=chat_type,
        )
        self.storage.save_chat_message(
            user_id=user_id,
            topic_id=topic_id,
            message=message,
            response=answer,
            role="assistant",
            chat_type=chat_type,
        )
        return ChatResponse(response=answer, sources=matches)
