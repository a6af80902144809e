"""
Chat feature: API routes for the AI tutor (doubt solving / concept explainer).
"""

from fastapi import APIRouter, Depends

from studcom.core.dependencies import get_storage, get_user_id
from studcom.features.chat.schemas import ChatRequest, ChatResponse, ChatType
from studcom.features.chat.service import ChatService
from studcom.storage.base import StorageBackend

router = APIRouter()


@router.post("", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    user_id: str = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    """Answer a question grounded in the topic's uploaded materials."""
    service = ChatService(storage)
    return await service.ask(
        user_id=user_id,
        topic_id=data.topic_id,
        message=data.message,
        chat_type=data.chat_type,
        topic_name=data.topic_name,
    )


@router.get("/{topic_id}/history")
async def get_history(
    topic_id: str,
    chat_type: ChatType = "doubt",
    storage: StorageBackend = Depends(get_storage),
):
    """Chat messages of one topic and persona, oldest first."""
    return {"data": storage.get_chat_history(topic_id, chat_type)}


@router.delete("/{topic_id}/history")
async def clear_history(
    topic_id: str,
    chat_type: ChatType = "doubt",
    user_id: str = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    storage.clear_chat_history(topic_id, chat_type, user_id)
    return {"message": "Chat history cleared"}
