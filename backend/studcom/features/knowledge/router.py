"""
Knowledge feature: semantic search over a topic's study materials.
"""

from fastapi import APIRouter, Depends

from studcom.core.dependencies import get_storage
from studcom.features.knowledge.schemas import SearchRequest
from studcom.features.knowledge.service import KnowledgeService
from studcom.storage.base import StorageBackend

router = APIRouter()


@router.post("/search")
async def search_materials(
    data: SearchRequest,
    storage: StorageBackend = Depends(get_storage),
):
    """Vector search across the chunks of one topic."""
    service = KnowledgeService(storage)
    matches = await service.search(data.topic_id, data.query, data.limit, data.threshold)
    return {"data": [m.model_dump() for m in matches]}
