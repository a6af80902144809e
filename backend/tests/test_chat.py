"""Unit tests for tutor prompts and the RAG chat service."""

import asyncio

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from studcom.core.exceptions import QuotaExceededError, ResourceNotFoundError, UpstreamAPIError
from studcom.features.chat.prompts import build_chat_prompt, build_system_prompt
from studcom.features.chat.service import ChatService, generate_response
from studcom.features.knowledge.schemas import ChunkInput
from studcom.features.knowledge.service import KnowledgeService


class CapturingLLM:
    def __init__(self, reply="Chloroplasts capture light.", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def ainvoke(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return FakeListChatModel(responses=[self.reply]).invoke(prompt)


class TestPrompts:
    def test_persona_selected_by_chat_type(self):
        assert "doubts about Cells" in build_system_prompt("Cells", "doubt")
        assert "expert educator" in build_system_prompt("Cells", "concept_explainer")

    def test_unknown_chat_type(self):
        with pytest.raises(ValueError):
            build_system_prompt("Cells", "gossip")

    def test_context_block_only_when_present(self):
        with_context = build_chat_prompt("q?", "[Book (book)]\ntext", "Cells", "doubt")
        without = build_chat_prompt("q?", "", "Cells", "doubt")

        assert "Context from study materials:\n[Book (book)]\ntext" in with_context
        assert "No specific study materials" in without


class TestGenerateResponse:
    def test_returns_model_text(self):
        llm = CapturingLLM()
        answer = asyncio.run(generate_response("What?", "", "Cells", "concept_explainer", llm=llm))
        assert answer == "Chloroplasts capture light."
        assert "expert educator" in llm.prompts[0]

    def test_quota_error(self):
        llm = CapturingLLM(error=RuntimeError("429 Too Many Requests"))
        with pytest.raises(QuotaExceededError):
            asyncio.run(generate_response("What?", "", "Cells", "doubt", llm=llm))


class TestChatService:
    def _setup(self, local_storage, fake_embedder):
        subject = local_storage.save_subject("Biology", "#22c55e", "🧬")
        topic = local_storage.save_topic(subject["id"], "Plant Cells")
        resource = local_storage.save_file(topic["id"], "notes", b"x", "n.txt", "text/plain", "Lecture Notes")
        local_storage.save_chunks(resource["id"], topic["id"], subject["id"], [
            ChunkInput(content="photosynthesis in leaves", chunk_index=0, source_type="notes",
                       source_title="Lecture Notes", embedding=[1.0, 0.0, 0.0]),
            ChunkInput(content="mitochondria respiration", chunk_index=1, source_type="notes",
                       source_title="Lecture Notes", embedding=[0.0, 1.0, 0.0]),
        ])
        return topic

    def test_ask_persists_both_messages(self, local_storage, fake_embedder):
        topic = self._setup(local_storage, fake_embedder)
        llm = CapturingLLM()
        service = ChatService(local_storage, KnowledgeService(local_storage, embedder=fake_embedder), llm=llm)

        result = asyncio.run(service.ask("user-1", topic["id"], "How does photosynthesis work?", "doubt"))

        assert result.response == "Chloroplasts capture light."
        assert [s.content for s in result.sources] == ["photosynthesis in leaves"]
        assert "[Lecture Notes (notes)]\nphotosynthesis in leaves" in llm.prompts[0]
        assert "Plant Cells" in llm.prompts[0]

        history = local_storage.get_chat_history(topic["id"], "doubt")
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[0]["response"] is None
        assert history[1]["response"] == "Chloroplasts capture light."
        assert local_storage.get_chat_history(topic["id"], "concept_explainer") == []

    def test_clear_history(self, local_storage, fake_embedder):
        topic = self._setup(local_storage, fake_embedder)
        service = ChatService(local_storage, KnowledgeService(local_storage, embedder=fake_embedder), llm=CapturingLLM())
        asyncio.run(service.ask("user-1", topic["id"], "photosynthesis?", "doubt"))

        local_storage.clear_chat_history(topic["id"], "doubt", "user-1")
        assert local_storage.get_chat_history(topic["id"], "doubt") == []

    def test_unknown_topic(self, local_storage, fake_embedder):
        service = ChatService(local_storage, KnowledgeService(local_storage, embedder=fake_embedder), llm=CapturingLLM())
        with pytest.raises(ResourceNotFoundError):
            asyncio.run(service.ask("user-1", "no-such-topic", "hi", "doubt"))

    def test_failed_answer_leaves_no_history(self, local_storage, fake_embedder):
        topic = self._setup(local_storage, fake_embedder)
        llm = CapturingLLM(error=RuntimeError("500 Internal error"))
        service = ChatService(local_storage, KnowledgeService(local_storage, embedder=fake_embedder), llm=llm)

        with pytest.raises(UpstreamAPIError):
            asyncio.run(service.ask("user-1", topic["id"], "photosynthesis?", "doubt"))

        assert local_storage.get_chat_history(topic["id"], "doubt") == []
