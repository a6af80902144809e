"""
Chat feature: system prompts for the two tutor personas.
"""

DOUBT_PROMPT_TEMPLATE = """You are an AI tutor helping students with their doubts about {topic_name}.
Use the provided context from study materials to answer questions accurately.
Be conversational, encouraging, and break down complex ideas into simpler terms.
If you cannot answer from the context provided, acknowledge this and suggest what the student should review."""

CONCEPT_EXPLAINER_PROMPT_TEMPLATE = """You are an expert educator helping students understand concepts in {topic_name}.
Use the provided context from study materials to give comprehensive, accurate explanations.
Format your response clearly with sections like Overview, Key Points, Examples, etc.
If the context doesn't contain relevant information, say so and provide general guidance."""

SYSTEM_PROMPTS = {
    "doubt": DOUBT_PROMPT_TEMPLATE,
    "concept_explainer": CONCEPT_EXPLAINER_PROMPT_TEMPLATE,
}


def build_system_prompt(topic_name: str, chat_type: str) -> str:
    """Persona prompt for chat_type (doubt | concept_explainer)."""
    try:
        template = SYSTEM_PROMPTS[chat_type]
    except KeyError:
        raise ValueError(
            f"Unknown chat type: '{chat_type}'. Supported: {', '.join(SYSTEM_PROMPTS)}"
        ) from None
    return template.format(topic_name=topic_name)


def build_chat_prompt(query: str, context: str, topic_name: str, chat_type: str) -> str:
    """Full prompt: persona, retrieved context (if any), then the student's question."""
    system_prompt = build_system_prompt(topic_name, chat_type)

    if context:
        return (
            f"{system_prompt}\n\n"
            f"Context from study materials:\n{context}\n\n"
            f"Student's question: {query}\n\n"
            "Please provide a helpful, accurate response based on the context above."
        )

    return (
        f"{system_prompt}\n\n"
        f"Student's question: {query}\n\n"
        "Note: No specific study materials are available yet for this topic. "
        "Provide general guidance and encourage the student to upload their course materials."
    )
