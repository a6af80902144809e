"""
Notes feature: merge per-chunk note fragments into one document.
"""

from studcom.features.notes.schemas import Flashcard, MergedNotes, NotesFragment, NotesSection

DEFAULT_TITLE = "Notes"
MAX_TLDR_CHARS = 400
MAX_BULLETS = 200
MAX_QUOTES = 20
MAX_ACTION_ITEMS = 50
MAX_QUESTIONS = 200
MAX_FLASHCARDS = 200


def _unique(items) -> list:
    """Order-preserving exact-match dedupe."""
    return list(dict.fromkeys(items))


def merge_notes(fragments: list[NotesFragment]) -> MergedNotes:
    """Combine fragments in chunk order.

    Sections sharing a heading (trimmed, case-insensitive) collapse into one;
    bullets, quotes, action items and questions are deduplicated by exact text,
    flashcards by question (first answer wins). Every list is capped.
    """
    # fragments without a title were defaulted to "Notes" on validation
    title = next((f.title for f in fragments if f.title.strip() and f.title != DEFAULT_TITLE), DEFAULT_TITLE)
    tl_dr = " ".join(f.tl_dr for f in fragments if f.tl_dr)[:MAX_TLDR_CHARS]
    summary = "\n\n".join(f.summary for f in fragments if f.summary)

    sections: dict[str, dict] = {}
    for fragment in fragments:
        for section in fragment.sections:
            key = section.heading.strip().lower() or f"section-{len(sections)}"
            existing = sections.get(key)
            if existing is None:
                sections[key] = {
                    "heading": section.heading,
                    "summary": section.summary,
                    "bullets": _unique(section.bullets),
                    "important_quotes": _unique(section.important_quotes),
                }
            else:
                existing["summary"] += "\n\n" + section.summary
                existing["bullets"] = _unique(existing["bullets"] + section.bullets)
                existing["important_quotes"] = _unique(existing["important_quotes"] + section.important_quotes)

    merged_sections = [
        NotesSection(
            heading=s["heading"],
            summary=s["summary"].strip(),
            bullets=s["bullets"][:MAX_BULLETS],
            important_quotes=s["important_quotes"][:MAX_QUOTES],
        )
        for s in sections.values()
    ]

    action_items = _unique(item for f in fragments for item in f.action_items)[:MAX_ACTION_ITEMS]
    questions = _unique(q for f in fragments for q in f.questions)[:MAX_QUESTIONS]

    flashcards: dict[str, str] = {}
    for fragment in fragments:
        for card in fragment.flashcards:
            question = card.question.strip()
            if question and question not in flashcards:
                flashcards[question] = card.answer

    return MergedNotes(
        title=title,
        tl_dr=tl_dr,
        summary=summary,
        sections=merged_sections,
        action_items=action_items,
        questions=questions,
        flashcards=[
            Flashcard(question=q, answer=a)
            for q, a in list(flashcards.items())[:MAX_FLASHCARDS]
        ],
    )
