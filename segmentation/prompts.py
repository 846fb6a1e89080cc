"""LLM prompt templates for reading-card segmentation."""
from typing import List, Optional

from segmentation.models import Genre, SegmentationRequest

BASE_INSTRUCTION = """You are an expert editor for a reading app that formats text into rich, comprehensive reading cards.
Your goal: split the provided text into logical, substantive "cards".

CRITICAL RULES:
1. PACING: Optimize for 200-400 words per card. Aim for page-like density, not tweet-like.
2. DENSITY: Combine 3-5 related paragraphs into a single card. Do NOT split short paragraphs.
3. FLOW: Each card must feel like a complete thought or scene. No mid-sentence or mid-paragraph breaks.
4. VERBATIM: Copy the text exactly. Never rewrite, summarize, translate or skip any of it.

METADATA RULES:
- chapterTitle: The top-level header. Persist it across cards until it changes.
- contextLabel: A tiny specific context tag (e.g. "Scene: The Desert", "Topic: The Soul").
- speaker: If the card is dialogue, identify the speaker.
- isNewScene: true ONLY for a distinct jump in time or location.
- shareableQuote: One profound or catchy sentence from the card, if any."""

GENRE_RULES = {
    Genre.FICTION: """STRICT RULES FOR FICTION:
- Scene integrity: keep entire short-to-medium scenes in ONE card. Do not fragment the narrative.
- Dialogue: keep long conversations together. Never split a back-and-forth exchange unless it spans pages.
- Immersion: let the reader get through a significant portion of the story before swiping.""",

    Genre.NON_FICTION: """STRICT RULES FOR NON-FICTION:
- Concept unity: group complete arguments or explanations into one card.
- Depth: if a concept takes 3 paragraphs to explain, keep them ALL in one card.
- Context: avoid isolating single sentences; provide the full context.""",

    Genre.TECHNICAL: """STRICT RULES FOR TECHNICAL TEXT:
- Completeness: keep code snippets, their explanation and their output together in one card.
- Steps: keep entire procedures (step 1 to step N) in a single card where possible.
- Definitions: never separate a term from its definition and usage.""",

    Genre.SCRIPT: """STRICT RULES FOR SCRIPTS AND PLAYS:
- Scene headings: start a new card at every scene heading (INT./EXT., ACT, SCENE) and set isNewScene to true.
- Speakers: keep each speaker name attached to its lines; never merge two speakers' lines into one unattributed block.
- Stage directions: keep directions with the lines they belong to.
- speaker: set to the character speaking when a card is a single speech.""",
}

OUTPUT_FORMAT = """Return ONLY a JSON array, no other text. Each element:
{"text": "...", "chapterTitle": "...", "contextLabel": "...", "speaker": null, "isNewScene": false, "shareableQuote": null}"""


def chunking_system_instruction(genre: Genre = Genre.NON_FICTION) -> str:
    """Instruction profile for the given genre.

    Args:
        genre: Content genre; unknown genres use the non-fiction rules

    Returns:
        System prompt text
    """
    rules = GENRE_RULES.get(genre, GENRE_RULES[Genre.NON_FICTION])
    return f"{BASE_INSTRUCTION}\n\n{rules}\n\n{OUTPUT_FORMAT}"


def chunking_user_prompt(request: SegmentationRequest) -> str:
    """User message carrying the batch context and window."""
    return (
        f'CONTEXT: Book Title: "{request.book_title or "Unknown"}". '
        f'Continuing from previous batch. '
        f'Last Chapter: "{request.previous_chapter_title or "None"}".\n\n'
        f"Format the following text into smart reading cards:\n\n{request.text}"
    )


def genre_classification_prompt(sample: str, allowed: Optional[List[str]] = None) -> str:
    """Prompt asking for exactly one genre label."""
    labels = ", ".join(allowed or [genre.value for genre in Genre])
    return f"""Analyze the following text sample and classify it into exactly ONE of these categories:
- "fiction" (novels, stories, dialogue-heavy)
- "non_fiction" (self-help, history, biography, essays, general articles)
- "technical" (textbooks, manuals, code documentation, scientific papers)
- "script" (screenplays, stage plays, transcripts with speaker names)

Text Sample:
"{sample}..."

Rules:
- Return ONLY the category name, one of: {labels}.
- Do not add punctuation or explanation."""
