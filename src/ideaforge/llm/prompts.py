"""Prompt templates for the advisor and generator."""

from __future__ import annotations

from ideaforge.models.idea import ChatMessage, Idea

CREATE_IDEA_MARKER = "[ACTION: CREATE_IDEA]"

JSON_IDEAS_SUFFIX = """
Strictly output the result as a valid JSON array of objects, where each object has the keys:
- "title": the title of the idea
- "details": a short description of the idea

Return ONLY the raw JSON array, with no markdown formatting or code fences.
"""

GENERATE_BASE = "Generate 3 unique and innovative startup ideas"

GENERATE_CRITERIA = (
    "Ensure these are viable and creative projects which lack a current existing "
    "alternative in the marketplace."
)

KEYWORDS_TEMPLATE = """Analyze the following startup idea and extract 5 conceptually relevant keywords.
Return ONLY the keywords separated by commas.

Title: {title}
Details: {details}
"""

ADVISOR_TEMPLATE = """You are a critical, experienced startup advisor analyzing the idea: "{title}".
Details: {details}

Help the user refine the idea by identifying risks, challenging assumptions and giving
objective feedback. Do not be sycophantic. Be honest about feasibility and market challenges.

Previous conversation:
{transcript}

User: {message}

Reply directly to the user's last message, keeping the context of the startup idea.
"""

PLAN_TEMPLATE = """I have a startup idea: "{title}".
Details: {details}

The user wants to proceed with this idea. Create a detailed, step-by-step implementation plan.

Start with a "Critical Feasibility Analysis" section that evaluates viability and pitfalls.
Then, if the idea has merit, continue with:

1. MVP Definition (Minimal Viable Product)
2. Technology Stack Recommendations
3. Go-to-Market Strategy
4. Monetization Path

Format it with Markdown headers.
"""

VIABILITY_TEMPLATE = """Write a business viability report for this startup idea.

Title: {title}
Details: {details}
Keywords: {keywords}

Cover target market and size, revenue model, cost structure, key risks, and a final
verdict with a viability score from 1 to 10. Use Markdown headers.
"""

COMPETITORS_TEMPLATE = """Write a competitor analysis for this startup idea.

Title: {title}
Details: {details}
Keywords: {keywords}

List direct and indirect competitors with their strengths and weaknesses, identify gaps
in the market, and suggest how this idea could differentiate. Use Markdown headers.
"""

MVP_TEMPLATE = """Here are my startup ideas:

{catalog}

Pick the ONE idea that is simplest to build as a working MVP by a single developer.
Respond with a JSON object with the keys "ideaId" (the id from the list), "title" and "reason".
"""

FOLDERS_TEMPLATE = """Organize these startup ideas into a small number of thematic folders.

{catalog}
{existing}
Respond with a JSON array of objects with the keys "name" (short folder name),
"description" (one sentence) and "ideaIds" (ids from the list). Each idea belongs to at most one folder.
"""

BRAINSTORM_TEMPLATE = """You are a friendly startup brainstorming partner. Ask short questions,
suggest angles and help the user shape a rough notion into a concrete startup idea.

When the user clearly asks to save, create or turn the conversation into an idea, confirm
briefly and end your reply with the exact marker {marker}

Conversation so far:
{transcript}

User: {message}
"""

SUMMARIZE_TEMPLATE = """Summarize the startup idea discussed in this brainstorming conversation.

{transcript}

Respond with a JSON object with the keys "title" (a short catchy name) and
"details" (a concise description of the concept, audience and value).
"""

SPARK_TEMPLATE = """I am a founder with a "{vibe}" vibe looking to build in "{field}".
I was given the creative prompt: "{creative_prompt}".
I drew a picture that signifies: "{drawing}".

Based on this eclectic mix of personality and abstract creative input,
generate 3 wildly creative, out-of-the-box startup ideas. Make them unique and slightly unconventional.
"""

RACE_TEMPLATE = """I just played a kart racing game for a startup ideation session.
My journey: I started in {start} and raced through themes like: {themes}.
I survived {seconds} seconds.
I collected: {items} while shooting down blockers.

Generate 3 creative, widely divergent startup ideas inspired by this specific journey.
"""

MVP_BUILD_TEMPLATE = """I have a startup idea I want to build as a LOCAL MVP.

Title: {title}
Details: {details}
Keywords: {keywords}

Please act as a Senior Software Engineer and help me build this.

1. ANALYZE FOR LOCAL EXECUTION:
   - Determine the best technical approach for a standalone, locally-running prototype.
   - Use local alternatives for infrastructure (e.g., SQLite/JSON instead of cloud DBs).
   - If AI is required, prefer local LLMs (Ollama) or minimal API usage.

2. EXECUTE BUILD PLAN:
   - Create a build plan.
{directory_steps}
   - Start scaffolding and building the MVP immediately."""


def transcript(history: list[ChatMessage]) -> str:
    """Render user/assistant turns; system notices are not part of the dialogue."""
    lines = []
    for msg in history:
        if msg.role == "system":
            continue
        speaker = "User" if msg.role == "user" else "Assistant"
        lines.append(f"{speaker}: {msg.content}")
    return "\n".join(lines) if lines else "(none)"


def catalog(ideas: list[Idea]) -> str:
    return "\n".join(f"- id: {i.id} | {i.title}: {i.details[:300]}" for i in ideas)


def with_json_ideas(prompt: str) -> str:
    return f"{prompt.strip()}\n{JSON_IDEAS_SUFFIX}"


def generate_prompt(topic: str | None) -> str:
    if topic and topic.strip():
        return f'{GENERATE_BASE} based on this topic: "{topic.strip()}". {GENERATE_CRITERIA}'
    return f"{GENERATE_BASE}. {GENERATE_CRITERIA}"


def combine_prompt(ideas: list[Idea]) -> str:
    titles = ", ".join(i.title for i in ideas)
    return (
        f"I have the following startup ideas: {titles}.\n"
        "Combine concepts from these ideas to create 3 NEW, hybrid startup ideas. "
        f"{GENERATE_CRITERIA}\nExplain the inspiration for each."
    )


def keywords_prompt(idea: Idea) -> str:
    return KEYWORDS_TEMPLATE.format(title=idea.title, details=idea.details)


def advisor_prompt(idea: Idea, history: list[ChatMessage], message: str) -> str:
    return ADVISOR_TEMPLATE.format(
        title=idea.title,
        details=idea.details,
        transcript=transcript(history),
        message=message,
    )


def plan_prompt(idea: Idea) -> str:
    return PLAN_TEMPLATE.format(title=idea.title, details=idea.details)


def report_prompt(template: str, idea: Idea) -> str:
    return template.format(
        title=idea.title,
        details=idea.details,
        keywords=", ".join(idea.keywords) or "none",
    )


def folders_prompt(ideas: list[Idea], existing_names: list[str]) -> str:
    existing = ""
    if existing_names:
        existing = "\nExisting folders you may reuse: " + ", ".join(existing_names) + "\n"
    return FOLDERS_TEMPLATE.format(catalog=catalog(ideas), existing=existing)


def brainstorm_prompt(history: list[ChatMessage], message: str) -> str:
    return BRAINSTORM_TEMPLATE.format(
        marker=CREATE_IDEA_MARKER, transcript=transcript(history), message=message
    )
