# novabuild/orchestration/suggestions.py
"""
Project title and next-step suggestions.

Both are cosmetic: any failure falls back quietly instead of raising.
"""
from typing import Dict, List, Optional

from novabuild.core.config import settings
from novabuild.core.exceptions import NovaBuildError
from novabuild.core.logging import log
from novabuild.llm.adapter import Oracle, generate_json
from novabuild.llm.prompts import SUGGESTION_PROMPT, SUGGESTION_SCHEMA, TITLE_PROMPT
from novabuild.models.project import Project
from novabuild.orchestration.history import format_history
from novabuild.orchestration.retry_policy import RetryPolicy

DEFAULT_TITLE = "New Project"
MAX_TITLE_LENGTH = 60


async def generate_project_title(
    oracle: Oracle,
    prompt: str,
    policy: Optional[RetryPolicy] = None,
) -> str:
    policy = policy or RetryPolicy.from_settings()
    try:
        text = await policy.run(
            lambda: oracle.generate(
                f'Description: "{prompt}"',
                system_instruction=TITLE_PROMPT,
                model=settings.llm.fast_model,
            ),
            label="title generation",
        )
    except NovaBuildError as e:
        log("ROUTER", f"Title generation failed: {e}")
        return DEFAULT_TITLE

    title = (text or "").strip().strip('"').strip("'").strip()
    return title[:MAX_TITLE_LENGTH] or DEFAULT_TITLE


async def generate_suggestions(
    oracle: Oracle,
    project: Project,
    policy: Optional[RetryPolicy] = None,
) -> List[Dict[str, str]]:
    """Return 3-4 {title, prompt} follow-ups, or [] on any failure."""
    policy = policy or RetryPolicy.from_settings()
    code = project.code
    history = format_history(project.messages, settings.build.chat_history_window)
    prompt = (
        f"CONVERSATION HISTORY:\n{history}\n\n"
        "CURRENT CODE STATS:\n"
        f"HTML: {len(code.html)} chars\n"
        f"SCRIPT: {len(code.script)} chars\n"
        f"CSS: {len(code.stylesheet)} chars\n\n"
        "Suggest next steps."
    )

    try:
        data = await policy.run(
            lambda: generate_json(
                oracle,
                prompt,
                system_instruction=SUGGESTION_PROMPT,
                schema=SUGGESTION_SCHEMA,
                model=settings.llm.fast_model,
            ),
            label="suggestions",
        )
    except NovaBuildError as e:
        log("ROUTER", f"Suggestions unavailable: {e}", project_id=project.id)
        return []

    if not isinstance(data, list):
        return []
    suggestions = [
        {"title": str(item["title"]), "prompt": str(item["prompt"])}
        for item in data
        if isinstance(item, dict) and item.get("title") and item.get("prompt")
    ]
    return suggestions[:4]
