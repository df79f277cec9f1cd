from typing import List, Sequence

from novabuild.models.project import Message


def format_history(messages: Sequence[Message], window: int, upper: bool = False) -> str:
    """Render the trailing `window` messages as `role: content` lines."""
    lines: List[str] = []
    for message in list(messages)[-window:] if window > 0 else []:
        role = message.role.value
        lines.append(f"{role.upper() if upper else role}: {message.content}")
    return "\n".join(lines)
