"""Human-readable edit summary rendering for CLI output."""

from __future__ import annotations

from core.editor.models import ChangeResult
from core.markup.models import Mention

_MAX_LISTED = 5


def render_change_summary(result: ChangeResult) -> str:
    """Render one-screen human-readable summary of an applied edit."""

    lines: list[str] = []
    lines.append("change_summary:")
    lines.append(f"value={result.value!r}")
    lines.append(f"plain_text={result.plain_text!r}")
    lines.append(
        f"selection={result.selection_start}..{result.selection_end}"
        f"{' (adjusted)' if result.selection_adjusted else ''}"
    )
    lines.append(f"mentions: {_mention_list(result.mentions)}")
    if result.removed_mentions:
        lines.append(f"removed: {_mention_list(result.removed_mentions)}")
    else:
        lines.append("removed: none")
    return "\n".join(lines)


def render_mentions(mentions: list[Mention]) -> str:
    if not mentions:
        return "no mentions"
    return "\n".join(
        f"{mention.plain_text_index}\t{mention.index}\t{mention.id}\t{mention.display}"
        for mention in mentions
    )


def _mention_list(mentions: list[Mention]) -> str:
    if not mentions:
        return "none"
    shown = ", ".join(f"{mention.display}#{mention.id}" for mention in mentions[:_MAX_LISTED])
    hidden = len(mentions) - _MAX_LISTED
    if hidden > 0:
        shown += f" (+{hidden} more)"
    return shown
