"""
Text renderings of API results for tool responses.
"""

from __future__ import annotations

from typing import Optional

PREVIEW_LENGTH = 200


def _date(value: Optional[str]) -> str:
    if not value:
        return "unknown date"
    return str(value)[:10]


def _tags(tags: Optional[list]) -> str:
    return ", ".join(tags) if tags else "no tags"


def _preview(content: Optional[str]) -> str:
    content = content or ""
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def _entry_block(index: int, entry: dict, with_preview: bool) -> str:
    lines = [
        f"**{index}. {entry.get('title', '')}**",
        f"📅 {_date(entry.get('created_at'))}",
        f"🏷️ {_tags(entry.get('tags'))}",
    ]
    if "similarity" in entry and entry["similarity"] is not None:
        lines.append(f"🎯 similarity {float(entry['similarity']):.2f}")
    if with_preview:
        lines.append(f"📝 {_preview(entry.get('content'))}")
    lines.append(f"🆔 {entry.get('id', '')}")
    return "\n".join(lines) + "\n"


def format_error(message: str) -> str:
    return f"❌ Error: {message}"


def format_saved(entry: dict) -> str:
    tags = ", ".join(entry.get("tags") or []) or "none"
    project = entry.get("project_id") or "personal"
    return (
        "✅ Knowledge saved successfully!\n\n"
        f"**ID**: {entry.get('id')}\n"
        f"**Title**: {entry.get('title')}\n"
        f"**Tags**: {tags}\n"
        f"**Project**: {project}\n\n"
        "The knowledge entry has been saved and can be searched later."
    )


def format_search_results(query: str, entries: list[dict], total: int, has_more: bool, limit: int) -> str:
    if not entries:
        return f'🔍 No knowledge entries found for query: "{query}"'
    blocks = "\n".join(
        _entry_block(index, entry, with_preview=True)
        for index, entry in enumerate(entries, start=1)
    )
    text = f"🔍 Found {len(entries)} knowledge entries:\n\n{blocks}"
    if has_more:
        text += f"\n(Showing {limit} of {total} results)"
    return text


def format_list(entries: list[dict], total: int) -> str:
    if not entries:
        return "📋 No knowledge entries found."
    blocks = "\n".join(
        _entry_block(index, entry, with_preview=False)
        for index, entry in enumerate(entries, start=1)
    )
    return f"📋 Recent knowledge entries:\n\n{blocks}\nTotal entries: {total}"


def format_entry(entry: dict) -> str:
    lines = [
        f"📄 **{entry.get('title', '')}**",
        "",
        f"**ID**: {entry.get('id')}",
        f"**Project**: {entry.get('project_id') or 'personal'}",
        f"**Tags**: {', '.join(entry.get('tags') or []) or 'none'}",
        f"**Created**: {_date(entry.get('created_at'))}",
        f"**Updated**: {_date(entry.get('updated_at'))}",
        "",
        entry.get("content") or "",
    ]
    refs = entry.get("refs") or []
    if refs:
        lines += ["", "📚 **References**:"]
        for ref in refs:
            line = f"- [{ref.get('type', 'citation')}] {ref.get('title', '')} <{ref.get('uri', '')}>"
            if ref.get("attributed_to"):
                line += f" ({ref['attributed_to']})"
            lines.append(line)
    traits = entry.get("traits") or []
    if traits:
        lines += ["", "🧬 **Traits**:"]
        lines += [_trait_line(trait) for trait in traits]
    return "\n".join(lines)


def _trait_line(trait: dict) -> str:
    line = f"- {trait.get('key')}: {trait.get('value')}"
    if trait.get("confidence") is not None:
        line += f" (confidence {trait['confidence']})"
    if trait.get("parent_id"):
        line += f" → {trait['parent_id']}"
    return line


def format_reference_added(entry: dict, reference: dict) -> str:
    return (
        f"✅ Reference added to \"{entry.get('title')}\"\n\n"
        f"**{reference.get('type', 'citation').title()}**: {reference.get('title')}\n"
        f"**URI**: {reference.get('uri')}\n"
        f"Total references: {len(entry.get('refs') or [])}"
    )


def format_tags_updated(entry: dict) -> str:
    return (
        f"✅ Tags updated for \"{entry.get('title')}\"\n\n"
        f"🏷️ {_tags(entry.get('tags'))}"
    )


def format_title_updated(entry: dict) -> str:
    return f"✅ Title updated\n\n**ID**: {entry.get('id')}\n**Title**: {entry.get('title')}"


def format_content_updated(entry: dict, append: bool) -> str:
    action = "appended to" if append else "replaced for"
    return (
        f"✅ Content {action} \"{entry.get('title')}\"\n\n"
        f"📝 {_preview(entry.get('content'))}"
    )


def format_traits_updated(entry: dict) -> str:
    traits = entry.get("traits") or []
    if not traits:
        return f"✅ Traits cleared for \"{entry.get('title')}\""
    lines = [f"✅ Traits updated for \"{entry.get('title')}\"", ""]
    lines += [_trait_line(trait) for trait in traits]
    return "\n".join(lines)


def format_trait_linked(entry: dict, trait_key: str, trait_value: str, parent_id: str) -> str:
    return (
        f"🔗 Linked trait {trait_key}: {trait_value} on \"{entry.get('title')}\" "
        f"to entity {parent_id}"
    )


def format_trait_results(trait_key: Optional[str], trait_value: Optional[str], entries: list[dict]) -> str:
    criteria = ", ".join(
        part for part in (
            f"key={trait_key}" if trait_key else None,
            f"value={trait_value}" if trait_value else None,
        ) if part
    )
    if not entries:
        return f"🧬 No knowledge entries found with traits {criteria}"
    blocks = "\n".join(
        _entry_block(index, entry, with_preview=False)
        for index, entry in enumerate(entries, start=1)
    )
    return f"🧬 Found {len(entries)} knowledge entries with traits {criteria}:\n\n{blocks}"
