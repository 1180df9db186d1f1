"""Export project snapshots to Markdown or JSON."""

from datetime import datetime, timezone

from convograph.models.project import ProjectSnapshot

EXPORT_FORMATS = {
    "markdown": {"extension": ".md", "media_type": "text/markdown"},
    "json": {"extension": ".json", "media_type": "application/json"},
}


def export_json(snapshot: ProjectSnapshot) -> str:
    return snapshot.model_dump_json(indent=2)


def export_markdown(snapshot: ProjectSnapshot) -> str:
    """Readable dump of every node's prompt and messages."""
    updated = datetime.fromtimestamp(snapshot.metadata.updated_at / 1000, tz=timezone.utc)
    lines = [
        f"# {snapshot.metadata.title}",
        "",
        f"**Last Updated:** {updated.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        "",
    ]

    for node in snapshot.graph.nodes:
        data = node.data
        lines.append(f"## {data.label or 'Untitled Node'}")
        lines.append("")
        lines.append(f"**Model:** {data.model_id or 'Unknown'}")
        lines.append("")
        lines.append(f"**Prompt:** {data.prompt or 'No prompt'}")
        lines.append("")

        if data.messages:
            lines.append("### Messages")
            lines.append("")
            for message in data.messages:
                lines.append(f"**{message.role.value.upper()}:**")
                lines.append(message.content)
                lines.append("")

    return "\n".join(lines)


def export_project(snapshot: ProjectSnapshot, fmt: str) -> str:
    if fmt == "markdown":
        return export_markdown(snapshot)
    if fmt == "json":
        return export_json(snapshot)
    raise ValueError(f"Unsupported export format: {fmt}. Supported: {', '.join(EXPORT_FORMATS)}")
