"""
Export service for formatting a user's summary history.
"""

from datetime import datetime
from typing import Any


def _format_section(section: Any) -> list[str]:
    if isinstance(section, dict):
        title = section.get("title") or "Untitled section"
        timestamp = section.get("timestamp")
        content = section.get("content") or ""
    else:
        title, timestamp, content = "Untitled section", None, str(section)

    heading = f"### {title}"
    if timestamp:
        heading += f" ({timestamp})"
    return [heading, "", content, ""]


class ExportService:
    """Service for formatting summaries for export."""

    def format_summary_markdown(self, summary: Any) -> str:
        """Format a single stored summary as Markdown."""
        data = summary.summary_data or {}
        lines = [
            f"## {summary.video_title or summary.video_id}",
            "",
            f"**Video**: https://www.youtube.com/watch?v={summary.video_id}",
        ]
        if summary.transcript_source:
            lines.append(f"**Transcript**: {summary.transcript_source}")
        lines.extend([
            f"**Created**: {summary.created_at.strftime('%Y-%m-%d %H:%M')}",
            "",
            data.get("overallSummary") or "",
            "",
        ])

        for section in data.get("sections") or []:
            lines.extend(_format_section(section))

        return "\n".join(lines)

    def format_summaries_markdown(self, summaries: list[Any], user: Any) -> str:
        """Format all of a user's summaries as one Markdown document."""
        lines = [
            "# Video summaries",
            "",
            f"**Account**: {user.email}",
            f"**Exported**: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
            f"**Summaries**: {len(summaries)}",
            "",
            "---",
            "",
        ]

        for summary in summaries:
            lines.append(self.format_summary_markdown(summary))
            lines.append("---")
            lines.append("")

        return "\n".join(lines)


export_service = ExportService()
