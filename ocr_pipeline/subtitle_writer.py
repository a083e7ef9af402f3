"""
Subtitle Writer — SRT, WebVTT and plain-text output.

Converts SubtitleEntry objects (millisecond times) into subtitle files
with sequential indices and UTF-8 encoding.
"""

import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("srt", "vtt", "txt")


class SubtitleWriter:
    """
    Writes subtitle entries in one of the supported formats.

    SRT format:
        1
        00:00:01,200 --> 00:00:04,800
        Hello everyone, welcome to the show.

    WebVTT format:
        WEBVTT

        00:00:01.200 --> 00:00:04.800
        Hello everyone, welcome to the show.

    Plain text: one cue text per line.
    """

    def write(self, entries: List, output_path: Path, fmt: Optional[str] = None):
        """
        Write subtitle entries to a file.

        Args:
            entries: SubtitleEntry objects sorted by time.
            output_path: Destination file.
            fmt: "srt", "vtt" or "txt"; defaults to the file extension,
                then "srt".
        """
        output_path = Path(output_path)
        fmt = (fmt or output_path.suffix.lstrip(".") or "srt").lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format: {fmt}")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        content = self.render(entries, fmt)
        output_path.write_text(content, encoding="utf-8")

        logger.info(
            f"{fmt.upper()} written: {len(entries)} subtitles → {output_path}"
        )

    def render(self, entries: List, fmt: str = "srt") -> str:
        if fmt == "srt":
            return self._render_srt(entries)
        if fmt == "vtt":
            return self._render_vtt(entries)
        if fmt == "txt":
            return "\n".join(entry.text for entry in entries)
        raise ValueError(f"Unsupported format: {fmt}")

    def _render_srt(self, entries: List) -> str:
        blocks = []
        for i, entry in enumerate(entries):
            # Re-index sequentially (in case of gaps from merging)
            blocks.append(
                f"{i + 1}\n"
                f"{self._format_timestamp(entry.start_time)} --> "
                f"{self._format_timestamp(entry.end_time)}\n"
                f"{entry.text}\n"
                "\n"  # Blank line separator
            )
        return "".join(blocks)

    def _render_vtt(self, entries: List) -> str:
        lines = ["WEBVTT\n\n"]
        for entry in entries:
            lines.append(
                f"{self._format_timestamp(entry.start_time, sep='.')} --> "
                f"{self._format_timestamp(entry.end_time, sep='.')}\n"
                f"{entry.text}\n\n"
            )
        return "".join(lines)

    @staticmethod
    def _format_timestamp(ms: int, sep: str = ",") -> str:
        """
        Convert milliseconds to a subtitle timestamp: HH:MM:SS,mmm

        Args:
            ms: Time in milliseconds (e.g., 125340)
            sep: Separator before the milliseconds ("," for SRT, "." for VTT)

        Returns:
            Formatted timestamp string (e.g., "00:02:05,340")
        """
        ms = max(0, int(ms))
        hours = ms // 3_600_000
        minutes = (ms % 3_600_000) // 60_000
        secs = (ms % 60_000) // 1000
        millis = ms % 1000
        return f"{hours:02d}:{minutes:02d}:{secs:02d}{sep}{millis:03d}"

    def write_preview(self, entries: List, max_entries: int = 10) -> str:
        """
        Generate a text preview of the subtitle entries.

        Args:
            entries: List of SubtitleEntry objects.
            max_entries: Maximum entries to include in preview.

        Returns:
            Formatted string preview.
        """
        lines = []
        shown = min(len(entries), max_entries)

        for entry in entries[:shown]:
            ts_start = self._format_timestamp(entry.start_time)
            ts_end = self._format_timestamp(entry.end_time)
            text_preview = entry.text[:80]
            if len(entry.text) > 80:
                text_preview += "..."
            lines.append(f"  [{ts_start} → {ts_end}] {text_preview}")

        if len(entries) > shown:
            lines.append(f"  ... and {len(entries) - shown} more entries")

        return "\n".join(lines)
