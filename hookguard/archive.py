"""
Markdown archive of ended sessions.

Each ended session is written to ``<storage>/sessions/<id>.md`` as YAML
front matter (counters) followed by the human-readable report, and listed
in ``<storage>/index.md``. Sessions that are still running can be kept in
``<storage>/live/<id>.yaml`` between processes.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import yaml

from .session import SessionRecord


_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


class SessionArchive:
    """Markdown-based storage for ended sessions."""

    def __init__(self, storage_path: Union[str, Path]):
        """
        Initialize the archive.

        Args:
            storage_path: Root directory (e.g. ".hookguard")
        """
        self.storage_path = Path(storage_path)
        self._init_structure()

    def _init_structure(self):
        (self.storage_path / "sessions").mkdir(parents=True, exist_ok=True)
        index_path = self.storage_path / "index.md"
        if not index_path.exists():
            index_path.write_text(
                "# Session Index\n\n## Sessions\n<!-- Sessions will be listed here -->\n"
            )

    def _session_path(self, session_id: str) -> Path:
        return self.storage_path / "sessions" / f"{_SAFE_ID.sub('_', session_id)}.md"

    def save(self, record: SessionRecord) -> str:
        """
        Save an ended session as markdown with YAML front matter.

        Args:
            record: Final session record

        Returns:
            Path to the session file
        """
        session_path = self._session_path(record.session_id)
        frontmatter = record.to_dict()
        frontmatter_str = yaml.safe_dump(frontmatter, default_flow_style=False, sort_keys=False)

        errors = "\n".join(f"- {e}" for e in record.errors) or "- None"
        content = f"""---
{frontmatter_str}---

# Session: {record.session_id}

## Report
```
{record.report or 'No report available'}
```

## Errors
{errors}

---
*Archived: {datetime.now().isoformat()}*
"""
        session_path.write_text(content)
        self._update_index(record)
        return str(session_path)

    def load(self, session_id: str) -> Optional[dict]:
        """
        Load an archived session.

        Returns:
            The front matter dictionary plus "report", or None if not found
        """
        session_path = self._session_path(session_id)
        if not session_path.exists():
            return None

        content = session_path.read_text()
        if not content.startswith("---"):
            return None
        parts = content.split("---", 2)
        if len(parts) < 3:
            return None

        state = yaml.safe_load(parts[1].strip()) or {}
        report_match = re.search(r"## Report\n```\n(.*?)\n```", parts[2], re.DOTALL)
        if report_match:
            state["report"] = report_match.group(1)
        return state

    def list_sessions(self) -> List[dict]:
        """
        List archived sessions, most recently ended first.
        """
        sessions = []
        for session_file in (self.storage_path / "sessions").glob("*.md"):
            state = self.load(session_file.stem)
            if state:
                sessions.append({
                    "id": state.get("id", session_file.stem),
                    "started": state.get("started"),
                    "ended": state.get("ended"),
                    "tool_calls": state.get("tool_calls", 0),
                    "files": len(state.get("files_created") or []) + len(state.get("files_edited") or []),
                })

        sessions.sort(key=lambda x: x.get("ended") or "", reverse=True)
        return sessions

    def delete(self, session_id: str) -> bool:
        """
        Delete an archived session.

        Returns:
            True if deleted, False if not found
        """
        session_path = self._session_path(session_id)
        if not session_path.exists():
            return False
        session_path.unlink()

        index_path = self.storage_path / "index.md"
        entry = f"- [{session_id}]"
        lines = [line for line in index_path.read_text().split("\n") if not line.startswith(entry)]
        index_path.write_text("\n".join(lines))
        return True

    def _live_path(self, session_id: str) -> Path:
        return self.storage_path / "live" / f"{_SAFE_ID.sub('_', session_id)}.yaml"

    def save_live(self, record: SessionRecord) -> str:
        """
        Save the state of a session that is still running.

        Hosts that run one process per event use this to carry the record
        from one dispatch to the next.
        """
        live_path = self._live_path(record.session_id)
        live_path.parent.mkdir(exist_ok=True)
        state = record.to_dict()
        state["report"] = record.report
        live_path.write_text(yaml.safe_dump(state, default_flow_style=False, sort_keys=False))
        return str(live_path)

    def load_live(self, session_id: str) -> Optional[SessionRecord]:
        """Load a running session saved with save_live(), or None."""
        live_path = self._live_path(session_id)
        if not live_path.exists():
            return None
        state = yaml.safe_load(live_path.read_text())
        if not state:
            return None
        return SessionRecord.from_dict(state)

    def discard_live(self, session_id: str) -> bool:
        live_path = self._live_path(session_id)
        if not live_path.exists():
            return False
        live_path.unlink()
        return True

    def _update_index(self, record: SessionRecord):
        """Add or refresh the session's line in index.md."""
        index_path = self.storage_path / "index.md"
        lines = index_path.read_text().split("\n")
        entry_prefix = f"- [{record.session_id}]"
        entry = (
            f"{entry_prefix}(sessions/{self._session_path(record.session_id).name}) - "
            f"{record.tool_calls} tool call(s), {len(record.files_touched)} file(s)"
        )

        for i, line in enumerate(lines):
            if line.startswith(entry_prefix):
                lines[i] = entry
                break
        else:
            insert_idx = lines.index("## Sessions") + 1 if "## Sessions" in lines else len(lines)
            while insert_idx < len(lines) and lines[insert_idx].startswith("<!--"):
                insert_idx += 1
            lines.insert(insert_idx, entry)

        index_path.write_text("\n".join(lines))
