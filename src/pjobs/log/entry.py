from __future__ import annotations

import json
from dataclasses import dataclass

RED = 31
BLUE = 34

COLOR_STYLES: dict[int, str] = {RED: "red", BLUE: "blue"}


def _as_str(value: object, default: str = "") -> str:
    return value if isinstance(value, str) else default


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One emitted log line, as persisted in the log file."""

    tag: str
    message: str
    timestamp: str
    color: int

    def to_dict(self) -> dict[str, object]:
        return {
            "tag": self.tag,
            "message": self.message,
            "timestamp": self.timestamp,
            "color": self.color,
        }

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> LogEntry:
        color = data.get("color")
        return cls(
            tag=_as_str(data.get("tag")),
            message=_as_str(data.get("message")),
            timestamp=_as_str(data.get("timestamp")),
            color=color if isinstance(color, int) and not isinstance(color, bool) else 0,
        )
