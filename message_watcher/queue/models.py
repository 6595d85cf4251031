"""Queue data models."""
import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from message_watcher.errors import MalformedMessageError

HEADER_EXTENSION = ".request"
DATA_EXTENSION = ".data"
REASON_EXTENSION = ".reason.txt"

ERRORS_DIR_NAME = "Errors"
ARCHIVE_DIR_NAME = "Archive"

# PascalCase keys written by older producers
_FIELD_ALIASES = {
    "Id": "id",
    "CreatedBy": "created_by",
    "Priority": "priority",
    "SourceSystem": "source_system",
    "TaskType": "task_type",
    "TimeStamp": "timestamp",
    "Timestamp": "timestamp",
    "RunAfter": "run_after",
    "TypeOfData": "type_of_data",
    "Data": "data",
}


@dataclass(frozen=True)
class MessageHeader:
    """Producer-supplied description of one unit of work."""

    priority: int
    timestamp: datetime
    id: str = ""
    created_by: str = ""
    source_system: int = 0
    task_type: int = 0
    run_after: Optional[datetime] = None
    type_of_data: str = ""
    data: str = ""

    @classmethod
    def from_json(cls, raw: bytes) -> "MessageHeader":
        """Decode a header file's content.

        Raises:
            MalformedMessageError: content is not a valid header
        """
        try:
            payload = json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedMessageError(f"Invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise MalformedMessageError(f"Expected a JSON object, got {type(payload).__name__}")
        return cls.from_dict(payload)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "MessageHeader":
        values = {_FIELD_ALIASES.get(key, key): value for key, value in payload.items()}
        for required in ("priority", "timestamp"):
            if values.get(required) is None:
                raise MalformedMessageError(f"Missing required field '{required}'")

        return cls(
            id=_as_str(values.get("id"), "id"),
            created_by=_as_str(values.get("created_by"), "created_by"),
            priority=_as_int(values["priority"], "priority"),
            source_system=_as_int(values.get("source_system", 0), "source_system"),
            task_type=_as_int(values.get("task_type", 0), "task_type"),
            timestamp=_as_datetime(values["timestamp"], "timestamp"),
            run_after=_as_datetime(values["run_after"], "run_after") if values.get("run_after") else None,
            type_of_data=_as_str(values.get("type_of_data"), "type_of_data"),
            data=_as_str(values.get("data"), "data"),
        )

    def to_json(self) -> str:
        payload = asdict(self)
        payload["timestamp"] = self.timestamp.isoformat()
        payload["run_after"] = self.run_after.isoformat() if self.run_after else None
        return json.dumps(payload, indent=2)

    def is_due(self, now: datetime) -> bool:
        """True once the optional run-after instant has passed."""
        return self.run_after is None or now > self.run_after


@dataclass
class MessageEnvelope:
    """In-memory wrapper around a discovered header file."""

    path: Path
    file_date: datetime
    header: MessageHeader
    processed: bool = False
    envelope_id: int = field(default=0, compare=False)

    @property
    def sort_key(self):
        return self.header.priority, self.header.timestamp


@dataclass(frozen=True)
class MessageDirectories:
    """The inbox and its Errors/Archive siblings."""

    inbox: Path
    errors: Path
    archive: Path

    @classmethod
    def under(cls, root: Path) -> "MessageDirectories":
        root = Path(root)
        return cls(inbox=root, errors=root / ERRORS_DIR_NAME, archive=root / ARCHIVE_DIR_NAME)


def data_file_for(header_path: Path) -> Path:
    """Data file paired with a header: same directory, same base name."""
    header_path = Path(header_path)
    return header_path.with_name(header_path.stem + DATA_EXTENSION)


def reason_file_for(errors_dir: Path, header_path: Path) -> Path:
    return Path(errors_dir) / (Path(header_path).name + REASON_EXTENSION)


def _as_str(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedMessageError(f"Field '{name}' must be a string")
    return value


def _as_int(value: Any, name: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedMessageError(f"Field '{name}' must be an integer")
    return value


def _as_datetime(value: Any, name: str) -> datetime:
    if not isinstance(value, str):
        raise MalformedMessageError(f"Field '{name}' must be an ISO-8601 string")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise MalformedMessageError(f"Field '{name}' is not a valid timestamp: {value}") from e
    if parsed.tzinfo is not None:
        # Compare everything as local naive time
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
