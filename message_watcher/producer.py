"""Helpers for dropping messages into a watched directory."""
import os
import re
import uuid
from pathlib import Path
from typing import Optional, Union

from message_watcher.logging_conf import logger
from message_watcher.queue.models import DATA_EXTENSION, HEADER_EXTENSION, MessageHeader


def safe_name(value: str) -> str:
    """Make a safe file name from a message ID."""
    return re.sub(r"[^A-Za-z0-9._-]", "_", value)[:200]


def write_message(inbox, header: MessageHeader, data: Optional[Union[str, bytes]] = None) -> bool:
    """Write the data file, then the header, into inbox.

    The header is written under a temporary name and linked into place so
    the watcher never reads half a header and an existing header is never
    replaced. Returns False if a header with the same ID is already waiting.
    """
    inbox = Path(inbox)
    base_name = safe_name(header.id or uuid.uuid4().hex)
    header_path = inbox / f"{base_name}{HEADER_EXTENSION}"
    if header_path.exists():
        logger.debug(f"Message already present {header_path.name}")
        return False

    if data is not None:
        data_path = inbox / f"{base_name}{DATA_EXTENSION}"
        if isinstance(data, bytes):
            data_path.write_bytes(data)
        else:
            data_path.write_text(data, encoding="utf-8")

    temp_path = inbox / f".{base_name}.{uuid.uuid4().hex}.tmp"
    with open(temp_path, "x", encoding="utf-8") as f:
        f.write(header.to_json())
    try:
        # link() never overwrites, so a header that raced in ahead of us wins
        os.link(temp_path, header_path)
    except FileExistsError:
        logger.debug(f"Message already present {header_path.name}")
        return False
    finally:
        os.unlink(temp_path)
    logger.info(f"Queued message {header_path.name} (priority {header.priority})")
    return True
