"""Tag Extractor - find agent/workflow markers in a chat-completion request.

Agent frameworks tag their system prompts with HTML comments::

    <!-- CCR-AGENT-ID: 6ba7b810-9dad-41d1-80b4-00c04fd430c8 -->
    <!-- CCR-WORKFLOW-ID: 550e8400-e29b-41d4-a716-446655440000 -->

Most traffic carries no marker at all, so a plain substring check runs first
and the regular expressions only run when a marker name is present.
Malformed markers are treated as absent; nothing here raises.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from agent_router.validation import is_valid_uuid_v4

AGENT_MARKER = "CCR-AGENT-ID"
WORKFLOW_MARKER = "CCR-WORKFLOW-ID"

SESSION_SEPARATOR = "_session_"
DEFAULT_SESSION_ID = "default"

# Token is captured loosely and validated separately so bad ids can be logged
AGENT_ID_REGEX = re.compile(r"<!--\s*CCR-AGENT-ID:\s*([0-9a-zA-Z-]+)\s*-->")
WORKFLOW_ID_REGEX = re.compile(r"<!--\s*CCR-WORKFLOW-ID:\s*([0-9a-zA-Z-]+)\s*-->")

_module_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingIds:
    """Identifiers found in a request. Either may be absent."""

    agent_id: Optional[str] = None
    workflow_id: Optional[str] = None

    @property
    def empty(self) -> bool:
        return self.agent_id is None and self.workflow_id is None


def _body(request: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(request, Mapping):
        return None
    body = request.get("body")
    return body if isinstance(body, Mapping) else None


def _text_blocks(system: Any) -> Iterable[str]:
    if isinstance(system, str):
        yield system
        return
    if not isinstance(system, list):
        return
    for block in system:
        if (
            isinstance(block, Mapping)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ):
            yield block["text"]


def system_text(request: Any) -> str:
    """Concatenated text of the request's system prompt blocks."""
    body = _body(request)
    if body is None:
        return ""
    return "\n".join(_text_blocks(body.get("system")))


def _match_id(
    text: str,
    marker: str,
    pattern: "re.Pattern[str]",
    log: logging.Logger,
    where: str,
) -> Optional[str]:
    """Lower-cased id, None when no marker matches, "" when the id is rejected."""
    if marker not in text:
        return None
    match = pattern.search(text)
    if match is None:
        log.debug(f"{marker} marker present in {where} but not well formed")
        return None
    candidate = match.group(1)
    if not is_valid_uuid_v4(candidate):
        log.warning(f"Invalid {marker} format in {where}: {candidate[:64]}")
        return ""
    return candidate.lower()


class TagExtractor:
    """Extracts RoutingIds and session ids from raw requests."""

    def __init__(self, logger: Optional[logging.Logger] = None, scan_messages: bool = True):
        self._log = logger or _module_logger
        self._scan_messages = scan_messages

    def extract(self, request: Any) -> RoutingIds:
        text = system_text(request)

        # Fast path: no marker names at all
        if AGENT_MARKER not in text and WORKFLOW_MARKER not in text:
            agent_id = self._agent_id_from_messages(request) if self._scan_messages else None
            if agent_id is None:
                self._log.debug("No routing ID found")
            return RoutingIds(agent_id=agent_id)

        workflow_id = _match_id(text, WORKFLOW_MARKER, WORKFLOW_ID_REGEX, self._log, "system prompt")
        agent_id = _match_id(text, AGENT_MARKER, AGENT_ID_REGEX, self._log, "system prompt")
        # A rejected system prompt id is final; message history is not consulted
        if agent_id is None and self._scan_messages:
            agent_id = self._agent_id_from_messages(request)
        workflow_id = workflow_id or None
        agent_id = agent_id or None

        if agent_id and workflow_id:
            self._log.debug(
                f"Both IDs found (workflow={workflow_id}, agent={agent_id}), workflow takes priority"
            )
        return RoutingIds(agent_id=agent_id, workflow_id=workflow_id)

    def _agent_id_from_messages(self, request: Any) -> Optional[str]:
        body = _body(request)
        messages = body.get("messages") if body else None
        if not isinstance(messages, list):
            return None
        for message in messages:
            content = message.get("content") if isinstance(message, Mapping) else None
            if not isinstance(content, str):
                continue
            agent_id = _match_id(content, AGENT_MARKER, AGENT_ID_REGEX, self._log, "message history")
            if agent_id is not None:
                # First marker decides, even when it is invalid
                return agent_id or None
        return None

    def extract_agent_id(self, request: Any) -> Optional[str]:
        return self.extract(request).agent_id

    def extract_workflow_id(self, request: Any) -> Optional[str]:
        return self.extract(request).workflow_id


def extract_session_id(request: Any) -> str:
    """Session id from ``metadata.user_id`` (``<user>_session_<id>``)."""
    body = _body(request)
    metadata = body.get("metadata") if body else None
    user_id = metadata.get("user_id") if isinstance(metadata, Mapping) else None
    if isinstance(user_id, str) and SESSION_SEPARATOR in user_id:
        # \x1f is the session cache key delimiter
        session_id = user_id.split(SESSION_SEPARATOR, 1)[1].replace("\x1f", "")
        if session_id:
            return session_id
    return DEFAULT_SESSION_ID


def extract_routing_ids(request: Any, logger: Optional[logging.Logger] = None) -> RoutingIds:
    return TagExtractor(logger).extract(request)
