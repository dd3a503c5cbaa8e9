"""Session tracking for ACP traffic.

ACP is JSON-RPC 2.0, so a ``session/new`` reply is a response (no
``method``) whose result carries the new session id::

    {"jsonrpc":"2.0","id":2,"result":{"sessionId":"abc123",...}}
"""

from __future__ import annotations

import json
import logging
import threading

logger = logging.getLogger("recall.sources.acp")

_SESSION_KEY = "sessionId"


def extract_session_id(line: str) -> str | None:
    """Return the session id if *line* is a ``session/new`` response.

    Read-only, best-effort inspection: anything that is not valid JSON, is
    a request or notification, or lacks ``result.sessionId`` yields
    ``None``. Never raises.
    """
    # Most lines are not session responses; skip the parse for them.
    if _SESSION_KEY not in line:
        return None
    try:
        envelope = json.loads(line)
    except (ValueError, RecursionError) as e:
        logger.debug("Not a JSON-RPC envelope: %s", e)
        return None

    if not isinstance(envelope, dict) or "method" in envelope:
        return None
    result = envelope.get("result")
    if not isinstance(result, dict):
        return None
    session_id = result.get(_SESSION_KEY)
    if isinstance(session_id, str) and session_id:
        return session_id
    return None


class SessionState:
    """The current session id, shared by the two readers of one source.

    Set whenever a session start is seen; there is no end-of-session signal
    in ACP, so the last id sticks until the next one arrives.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session_id = ""

    def get(self) -> str:
        with self._lock:
            return self._session_id

    def set(self, session_id: str) -> None:
        with self._lock:
            self._session_id = session_id
