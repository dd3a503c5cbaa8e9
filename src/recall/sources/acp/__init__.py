"""ACP (Agent Client Protocol) source.

ACP is used by Zed, JetBrains, Neovim and other IDEs to talk to agents such
as Claude, Gemini, Codex and Goose over stdio JSON-RPC 2.0.
"""

from recall.sources.acp.session import SessionState, extract_session_id
from recall.sources.acp.source import (
    MAX_LINE_BYTES,
    ACPSource,
    ACPSourceConfig,
    FileLineReader,
    LineReader,
)

__all__ = [
    "MAX_LINE_BYTES",
    "ACPSource",
    "ACPSourceConfig",
    "FileLineReader",
    "LineReader",
    "SessionState",
    "extract_session_id",
]
