"""Ordered pattern table used by the scrubber.

Order matters: provider-specific credential formats run before the generic
``keyword = value`` fallback so the placeholder that lands in the output is
the most informative one. Every placeholder starts with ``<`` or ``$``/``%``
and no value class below admits those, so scrubbed text is a fixed point.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum, unique


@unique
class RuleCategory(StrEnum):
    """Rule groups, listed in the order they are applied."""

    VENDOR_CREDENTIAL = "vendor_credential"
    GENERIC_CREDENTIAL = "generic_credential"
    STRUCTURED_TOKEN = "structured_token"
    CONTACT = "contact"
    FILESYSTEM_PATH = "filesystem_path"
    NETWORK_ADDRESS = "network_address"


@dataclass(frozen=True, slots=True)
class Rule:
    """A compiled pattern and the replacement substituted for each match.

    ``replacement`` uses :func:`re.sub` template syntax, so a rule can keep
    a captured context word (``\\g<1>``) and redact only the value.
    """

    name: str
    category: RuleCategory
    pattern: re.Pattern[str]
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _rule(name: str, category: RuleCategory, pattern: str, replacement: str) -> Rule:
    return Rule(name, category, re.compile(pattern), replacement)


_V = RuleCategory.VENDOR_CREDENTIAL
_G = RuleCategory.GENERIC_CREDENTIAL
_T = RuleCategory.STRUCTURED_TOKEN

DEFAULT_RULES: tuple[Rule, ...] = (
    # -- Provider-specific keys --------------------------------------------
    # Anthropic before the OpenAI patterns, both share the sk- prefix.
    _rule("anthropic_api_key", _V, r"sk-ant-[a-zA-Z0-9\-_]{20,}", "<ANTHROPIC_API_KEY>"),
    _rule("openai_project_key", _V, r"sk-proj-[a-zA-Z0-9\-_]{20,}", "<OPENAI_PROJECT_KEY>"),
    _rule("openai_api_key", _V, r"\bsk-[a-zA-Z0-9]{32,}\b", "<OPENAI_API_KEY>"),
    _rule("google_api_key", _V, r"AIza[0-9A-Za-z\-_]{35}", "<GOOGLE_API_KEY>"),
    _rule("github_pat", _V, r"ghp_[a-zA-Z0-9]{36}", "<GITHUB_PAT>"),
    _rule("github_fine_grained_pat", _V, r"github_pat_[a-zA-Z0-9_]{22,}", "<GITHUB_PAT>"),
    _rule("github_oauth_token", _V, r"gho_[a-zA-Z0-9]{36}", "<GITHUB_OAUTH_TOKEN>"),
    _rule("github_app_token", _V, r"ghs_[a-zA-Z0-9]{36}", "<GITHUB_APP_TOKEN>"),
    _rule("aws_access_key_id", _V, r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b", "<AWS_ACCESS_KEY_ID>"),
    # Secret access keys have no prefix; require the context word.
    _rule(
        "aws_secret_access_key",
        _V,
        r"(?i)(aws[_\-]?secret[_\-]?(?:access[_\-]?)?key[\"'\s:=]+)[A-Za-z0-9/+=]{40}",
        r"\g<1><AWS_SECRET_ACCESS_KEY>",
    ),
    _rule("stripe_key", _V, r"\b(?:sk|pk|rk)_(?:live|test)_[a-zA-Z0-9]{24,}\b", "<STRIPE_KEY>"),
    _rule("slack_token", _V, r"xox[baprs]-[0-9A-Za-z\-]{10,}", "<SLACK_TOKEN>"),
    _rule("npm_token", _V, r"npm_[a-zA-Z0-9]{36}", "<NPM_TOKEN>"),
    _rule("huggingface_token", _V, r"hf_[a-zA-Z0-9]{34,}", "<HUGGINGFACE_TOKEN>"),
    # -- Generic assignments: password="...", api_key: '...', token = ... --
    # The keyword is kept; a value starting with '<' is an existing placeholder.
    _rule(
        "credential_assignment",
        _G,
        r"(?i)((?:password|passwd|secret|token|api[_\-]?key|auth[_\-]?key|access[_\-]?key"
        r"|private[_\-]?key|client[_\-]?secret)[\"'\s]*[:=][\"'\s]*)[^\s\"',}\]<>]{8,}",
        r"\g<1><REDACTED_CREDENTIAL>",
    ),
    # -- Structured tokens -------------------------------------------------
    _rule("jwt", _T, r"eyJ[a-zA-Z0-9\-_]+\.eyJ[a-zA-Z0-9\-_]+\.[a-zA-Z0-9\-_]+", "<JWT_TOKEN>"),
    _rule("bearer_token", _T, r"(?i)\bbearer\s+[a-zA-Z0-9\-_.~+/]{8,}=*", "Bearer <REDACTED_TOKEN>"),
    # scheme://user:pass@ -- user and password may not cross a quote or slash.
    _rule(
        "url_credentials",
        _T,
        r"[a-zA-Z][a-zA-Z0-9+\-.]*://[^:@\s/\"']+:[^@\s/\"']+@",
        "<REDACTED_AUTH_URL>@",
    ),
    # -- Contact identifiers -----------------------------------------------
    _rule(
        "email",
        RuleCategory.CONTACT,
        r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b",
        "<EMAIL>",
    ),
    # -- Home directories: only the user segment goes, the suffix stays ----
    _rule(
        "unix_home",
        RuleCategory.FILESYSTEM_PATH,
        r"(?<![\w.])/(?:Users|home)/[a-zA-Z0-9._\-]+",
        "$HOME",
    ),
    # Raw (C:\Users\bob) or JSON-escaped (C:\\Users\\bob).
    _rule(
        "windows_home",
        RuleCategory.FILESYSTEM_PATH,
        r"(?i)\b[A-Z]:\\{1,2}Users\\{1,2}[a-zA-Z0-9._\-]+",
        "%USERPROFILE%",
    ),
    # -- Private networks: the address goes, a trailing :port stays --------
    _rule(
        "private_ipv4",
        RuleCategory.NETWORK_ADDRESS,
        r"\b(?:10\.\d{1,3}\.\d{1,3}\.\d{1,3}"
        r"|172\.(?:1[6-9]|2\d|3[01])\.\d{1,3}\.\d{1,3}"
        r"|192\.168\.\d{1,3}\.\d{1,3})\b",
        "<PRIVATE_IP>",
    ),
)
