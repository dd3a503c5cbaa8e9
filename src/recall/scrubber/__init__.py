"""Pattern-based redaction of sensitive text."""

from recall.scrubber.engine import MIN_SECRET_LENGTH, Scrubber, scrub, scrub_env_secrets
from recall.scrubber.rules import DEFAULT_RULES, Rule, RuleCategory

__all__ = [
    "DEFAULT_RULES",
    "MIN_SECRET_LENGTH",
    "Rule",
    "RuleCategory",
    "Scrubber",
    "scrub",
    "scrub_env_secrets",
]
