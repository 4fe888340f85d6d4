import re
from abc import ABC, abstractmethod
from typing import Iterable, Optional

import structlog

from texpatch.models import Intent

logger = structlog.get_logger(__name__)

INSERT_VERBS = ("insert", "add", "append", "create", "include", "incorporate", "new")
DELETE_VERBS = ("delete", "remove", "strip", "drop", "eliminate")
REPLACE_VERBS = (
    "replace", "substitute", "swap", "exchange", "change", "edit", "update",
    "fix", "correct", "rewrite", "revamp", "modify", "revise", "amend", "adjust", "tweak",
)

READ_ACTIONS = (
    "read", "view", "check", "examine", "review", "look", "see", "show", "display",
    "inspect", "analyze", "understand", "explain", "describe",
)
EDIT_ACTIONS = (
    "edit", "modify", "change", "fix", "correct", "improve", "add", "remove",
    "delete", "insert", "create",
)
RESTRICTED_EDIT_ACTIONS = (
    "edit", "modify", "change", "alter", "update", "delete", "remove", "add",
    "insert", "create", "fix", "correct",
)

EXPLICIT_RESTRICTION_PREFIXES = ("only", "just", "merely", "simply")
EXPLICIT_RESTRICTION_ACTIONS = ("read", "view", "check", "examine", "review", "look", "see")
NEGATIVE_RESTRICTION_PREFIXES = ("don't", "do not", "no", "never", "avoid", "prevent", "stop")

REORDER_KEYWORDS = ("reorder", "rearrange", "move", "relocate", "restructure", "organize", "sort")
STYLE_KEYWORDS = (
    "style", "format", "bold", "italic", "underline", "emphasize", "highlight",
    "color", "font", "size",
)
GRAMMAR_KEYWORDS = (
    "grammar", "proofread", "typo", "spelling", "punctuation", "hyphen", "capitalize",
    "cleanup", "clean up", "tidy", "normalize", "standardize", "consistency", "consistent",
)
DEDUPE_KEYWORDS = ("dedup", "de-dup", "duplicate")
MULTI_KEYWORDS = ("multi", "multiple", "several", "batch", "all", "every")
FULL_REVAMP_KEYWORDS = ("complete revamp", "rewrite everything", "from scratch", "restructure entire")
IMPROVE_KEYWORDS = (
    "improve", "enhance", "polish", "refine", "better", "strengthen", "clarify",
    "expand", "elaborate", "develop", "concrete", "specific", "detailed",
    "add", "insert", "create", "new section", "new paragraph", "include", "incorporate",
)
REPLACE_NODE_VERBS = ("replace", "substitute", "swap", "exchange")
NODE_OBJECTS = (
    "section", "subsection", "paragraph", "item", "bullet", "list", "table",
    "figure", "equation", "text", "content", "element", "node",
)


def _phrase_pattern(prefixes: Iterable[str], actions: Iterable[str]) -> "re.Pattern[str]":
    # Actions match as word prefixes so "editing" counts as "edit"
    prefix_alt = "|".join(re.escape(p).replace(r"\ ", r"\s+") for p in prefixes)
    action_alt = "|".join(re.escape(a) for a in actions)
    return re.compile(rf"(?<![\w'])(?:{prefix_alt})\s+(?:{action_alt})")


def _verb_pattern(verbs: Iterable[str]) -> "re.Pattern[str]":
    return re.compile(r"\b(?:" + "|".join(re.escape(v) for v in verbs) + r")")


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(k in text for k in keywords)


def _names_node(text: str, verbs: Iterable[str]) -> bool:
    # "replace section" or "replace the section"
    return any(
        f"{v} {o}" in text or f"{v} the {o}" in text for v in verbs for o in NODE_OBJECTS
    )


class IntentClassifier(ABC):
    """Strategy that turns a user request into permission flags."""

    @abstractmethod
    def classify(self, user_text: str) -> Intent:
        ...


class KeywordIntentClassifier(IntentClassifier):
    """
    Keyword heuristic. Permissive by default: every edit kind is allowed
    unless the request contains a restriction phrase, in which case none is.
    """

    _explicit_restriction = _phrase_pattern(
        EXPLICIT_RESTRICTION_PREFIXES, EXPLICIT_RESTRICTION_ACTIONS
    )
    _negative_restriction = _phrase_pattern(
        NEGATIVE_RESTRICTION_PREFIXES, RESTRICTED_EDIT_ACTIONS
    )
    _insert_verbs = _verb_pattern(INSERT_VERBS)
    _delete_verbs = _verb_pattern(DELETE_VERBS)
    _replace_verbs = _verb_pattern(REPLACE_VERBS)

    def has_restriction(self, text: str) -> bool:
        return bool(
            self._explicit_restriction.search(text) or self._negative_restriction.search(text)
        )

    def looks_read_only(self, text: str) -> bool:
        return _contains_any(text, READ_ACTIONS) and not _contains_any(text, EDIT_ACTIONS)

    def classify(self, user_text: str) -> Intent:
        text = (user_text or "").lower()

        restricted = self.has_restriction(text)
        allow = not restricted

        wants_replace = bool(self._replace_verbs.search(text))
        wants_improve = _contains_any(text, IMPROVE_KEYWORDS)
        full_revamp = _contains_any(text, FULL_REVAMP_KEYWORDS)
        wants_replace_node = _names_node(text, REPLACE_NODE_VERBS)

        return Intent(
            allow_insert=allow,
            allow_delete=allow,
            allow_replace=allow,
            wants_insert=bool(self._insert_verbs.search(text)),
            wants_delete=bool(self._delete_verbs.search(text)),
            wants_replace=wants_replace,
            wants_reorder=_contains_any(text, REORDER_KEYWORDS),
            wants_style_change=_contains_any(text, STYLE_KEYWORDS),
            wants_dedupe=_contains_any(text, DEDUPE_KEYWORDS),
            wants_grammar=_contains_any(text, GRAMMAR_KEYWORDS),
            multi_edit=(
                _contains_any(text, MULTI_KEYWORDS) or wants_replace_node
                or full_revamp or wants_improve
            ),
            full_revamp=full_revamp,
            is_read_only=restricted or self.looks_read_only(text),
        )


_default_classifier = KeywordIntentClassifier()


def classify_intent(user_text: str, classifier: Optional[IntentClassifier] = None) -> Intent:
    """Infers which edit kinds the request permits. Never raises on odd input."""
    intent = (classifier or _default_classifier).classify(user_text)
    logger.debug(
        "Classified intent",
        allow_insert=intent.allow_insert,
        allow_delete=intent.allow_delete,
        allow_replace=intent.allow_replace,
        read_only=intent.is_read_only,
    )
    return intent
