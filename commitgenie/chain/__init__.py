"""The commit message synthesis chain.

Each stage wraps one kind of structured model call made through the
StructuredCallExecutor; the orchestrator sequences them.
"""

from commitgenie.chain.drafter import Drafter, reconstruct_commit_message
from commitgenie.chain.executor import StructuredCallExecutor, parse_reply
from commitgenie.chain.language import (
    LanguageEnforcer,
    NormalizedLanguage,
    Verdict,
    count_scripts,
    detect_latin_language,
    extract_narrative_text,
    is_likely_target_language,
    normalize_language_code,
)
from commitgenie.chain.policy import TemplatePolicyExtractor
from commitgenie.chain.strict import StrictFixer, check_header, sanitize_body_type_prefixes
from commitgenie.chain.summarizer import DiffSummarizer, SummaryBatch
from commitgenie.chain.validator import Validator

__all__ = [
    "DiffSummarizer",
    "Drafter",
    "LanguageEnforcer",
    "NormalizedLanguage",
    "StrictFixer",
    "StructuredCallExecutor",
    "SummaryBatch",
    "TemplatePolicyExtractor",
    "Validator",
    "Verdict",
    "check_header",
    "count_scripts",
    "detect_latin_language",
    "extract_narrative_text",
    "is_likely_target_language",
    "normalize_language_code",
    "parse_reply",
    "reconstruct_commit_message",
    "sanitize_body_type_prefixes",
]
