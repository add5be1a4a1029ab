"""Target-language detection and enforcement for commit narratives.

Detection is a cheap script/diacritic heuristic run before any model
call: when the narrative already reads as the target language the
enforcer returns the message untouched without calling the model.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from commitgenie.chain.executor import StructuredCallExecutor
from commitgenie.chain.messages import build_language_messages
from commitgenie.chain.strict import BULLET_RE, body_bounds, check_header
from commitgenie.errors import SchemaExhausted, UpstreamFailure
from commitgenie.schemas.requests import RequestKind

logger = logging.getLogger(__name__)


class NormalizedLanguage(StrEnum):
    EN = "en"
    ZH = "zh"
    JA = "ja"
    KO = "ko"
    DE = "de"
    FR = "fr"
    ES = "es"
    PT = "pt"
    RU = "ru"
    IT = "it"
    OTHER = "other"


class Verdict(StrEnum):
    YES = "yes"
    NO = "no"
    UNCERTAIN = "uncertain"


_LANGUAGE_ALIASES: dict[NormalizedLanguage, frozenset[str]] = {
    NormalizedLanguage.EN: frozenset({"en", "en-us", "en-gb", "english", "eng", "英语", "英文"}),
    NormalizedLanguage.ZH: frozenset({
        "zh", "zh-cn", "zh-sg", "zh-hans", "zh-hant", "zh-tw", "zh-hk",
        "chinese", "zhongwen", "中文", "简体中文", "繁體中文", "漢語", "汉语", "華語", "华语",
    }),
    NormalizedLanguage.JA: frozenset({"ja", "ja-jp", "japanese", "日本語", "にほんご", "日语", "日文"}),
    NormalizedLanguage.KO: frozenset({
        "ko", "ko-kr", "korean", "한국어", "한글", "韓國語", "韩语", "韓文", "朝鲜语",
    }),
    NormalizedLanguage.DE: frozenset({"de", "de-de", "german", "deutsch", "德语", "德文"}),
    NormalizedLanguage.FR: frozenset({"fr", "fr-fr", "french", "francais", "français", "法语", "法文"}),
    NormalizedLanguage.ES: frozenset({"es", "es-es", "spanish", "espanol", "español", "西班牙语", "西文"}),
    NormalizedLanguage.PT: frozenset({
        "pt", "pt-pt", "pt-br", "portuguese", "portugues", "português", "葡萄牙语", "葡文",
    }),
    NormalizedLanguage.RU: frozenset({"ru", "ru-ru", "russian", "русский", "俄语", "俄文"}),
    NormalizedLanguage.IT: frozenset({"it", "it-it", "italian", "italiano", "意大利语", "意大利文"}),
}

LATIN_LANGUAGES = frozenset({
    NormalizedLanguage.DE,
    NormalizedLanguage.FR,
    NormalizedLanguage.ES,
    NormalizedLanguage.PT,
    NormalizedLanguage.IT,
})


def normalize_language_code(text: str) -> NormalizedLanguage:
    """Map a language code or name (English, native or Chinese) to a known language."""
    key = (text or "").strip().lower()
    if not key:
        return NormalizedLanguage.OTHER
    for language, aliases in _LANGUAGE_ALIASES.items():
        if key in aliases:
            return language
    return NormalizedLanguage.OTHER


def extract_narrative_text(message: str) -> str:
    """Header description plus body lines, without footers or bullet markers."""
    if not message:
        return ""
    lines = message.split("\n")
    header = lines[0]
    _, colon, rest = header.partition(":")
    description = rest.strip() if colon else header.strip()

    body_start, footers_start = body_bounds(lines)
    body: list[str] = []
    for line in lines[body_start:footers_start]:
        m = BULLET_RE.match(line)
        body.append(m.group(2) if m else line)
    return " ".join([description, *body]).strip()


@dataclass(frozen=True)
class ScriptCounts:
    ascii_letters: int = 0
    cjk: int = 0
    hiragana: int = 0
    katakana: int = 0
    hangul: int = 0
    cyrillic: int = 0

    @property
    def kana(self) -> int:
        return self.hiragana + self.katakana

    @property
    def total(self) -> int:
        return self.ascii_letters + self.cjk + self.kana + self.hangul + self.cyrillic


def count_scripts(text: str) -> ScriptCounts:
    """Count letters per writing system. Other characters are ignored."""
    ascii_letters = cjk = hiragana = katakana = hangul = cyrillic = 0
    for ch in text:
        code = ord(ch)
        if 0x41 <= code <= 0x5A or 0x61 <= code <= 0x7A:
            ascii_letters += 1
        elif 0x3400 <= code <= 0x4DBF or 0x4E00 <= code <= 0x9FFF or 0xF900 <= code <= 0xFAFF:
            cjk += 1
        elif 0x3040 <= code <= 0x309F:
            hiragana += 1
        elif 0x30A0 <= code <= 0x30FF or 0x31F0 <= code <= 0x31FF:
            katakana += 1
        elif 0x1100 <= code <= 0x11FF or 0x3130 <= code <= 0x318F or 0xAC00 <= code <= 0xD7AF:
            hangul += 1
        elif 0x0400 <= code <= 0x052F:
            cyrillic += 1
    return ScriptCounts(ascii_letters, cjk, hiragana, katakana, hangul, cyrillic)


def _count(pattern: str, text: str) -> int:
    return len(re.findall(pattern, text))


def detect_latin_language(text: str, margin: int = 2) -> NormalizedLanguage | None:
    """Guess de/fr/es/pt/it from diacritics, or None when ambiguous."""
    s = (text or "").lower()
    if not s:
        return None

    # Strong markers
    if re.search(r"[ãõ]", s):
        return NormalizedLanguage.PT
    if re.search(r"[ñ¡¿]", s):
        return NormalizedLanguage.ES
    if "ß" in s:
        return NormalizedLanguage.DE
    if "œ" in s:
        return NormalizedLanguage.FR

    scores = [
        (NormalizedLanguage.DE, _count(r"[äöü]", s) + 2 * _count(r"ß", s)),
        (NormalizedLanguage.FR, _count(r"[àâçéèêëîïôœùûüÿ]", s) + _count(r"œ", s)),
        (NormalizedLanguage.ES, _count(r"[áéíóúñü]", s) + 2 * _count(r"[¡¿]", s)),
        (NormalizedLanguage.PT, _count(r"[áàâãéêíóôõúç]", s) + 2 * _count(r"[ãõ]", s)),
        (NormalizedLanguage.IT, _count(r"[àèéìíòóù]", s)),
    ]
    scores.sort(key=lambda item: item[1], reverse=True)
    (leader, best), (_, runner_up) = scores[0], scores[1]
    if best == 0:
        return None
    if best >= runner_up + margin:
        return leader
    return None


def is_likely_target_language(
    text: str,
    target: NormalizedLanguage | str,
    *,
    latin_margin: int = 2,
    zh_min_ideographs: int = 4,
) -> Verdict:
    """Three-valued guess whether ``text`` is written in ``target``."""
    try:
        target = NormalizedLanguage(target)
    except ValueError:
        target = NormalizedLanguage.OTHER
    c = count_scripts(text)
    if c.total == 0:
        return Verdict.UNCERTAIN

    match target:
        case NormalizedLanguage.EN:
            non_latin = c.cjk + c.kana + c.hangul + c.cyrillic
            if non_latin == 0:
                return Verdict.YES
            if c.ascii_letters == 0:
                return Verdict.NO
        case NormalizedLanguage.ZH:
            if c.cjk >= zh_min_ideographs and c.kana + c.hangul == 0:
                return Verdict.YES
            if c.cjk >= 2 and c.cjk >= c.ascii_letters:
                return Verdict.YES
            if c.cjk == 0 and c.kana + c.hangul > 0:
                return Verdict.NO
        case NormalizedLanguage.JA:
            if c.kana >= 2:
                return Verdict.YES
            if c.cjk >= 2 and c.kana >= 1:
                return Verdict.YES
            if c.kana + c.hangul == 0 and c.ascii_letters > 0:
                return Verdict.NO
        case NormalizedLanguage.KO:
            if c.hangul >= 2:
                return Verdict.YES
            if c.hangul == 0 and c.kana + c.cjk > 0:
                return Verdict.NO
        case NormalizedLanguage.RU:
            if c.cyrillic >= 2:
                return Verdict.YES
            if c.cyrillic == 0 and c.cjk + c.kana + c.hangul > 0:
                return Verdict.NO
        case _ if target in LATIN_LANGUAGES:
            detected = detect_latin_language(text, latin_margin)
            if detected == target:
                return Verdict.YES
            if detected is not None:
                return Verdict.NO
            other_scripts = c.cjk + c.kana + c.hangul + c.cyrillic
            if other_scripts > 0 and c.ascii_letters == 0:
                return Verdict.NO
    return Verdict.UNCERTAIN


class LanguageEnforcer:
    """Rewrites the narrative of a commit message into the target language.

    Types, scopes, footer tokens, code identifiers and the ``!`` marker
    are preserved by the prompt. A reply that is blank or breaks the
    header is discarded in favour of the input.
    """

    def __init__(
        self,
        executor: StructuredCallExecutor,
        *,
        max_header_length: int = 72,
        latin_margin: int = 2,
        zh_min_ideographs: int = 4,
    ) -> None:
        self._executor = executor
        self._max_header_length = max_header_length
        self._latin_margin = latin_margin
        self._zh_min_ideographs = zh_min_ideographs

    def needs_rewrite(self, message: str, target_language: str) -> bool:
        if not (target_language or "").strip():
            return False
        normalized = normalize_language_code(target_language)
        if normalized == NormalizedLanguage.OTHER:
            return True
        verdict = is_likely_target_language(
            extract_narrative_text(message),
            normalized,
            latin_margin=self._latin_margin,
            zh_min_ideographs=self._zh_min_ideographs,
        )
        logger.debug("Language check for %s: %s", normalized, verdict)
        return verdict != Verdict.YES

    async def enforce(
        self,
        message: str,
        target_language: str,
        *,
        user_template: str = "",
        allowed_types: Sequence[str] | None = None,
    ) -> tuple[str, bool]:
        """Return the (possibly rewritten) message and whether enforcement failed."""
        if not self.needs_rewrite(message, target_language):
            return message, False

        messages = build_language_messages(
            message, target_language.strip(), user_template=user_template,
        )
        try:
            reply = await self._executor.execute(
                messages, RequestKind.LANGUAGE_FIX, max_attempts=1,
            )
        except (SchemaExhausted, UpstreamFailure) as e:
            logger.warning("Language enforcement failed, keeping the message: %s", e)
            return message, True

        rewritten = reply.commit_message.strip()
        if not rewritten:
            return message, True
        if not check_header(rewritten, self._max_header_length, allowed_types).ok:
            logger.warning("Language rewrite broke the commit header, discarding it")
            return message, True
        return rewritten, False
