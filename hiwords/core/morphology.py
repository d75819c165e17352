"""
HiWords Morphology Analyzer
Korean base-form resolution on top of a pluggable tokenizer backend
"""

import asyncio
import logging
import warnings
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Sequence

import spacy

from .config import MorphologyConfig
from .morphology_rules import (
    CONFIDENCE_FALLBACK_MATCHED,
    CONFIDENCE_FALLBACK_UNMATCHED,
    CONFIDENCE_FIRST_TOKEN,
    CONFIDENCE_VERB_TOKEN,
    EMPTY_SUPPORT_VERB,
    INFINITIVE_MARKER,
    KOREAN_RUN_PATTERN,
    MAX_ENDING_LOOKAHEAD,
    DocumentAnalysisResult,
    MorphologyAnalysisResult,
    Token,
    ensure_infinitive,
    is_ending,
    is_korean_text,
    is_verb_or_adjective,
    match_compound,
    strip_ending,
)

logger = logging.getLogger(__name__)

__all__ = [
    "MorphologyAnalyzer",
    "MorphologyAnalysisResult",
    "DocumentAnalysisResult",
    "MorphologyBackendError",
    "SpacyKoreanBackend",
    "BackendAnalyzer",
    "RuleBasedAnalyzer",
    "Token",
    "normalize_token",
]


class MorphologyBackendError(RuntimeError):
    """Raised when a tokenizer backend cannot be loaded or fails to tokenize"""


# ==================== Token adapter ====================

def _clean_base(raw_base: Optional[str], surface: str) -> str:
    """
    Reduce backend lemma notations to a plain base form.

    Handles mecab expressions ("하/VV/*+았/EP/*"), spaCy Korean lemmas
    ("먹+었+다") and comma-joined feature strings ("NNG,*,공부").
    """
    if not raw_base or not isinstance(raw_base, str):
        return surface
    base = raw_base.split("+")[0]
    base = base.split(",")[-1]
    base = base.split("/")[0].strip()
    if not base or base == "*":
        return surface
    return base


def _token_from_details(raw: Mapping) -> Optional[Token]:
    # lindera-style: {"text": ..., "details": [pos, ..., expression at 7]}
    surface = raw.get("text") or raw.get("surface")
    details = raw.get("details") or []
    if not surface or not isinstance(surface, str):
        return None

    pos = details[0] if len(details) > 0 and details[0] else "UNKNOWN"
    expression = details[7] if len(details) > 7 else None
    base = _clean_base(expression, surface) if expression and expression != "*" else surface
    return Token(surface=surface, base=base, pos=str(pos))


def _token_from_mapping(raw: Mapping) -> Optional[Token]:
    if "details" in raw:
        return _token_from_details(raw)

    surface = raw.get("surface") or raw.get("text") or raw.get("form")
    if not surface or not isinstance(surface, str):
        return None

    pos = raw.get("pos") or raw.get("tag") or raw.get("part_of_speech") or "UNKNOWN"
    base = raw.get("base_form") or raw.get("lemma") or raw.get("dictionary_form")
    return Token(surface=surface, base=_clean_base(base, surface), pos=str(pos))


def _first_attr(raw: Any, names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = getattr(raw, name, None)
        if isinstance(value, str) and value:
            return value
    return None


def _token_from_object(raw: Any) -> Optional[Token]:
    # spaCy Token (text / tag_ / lemma_) or any object with surface/form/tag/lemma
    surface = _first_attr(raw, ("surface", "form", "text"))
    if not surface:
        return None

    pos = _first_attr(raw, ("tag_", "tag", "pos", "part_of_speech", "pos_")) or "UNKNOWN"
    base = _first_attr(raw, ("lemma_", "lemma", "base_form", "dictionary_form"))
    return Token(surface=surface, base=_clean_base(base, surface), pos=pos)


def normalize_token(raw: Any) -> Optional[Token]:
    """
    Convert one backend token into a Token

    Args:
        raw: Mapping- or object-shaped token from any supported backend

    Returns:
        Token, or None when the token carries no usable surface
    """
    try:
        if isinstance(raw, Token):
            return raw
        if isinstance(raw, Mapping):
            return _token_from_mapping(raw)
        return _token_from_object(raw)
    except (AttributeError, TypeError, IndexError, ValueError) as e:
        logger.debug(f"Skipping malformed token {raw!r}: {e}")
        return None


def normalize_tokens(raw_tokens: Optional[Sequence[Any]]) -> List[Token]:
    if not raw_tokens:
        return []
    tokens = []
    for raw in raw_tokens:
        token = normalize_token(raw)
        if token is not None:
            tokens.append(token)
    return tokens


# ==================== Backends ====================

class SpacyKoreanBackend:
    """
    Korean tokenizer backed by spaCy

    "ko" builds spacy.blank("ko"), whose tokenizer wraps mecab-ko through
    natto-py; any other name is passed to spacy.load().
    """

    # Class variable for pipeline caching
    _loaded_pipelines = {}

    def __init__(self, models: Optional[List[str]] = None):
        self.models = list(models) if models else ["ko"]
        self.nlp = None
        self.model_name: Optional[str] = None

    def load(self):
        """Load the first pipeline in the list that works"""
        if self.nlp is not None:
            return

        warnings.filterwarnings("ignore", message=".*W095.*")

        errors = []
        for name in self.models:
            if name in self._loaded_pipelines:
                self.nlp = self._loaded_pipelines[name]
                self.model_name = name
                logger.info(f"Using cached spaCy pipeline '{name}'")
                return

            try:
                nlp = spacy.blank("ko") if name == "ko" else spacy.load(name)
            except Exception as e:
                logger.warning(f"Could not load spaCy pipeline '{name}': {e}")
                errors.append(f"{name}: {e}")
                continue

            self._loaded_pipelines[name] = nlp
            self.nlp = nlp
            self.model_name = name
            logger.info(f"✅ Loaded spaCy pipeline '{name}'")
            return

        raise MorphologyBackendError(
            "No Korean spaCy pipeline could be loaded (" + "; ".join(errors) + ")"
        )

    def tokenize(self, text: str) -> List[Dict[str, str]]:
        if self.nlp is None:
            raise MorphologyBackendError("spaCy pipeline is not loaded")

        doc = self.nlp(text)
        full_tags = doc.user_data.get("full_tags") if doc.user_data else None

        tokens = []
        for i, tok in enumerate(doc):
            if tok.is_space:
                continue
            if full_tags and i < len(full_tags):
                tag = full_tags[i]
            else:
                tag = tok.tag_ or tok.pos_
            tokens.append({"surface": tok.text, "lemma": tok.lemma_, "pos": tag})
        return tokens

    def close(self):
        self.nlp = None
        self.model_name = None


def _call_backend(backend: Any, text: str):
    if hasattr(backend, "tokenize"):
        return backend.tokenize(text)
    if callable(backend):
        return backend(text)
    raise MorphologyBackendError(f"Unsupported tokenizer backend: {type(backend).__name__}")


# ==================== Analyzer implementations ====================

class RuleBasedAnalyzer:
    """Ending-table analyzer used when no tokenizer backend is available"""

    def analyze(self, word: str) -> MorphologyAnalysisResult:
        word = word.strip()
        stripped = strip_ending(word)
        if stripped:
            _, base_form = stripped
            return MorphologyAnalysisResult(
                surface=word,
                base_form=base_form,
                part_of_speech="VV",
                confidence=CONFIDENCE_FALLBACK_MATCHED
            )

        return MorphologyAnalysisResult(
            surface=word,
            base_form=word,
            part_of_speech="UNKNOWN",
            confidence=CONFIDENCE_FALLBACK_UNMATCHED
        )

    async def analyze_word(self, word: str) -> Optional[MorphologyAnalysisResult]:
        return self.analyze(word)

    async def analyze_document(self, text: str) -> DocumentAnalysisResult:
        result = DocumentAnalysisResult()
        for run in KOREAN_RUN_PATTERN.findall(text or ""):
            analysis = self.analyze(run)
            if analysis.confidence >= CONFIDENCE_FALLBACK_MATCHED:
                result.add(analysis)
        return result


class BackendAnalyzer:
    """Tokenizer-backed analyzer applying compound rules over normalized tokens"""

    def __init__(self, backend: Any, fallback: RuleBasedAnalyzer,
                 max_lookahead: int = MAX_ENDING_LOOKAHEAD):
        self.backend = backend
        self.fallback = fallback
        self.max_lookahead = max_lookahead

    def tokenize(self, text: str) -> List[Token]:
        try:
            raw_tokens = _call_backend(self.backend, text)
        except MorphologyBackendError:
            raise
        except Exception as e:
            raise MorphologyBackendError(f"Tokenization failed: {e}") from e
        return normalize_tokens(raw_tokens)

    def _select(self, tokens: List[Token], word: str) -> Optional[MorphologyAnalysisResult]:
        # (a) first compound pattern starting at any token
        for i in range(len(tokens)):
            found = match_compound(tokens, i, self.max_lookahead)
            if found:
                r = found.result
                return MorphologyAnalysisResult(word, r.base_form, r.part_of_speech, r.confidence)

        # (b) first verb/adjective token that is not the bare support verb
        for token in tokens:
            if is_verb_or_adjective(token.pos) and ensure_infinitive(token.base) != EMPTY_SUPPORT_VERB:
                return MorphologyAnalysisResult(word, token.base, token.pos, CONFIDENCE_VERB_TOKEN)

        # (c) first token with anything to offer
        for token in tokens:
            if token.base:
                return MorphologyAnalysisResult(word, token.base, token.pos, CONFIDENCE_FIRST_TOKEN)

        return None

    async def analyze_word(self, word: str) -> Optional[MorphologyAnalysisResult]:
        try:
            tokens = self.tokenize(word)
            result = self._select(tokens, word) if tokens else None
        except Exception as e:
            logger.error(f"Morphology analysis failed for '{word}', using fallback: {e}")
            result = None

        if result is None:
            return await self.fallback.analyze_word(word)
        return result

    async def analyze_document(self, text: str) -> DocumentAnalysisResult:
        tokens = self.tokenize(text)
        result = DocumentAnalysisResult()

        i = 0
        while i < len(tokens):
            found = match_compound(tokens, i, self.max_lookahead)
            if found:
                result.add(found.result)
                i = found.end
                continue

            token = tokens[i]
            i += 1
            if not is_korean_text(token.surface):
                continue
            verb_like = is_verb_or_adjective(token.pos)
            if verb_like or is_ending(token) or token.base.endswith(INFINITIVE_MARKER):
                result.add(MorphologyAnalysisResult(
                    surface=token.surface,
                    base_form=ensure_infinitive(token.base) if verb_like else token.base,
                    part_of_speech=token.pos,
                    confidence=_single_token_confidence(token)
                ))

        return result


def _single_token_confidence(token: Token) -> float:
    confidence = 0.8
    if token.base != token.surface:
        confidence += 0.1
    if token.head_tag in ("VV", "VA"):
        confidence += 0.1
    return min(confidence, 1.0)


# ==================== Public analyzer ====================

class MorphologyAnalyzer:
    """
    Korean morphology analyzer

    The backend is initialized lazily on first use, exactly once per
    analyzer: concurrent callers await the same initialization, and a
    failed initialization selects the rule-based analyzer for good.
    """

    def __init__(self,
                 config: Optional[MorphologyConfig] = None,
                 backend: Any = None,
                 backend_factory: Optional[Callable[[], Any]] = None):
        """
        Initialize the analyzer

        Args:
            config: Morphology configuration
            backend: Tokenizer to use instead of spaCy (callable or object with tokenize())
            backend_factory: Callable building the backend at initialization time
        """
        self.config = config or MorphologyConfig()
        self._injected_backend = backend
        self._backend_factory = backend_factory
        self._backend = backend
        self._rule_based = RuleBasedAnalyzer()
        self._impl = None
        self._init_task: Optional[asyncio.Future] = None
        self.backend_available = False

    @staticmethod
    def is_target_script(text: str) -> bool:
        """Whether the text contains Hangul"""
        return is_korean_text(text)

    @property
    def is_initialized(self) -> bool:
        return self._impl is not None

    async def ensure_initialized(self) -> bool:
        """Initialize the backend if needed; returns whether it is available"""
        if self._impl is not None:
            return self.backend_available
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        await self._init_task
        return self.backend_available

    def _build_backend(self):
        if self._backend is not None:
            return self._backend
        if self._backend_factory is not None:
            return self._backend_factory()
        if not self.config.enabled:
            raise MorphologyBackendError("Morphology backend disabled by configuration")
        return SpacyKoreanBackend(self.config.spacy_models)

    async def _initialize(self):
        try:
            backend = self._build_backend()
            if hasattr(backend, "load"):
                await asyncio.to_thread(backend.load)
            self._backend = backend
            self._impl = BackendAnalyzer(backend, self._rule_based, self.config.max_ending_lookahead)
            self.backend_available = True
            logger.info("✅ Korean morphology backend ready")
        except Exception as e:
            logger.warning(f"Morphology backend unavailable, using rule-based fallback: {e}")
            self._impl = self._rule_based
            self.backend_available = False

    async def analyze_word(self, word: str) -> Optional[MorphologyAnalysisResult]:
        """
        Resolve a word to its base form

        Args:
            word: Surface form as found in text

        Returns:
            Analysis result, or None when the word is not Korean
        """
        if not word or not self.is_target_script(word):
            return None

        await self.ensure_initialized()
        result = await self._impl.analyze_word(word.strip())
        if result is None:
            return None

        if is_verb_or_adjective(result.part_of_speech) and not result.base_form.endswith(INFINITIVE_MARKER):
            result = MorphologyAnalysisResult(
                surface=result.surface,
                base_form=result.base_form + INFINITIVE_MARKER,
                part_of_speech=result.part_of_speech,
                confidence=result.confidence
            )
        return result

    async def analyze_word_to_base_form(self, word: str) -> str:
        """Base form of the word, or the word itself when no analysis applies"""
        result = await self.analyze_word(word)
        return result.base_form if result else word

    async def analyze_document(self, text: str) -> DocumentAnalysisResult:
        """
        Analyze a whole document into base form -> surfaces

        Raises:
            MorphologyBackendError: When the backend fails on this text
        """
        if not text or not self.is_target_script(text):
            return DocumentAnalysisResult()

        await self.ensure_initialized()
        return await self._impl.analyze_document(text)

    def destroy(self):
        """Release the backend and reset initialization state"""
        if self._backend is not None and hasattr(self._backend, "close"):
            try:
                self._backend.close()
            except Exception as e:
                logger.warning(f"Error closing morphology backend: {e}")
        self._backend = self._injected_backend
        self._impl = None
        self._init_task = None
        self.backend_available = False
