from .config import HiWordsConfig, BookConfig, MorphologyConfig, MatchingConfig, VocabularyConfig
from .trie import Match, PrefixMatcher, remove_overlapping_matches
from .morphology import MorphologyAnalyzer, MorphologyAnalysisResult, DocumentAnalysisResult
from .morphology_index import MorphologyIndex, IndexStatus
from .sources import WordDefinition, YamlVocabularySource
from .vocabulary import VocabularyStore
from .highlighter import HighlighterRegistry, WordHighlighter, WordMatch
from .mastered import MasteredService
from .workspace import HiWordsWorkspace
