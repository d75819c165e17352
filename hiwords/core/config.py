"""
HiWords Central Configuration
Vocabulary books, morphology backend, matching and write-back parameters
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
import logging
import os

VALID_MASTERED_DETECTION = ("group", "color")


@dataclass
class BookConfig:
    """A single vocabulary book (YAML file) to load"""
    path: str
    name: str = ""
    enabled: bool = True

    def __post_init__(self):
        if not self.name:
            self.name = os.path.splitext(os.path.basename(self.path))[0]


@dataclass
class MorphologyConfig:
    """Configuration for the Korean morphology layer"""

    enabled: bool = True

    # spaCy pipelines tried in order; "ko" means spacy.blank("ko") (mecab-ko tokenizer)
    spacy_models: List[str] = field(default_factory=lambda: ["ko"])

    # Trailing grammatical-ending tokens merged into one compound
    max_ending_lookahead: int = 5


@dataclass
class MatchingConfig:
    """Configuration for live matching"""
    debounce_seconds: float = 0.3
    performance_warning_ms: float = 100.0


@dataclass
class VocabularyConfig:
    """Configuration for vocabulary books and mastery"""

    books: List[BookConfig] = field(default_factory=list)
    enable_mastered_feature: bool = True

    # 'group': node sits in the "Mastered" group; 'color': node color is "4"
    mastered_detection: str = "group"

    # Debounce window for batched write-back to a book
    write_back_delay: float = 1.0

    def __post_init__(self):
        self.books = [b if isinstance(b, BookConfig) else BookConfig(**b) for b in self.books]
        if self.mastered_detection not in VALID_MASTERED_DETECTION:
            raise ValueError(f"Unknown mastered_detection mode: {self.mastered_detection}")


@dataclass
class HiWordsConfig:
    """Main configuration class combining all settings"""

    morphology: MorphologyConfig
    matching: MatchingConfig
    vocabulary: VocabularyConfig

    # Paths
    notes_dir: str = "./notes"

    # Logging
    log_level: str = "INFO"

    def __init__(self,
                 morphology: Optional[MorphologyConfig] = None,
                 matching: Optional[MatchingConfig] = None,
                 vocabulary: Optional[VocabularyConfig] = None,
                 notes_dir: str = "./notes",
                 log_level: str = "INFO"):
        """Initialize with optional custom configurations"""
        self.morphology = morphology or MorphologyConfig()
        self.matching = matching or MatchingConfig()
        self.vocabulary = vocabulary or VocabularyConfig()
        self.notes_dir = notes_dir
        self.log_level = log_level

        # Override with environment variables if present
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load configuration overrides from environment variables"""
        if os.getenv("HIWORDS_NOTES_DIR"):
            self.notes_dir = os.getenv("HIWORDS_NOTES_DIR")

        if os.getenv("HIWORDS_BOOKS"):
            paths = [p for p in os.getenv("HIWORDS_BOOKS").split(os.pathsep) if p]
            self.vocabulary.books = [BookConfig(path=p) for p in paths]

        mode = os.getenv("HIWORDS_MASTERED_DETECTION", "").lower()
        if mode in VALID_MASTERED_DETECTION:
            self.vocabulary.mastered_detection = mode

        if os.getenv("HIWORDS_DISABLE_MORPHOLOGY", "").lower() in ("true", "1", "yes"):
            self.morphology.enabled = False

        if os.getenv("HIWORDS_SPACY_MODELS"):
            models = [m.strip() for m in os.getenv("HIWORDS_SPACY_MODELS").split(",") if m.strip()]
            if models:
                self.morphology.spacy_models = models

        # Debug override
        if os.getenv("HIWORDS_DEBUG", "").lower() in ("true", "1", "yes"):
            self.log_level = "DEBUG"

    @classmethod
    def load_from_file(cls, config_path: str) -> 'HiWordsConfig':
        """Load configuration from YAML file"""
        try:
            import yaml
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}

            morphology = MorphologyConfig(**config_data.get('morphology', {}))
            matching = MatchingConfig(**config_data.get('matching', {}))
            vocabulary = VocabularyConfig(**config_data.get('vocabulary', {}))

            config = cls(morphology=morphology, matching=matching, vocabulary=vocabulary)

            # Override other settings
            for key, value in config_data.items():
                if key not in ['morphology', 'matching', 'vocabulary'] and hasattr(config, key):
                    setattr(config, key, value)

            # Environment still wins over the file
            config._load_env_overrides()
            return config

        except ImportError:
            raise ImportError("PyYAML is required to load config from file. Install with: pip install pyyaml")
        except Exception as e:
            raise ValueError(f"Failed to load config from {config_path}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'morphology': {
                'enabled': self.morphology.enabled,
                'spacy_models': list(self.morphology.spacy_models),
                'max_ending_lookahead': self.morphology.max_ending_lookahead
            },
            'matching': {
                'debounce_seconds': self.matching.debounce_seconds,
                'performance_warning_ms': self.matching.performance_warning_ms
            },
            'vocabulary': {
                'books': [
                    {'path': b.path, 'name': b.name, 'enabled': b.enabled}
                    for b in self.vocabulary.books
                ],
                'enable_mastered_feature': self.vocabulary.enable_mastered_feature,
                'mastered_detection': self.vocabulary.mastered_detection,
                'write_back_delay': self.vocabulary.write_back_delay
            },
            'notes_dir': self.notes_dir,
            'log_level': self.log_level
        }

    def save_to_file(self, config_path: str):
        """Save configuration to YAML file"""
        try:
            import yaml

            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2, allow_unicode=True)

        except ImportError:
            raise ImportError("PyYAML is required to save config to file. Install with: pip install pyyaml")


def configure_logging(level: str = "INFO"):
    """Configure root logging the way the CLI and API server expect"""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
