"""
Shared fixtures: a table-driven Korean tokenizer and a small vocabulary book
"""

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hiwords.core.config import BookConfig, HiWordsConfig, MatchingConfig, MorphologyConfig, VocabularyConfig  # noqa: E402
from hiwords.core.morphology import MorphologyAnalyzer  # noqa: E402
from hiwords.core.morphology_index import MorphologyIndex  # noqa: E402
from hiwords.core.vocabulary import VocabularyStore  # noqa: E402


def _tok(surface, pos, lemma=None):
    return {"surface": surface, "pos": pos, "lemma": lemma or surface}


# mecab-ko-dic style analyses of the chunks used across the tests
TOKEN_TABLE = {
    "공부했습니다": [_tok("공부", "NNG"), _tok("했", "XSV+EP", "하/XSV/*+았/EP/*"), _tok("습니다", "EF")],
    "공부하는": [_tok("공부", "NNG"), _tok("하", "XSV"), _tok("는", "ETM")],
    "먹었어요": [_tok("먹", "VV"), _tok("었", "EP"), _tok("어요", "EF")],
    "깨끗한": [_tok("깨끗", "XR"), _tok("한", "XSA+ETM", "하/XSA/*+ᆫ/ETM/*")],
    "거론되었다": [_tok("거론", "NNG"), _tok("되", "XSV"), _tok("었", "EP"), _tok("다", "EF")],
    "만들어진": [_tok("만들", "VV"), _tok("어", "EC"), _tok("진", "VX+ETM", "지/VX/*+ㄴ/ETM/*")],
    "갔다": [_tok("갔", "VV+EP", "가/VV/*+았/EP/*"), _tok("다", "EF")],
    "수학공부했다": [_tok("수학", "NNG"), _tok("공부", "NNG"), _tok("했", "XSV+EP", "하/XSV/*+았/EP/*"), _tok("다", "EF")],
    "매일공부했다": [_tok("매일", "MAG"), _tok("공부", "NNG"), _tok("했", "XSV+EP", "하/XSV/*+았/EP/*"), _tok("다", "EF")],
    "해서가": [_tok("해", "VX", "하"), _tok("서가", "VV", "서가")],
    "가": [_tok("가", "VV")],
}


class FakeKoreanBackend:
    """Whitespace tokenizer answering from TOKEN_TABLE; unknown chunks become nouns"""

    def __init__(self, table=None, fail_load=False):
        self.table = dict(TOKEN_TABLE if table is None else table)
        self.fail_load = fail_load
        self.load_calls = 0
        self.tokenize_calls = 0
        self.closed = False

    def load(self):
        self.load_calls += 1
        if self.fail_load:
            raise RuntimeError("mecab-ko-dic not found")

    def tokenize(self, text):
        self.tokenize_calls += 1
        tokens = []
        for chunk in text.split():
            tokens.extend(self.table.get(chunk, [_tok(chunk, "NNG")]))
        return tokens

    def close(self):
        self.closed = True


BOOK_YAML = """\
name: Korean verbs
nodes:
  - id: n1
    word: 공부하다
    definition: to study
    etymology: 工夫
  - id: n2
    word: 먹다
    definition: to eat
    group: Mastered
  - id: n3
    word: Apple
    definition: 사과
    color: 2
  - word: 가다
    definition: to go
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep HIWORDS_* variables of the developer's shell out of the tests"""
    for key in list(os.environ):
        if key.startswith("HIWORDS_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def backend():
    return FakeKoreanBackend()


@pytest.fixture
def analyzer(backend):
    return MorphologyAnalyzer(MorphologyConfig(), backend=backend)


@pytest.fixture
def book_path(tmp_path):
    path = tmp_path / "verbs.yaml"
    path.write_text(BOOK_YAML, encoding="utf-8")
    return path


@pytest.fixture
def vocabulary_config(book_path):
    return VocabularyConfig(books=[BookConfig(path=str(book_path))], write_back_delay=0.05)


@pytest.fixture
def store(vocabulary_config, analyzer):
    return VocabularyStore(vocabulary_config, analyzer, MorphologyIndex(analyzer))


@pytest.fixture
def notes_dir(tmp_path):
    path = tmp_path / "notes"
    path.mkdir()
    return path


@pytest.fixture
def hiwords_config(vocabulary_config, notes_dir):
    return HiWordsConfig(
        morphology=MorphologyConfig(),
        matching=MatchingConfig(debounce_seconds=0.01),
        vocabulary=vocabulary_config,
        notes_dir=str(notes_dir)
    )
