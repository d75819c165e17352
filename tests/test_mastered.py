"""
Tests for marking words as mastered
"""

import asyncio

import yaml

from hiwords.core.config import VocabularyConfig
from hiwords.core.mastered import MasteredService
from hiwords.core.vocabulary import VocabularyStore


def nodes_by_id(path):
    with open(path, encoding="utf-8") as f:
        return {n.get("id"): n for n in yaml.safe_load(f)["nodes"]}


def service_for(store):
    asyncio.run(store.load_all())
    return MasteredService(store)


class TestGroupMode:

    def test_mark_and_unmark(self, store, book_path):
        service = service_for(store)
        source_id = str(book_path)

        assert service.mark_mastered(source_id, "n1")
        assert service.is_mastered(source_id, "n1")
        assert "공부하다" not in store.get_words_for_highlight()

        asyncio.run(store.flush_pending_writes())
        assert nodes_by_id(book_path)["n1"]["group"] == "Mastered"

        assert service.unmark_mastered(source_id, "n1")
        asyncio.run(store.flush_pending_writes())
        assert "group" not in nodes_by_id(book_path)["n1"]
        assert "공부하다" in store.get_words_for_highlight()

    def test_unknown_node(self, store, book_path):
        service = service_for(store)
        assert not service.mark_mastered(str(book_path), "missing")

    def test_batch_and_listing(self, store, book_path):
        service = service_for(store)
        source_id = str(book_path)

        marked = service.batch_mark_mastered([(source_id, "n1"), (source_id, "n3"), (source_id, "nope")])

        assert marked == 2
        assert sorted(d.word for d in service.get_mastered_words()) == ["Apple", "공부하다", "먹다"]
        assert service.get_mastered_words("other-book") == []

    def test_stats(self, store, book_path):
        service = service_for(store)
        stats = service.get_mastered_stats()

        assert stats["total_mastered"] == 1
        assert stats["total_words"] == 4
        assert stats["mastered_percentage"] == 25.0
        assert stats["by_book"][str(book_path)] == {"mastered": 1, "total": 4}


class TestColorMode:

    def test_mastery_is_a_color(self, vocabulary_config, analyzer, book_path):
        vocabulary_config.mastered_detection = "color"
        store = VocabularyStore(vocabulary_config, analyzer)
        service = service_for(store)
        source_id = str(book_path)

        # the Mastered group means nothing in color mode
        assert not service.is_mastered(source_id, "n2")

        assert service.mark_mastered(source_id, "n3")
        asyncio.run(store.flush_pending_writes())

        node = nodes_by_id(book_path)["n3"]
        assert node["color"] == "4"
        assert "apple" not in store.get_words_for_highlight()

    def test_sync_repairs_drifted_markers(self, vocabulary_config, analyzer, book_path):
        vocabulary_config.mastered_detection = "color"
        store = VocabularyStore(vocabulary_config, analyzer)
        service = service_for(store)
        source_id = str(book_path)

        store.get_definition_by_node_id(source_id, "n1").mastered = True

        assert service.sync_mastered_status(source_id) == 1
        assert store.get_definition_by_node_id(source_id, "n1").color == "4"


def test_disabled_feature(store, book_path):
    store.config.enable_mastered_feature = False
    service = service_for(store)

    assert not service.mark_mastered(str(book_path), "n1")
    assert not service.is_mastered(str(book_path), "n2")
    assert service.get_mastered_stats()["total_mastered"] == 0
