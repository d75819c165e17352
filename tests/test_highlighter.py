"""
Tests for highlighters and the registry that refreshes them
"""

import asyncio

from hiwords.core.highlighter import HighlighterRegistry, WordHighlighter


def loaded(store):
    asyncio.run(store.load_all())
    return store


class TestWordHighlighter:

    def test_find_word_matches(self, store):
        highlighter = WordHighlighter(loaded(store))

        matches = highlighter.find_word_matches("나는 apple을 공부하다", offset=100)

        assert [(m.word, m.start, m.end) for m in matches] == [("Apple", 103, 108), ("공부하다", 110, 114)]
        assert matches[0].color == "2"
        assert matches[1].base_form == "공부하다"
        assert matches[1].to_dict()["definition"] == "to study"

    def test_debounced_update(self, store):
        loaded(store)
        seen = []

        async def scenario():
            highlighter = WordHighlighter(store, debounce_seconds=0.01, on_update=seen.append)
            highlighter.update("가다")
            highlighter.update("공부하다 가다")
            await highlighter.flush()
            return highlighter

        highlighter = asyncio.run(scenario())

        assert len(seen) == 1
        assert [m.word for m in highlighter.matches] == ["공부하다", "가다"]

    def test_matcher_is_a_snapshot(self, store, book_path):
        highlighter = WordHighlighter(loaded(store))
        highlighter.text = "마시다"

        store.add_word(str(book_path), "마시다", "to drink")
        assert highlighter.find_word_matches("마시다") == []

        assert [m.word for m in highlighter.force_update()] == ["마시다"]

    def test_destroy_unregisters(self, store):
        registry = HighlighterRegistry()
        highlighter = WordHighlighter(loaded(store), registry=registry)
        assert len(registry) == 1

        highlighter.destroy()

        assert len(registry) == 0
        assert highlighter.matches == []


class TestRegistry:

    def test_refresh_all_rebuilds_every_view(self, store, book_path):
        loaded(store)
        registry = HighlighterRegistry()
        first = WordHighlighter(store, registry=registry)
        second = WordHighlighter(store, registry=registry)
        first.text = "마시다"
        second.text = "물을 마시다"

        store.add_word(str(book_path), "마시다", "to drink")
        registry.refresh_all()

        assert [(m.word, m.start) for m in first.matches] == [("마시다", 0)]
        assert [(m.word, m.start) for m in second.matches] == [("마시다", 3)]

    def test_mastering_removes_highlight(self, store, book_path):
        loaded(store)
        registry = HighlighterRegistry()
        highlighter = WordHighlighter(store, registry=registry)
        highlighter.text = "공부하다"
        registry.refresh_all()
        assert len(highlighter.matches) == 1

        store.update_word(str(book_path), "n1", mastered=True)
        registry.refresh_all()

        assert highlighter.matches == []

    def test_failing_highlighter_does_not_stop_others(self, store):
        loaded(store)
        registry = HighlighterRegistry()
        healthy = WordHighlighter(store, registry=registry)
        broken = WordHighlighter(store, registry=registry)
        healthy.text = "가다"

        def explode():
            raise RuntimeError("view closed")

        broken.force_update = explode
        registry.refresh_all()

        assert [m.word for m in healthy.matches] == ["가다"]
