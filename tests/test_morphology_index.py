"""
Tests for the incremental morphology index
"""

import asyncio

from hiwords.core.morphology_index import IndexStatus, MorphologyIndex
from hiwords.core.morphology_rules import DocumentAnalysisResult, MorphologyAnalysisResult


class GatedAnalyzer:
    """Analyzer whose results are scripted per content and can be held back"""

    backend_available = True

    def __init__(self, results):
        self.results = results
        self.gates = {}
        self.calls = 0
        self.destroyed = False

    async def analyze_document(self, text):
        self.calls += 1
        if text in self.gates:
            await self.gates[text].wait()
        if text == "boom":
            raise RuntimeError("tokenizer crashed")

        result = DocumentAnalysisResult()
        for base, surfaces in self.results.get(text, {}).items():
            for surface in surfaces:
                result.add(MorphologyAnalysisResult(surface, base, "VV", 0.9))
        return result

    def destroy(self):
        self.destroyed = True


RESULTS = {
    "a": {"먹다": ["먹었어요", "먹는"]},
    "b": {"먹다": ["먹었어요"], "가다": ["갔다"]},
    "c": {"가다": ["간다"]},
}


def index_with(results=RESULTS, enabled=True):
    analyzer = GatedAnalyzer(results)
    return MorphologyIndex(analyzer, enabled=enabled), analyzer


class TestIndexing:

    def test_index_and_lookup(self):
        index, _ = index_with()

        assert asyncio.run(index.index_document("d1", 1, "a"))
        assert index.get_global_inflections("먹다") == {"먹었어요", "먹는"}
        assert index.get_document_inflections("먹다", "d1") == {"먹었어요", "먹는"}
        assert index.get_document_inflections("먹다", "other") == set()
        assert index.has_base_form("먹다")
        assert index.get_all_base_forms() == ["먹다"]

    def test_same_timestamp_is_a_no_op(self):
        index, analyzer = index_with()

        asyncio.run(index.index_document("d1", 1, "a"))
        assert not asyncio.run(index.index_document("d1", 1, "b"))

        assert analyzer.calls == 1
        assert index.get_global_inflections("가다") == set()

    def test_reindex_replaces_contribution(self):
        index, _ = index_with()

        asyncio.run(index.index_document("d1", 1, "a"))
        asyncio.run(index.index_document("d1", 2, "c"))

        assert not index.has_base_form("먹다")
        assert index.get_global_inflections("가다") == {"간다"}
        assert index.get_stats()["surfaces"] == 1

    def test_removal_keeps_surfaces_shared_with_other_documents(self):
        index, _ = index_with()
        asyncio.run(index.index_document("d1", 1, "a"))
        asyncio.run(index.index_document("d2", 1, "b"))

        assert index.remove_document("d1")

        assert index.get_global_inflections("먹다") == {"먹었어요"}
        assert index.get_global_inflections("가다") == {"갔다"}
        assert not index.remove_document("d1")

    def test_global_equals_union_of_documents(self):
        index, _ = index_with()
        for doc_id, content in (("d1", "a"), ("d2", "b"), ("d3", "c")):
            asyncio.run(index.index_document(doc_id, 1, content))
        index.remove_document("d2")
        asyncio.run(index.index_document("d3", 2, "b"))

        union = {}
        for doc_id in index.document_ids():
            for base, surfaces in index.entry(doc_id).base_form_to_surfaces.items():
                union.setdefault(base, set()).update(surfaces)

        for base in index.get_all_base_forms():
            assert index.get_global_inflections(base) == union[base]
        assert set(index.get_all_base_forms()) == set(union)

    def test_analysis_error_keeps_previous_entry(self):
        index, _ = index_with()
        asyncio.run(index.index_document("d1", 1, "a"))

        assert not asyncio.run(index.index_document("d1", 2, "boom"))

        assert index.entry("d1").timestamp == 1
        assert index.get_global_inflections("먹다") == {"먹었어요", "먹는"}

    def test_superseded_analysis_is_discarded(self):
        index, analyzer = index_with()

        async def scenario():
            analyzer.gates["a"] = asyncio.Event()
            slow = asyncio.ensure_future(index.index_document("d1", 1, "a"))
            await asyncio.sleep(0)
            fast = await index.index_document("d1", 2, "c")
            analyzer.gates["a"].set()
            return await slow, fast

        slow_result, fast_result = asyncio.run(scenario())

        assert fast_result is True
        assert slow_result is False
        assert index.entry("d1").timestamp == 2
        assert not index.has_base_form("먹다")

    def test_removal_during_analysis_wins(self):
        index, analyzer = index_with()
        asyncio.run(index.index_document("d1", 1, "c"))

        async def scenario():
            analyzer.gates["a"] = asyncio.Event()
            pending = asyncio.ensure_future(index.index_document("d1", 2, "a"))
            await asyncio.sleep(0)
            index.remove_document("d1")
            analyzer.gates["a"].set()
            return await pending

        assert asyncio.run(scenario()) is False
        assert not index.is_indexed("d1")
        assert index.get_all_base_forms() == []

    def test_rename(self):
        index, _ = index_with()
        asyncio.run(index.index_document("old.md", 1, "c"))

        asyncio.run(index.rename_document("old.md", "new.md", 1, "c"))

        assert not index.is_indexed("old.md")
        assert index.is_indexed("new.md")
        assert index.get_global_inflections("가다") == {"간다"}


class TestStatus:

    def test_status_transitions(self):
        index, _ = index_with()
        assert index.status("d1") == IndexStatus.UNINDEXED

        asyncio.run(index.index_document("d1", 1, "a"))
        assert index.status("d1", 1) == IndexStatus.INDEXED
        assert index.status("d1", 2) == IndexStatus.STALE

        index.remove_document("d1")
        assert index.status("d1") == IndexStatus.REMOVED

        asyncio.run(index.index_document("d1", 3, "a"))
        assert index.status("d1") == IndexStatus.INDEXED

    def test_documents_to_reindex(self):
        index, _ = index_with()
        asyncio.run(index.index_document("d1", 1, "a"))
        asyncio.run(index.index_document("d2", 1, "b"))

        stale = index.documents_to_reindex({"d1": 1, "d2": 5, "d3": 1})

        assert stale == ["d2", "d3"]


class TestLifecycle:

    def test_disabled_index(self):
        index, analyzer = index_with(enabled=False)

        assert not asyncio.run(index.index_document("d1", 1, "a"))
        assert analyzer.calls == 0
        assert index.get_global_inflections("먹다") == {"먹다"}
        assert index.get_document_inflections("먹다", "d1") == set()
        assert not index.has_base_form("먹다")

    def test_disabling_clears_everything(self):
        index, _ = index_with()
        asyncio.run(index.index_document("d1", 1, "a"))

        index.set_enabled(False)

        assert index.document_ids() == []
        assert index.get_all_base_forms() == []

        index.set_enabled(True)
        assert asyncio.run(index.index_document("d1", 1, "a"))

    def test_rebuild_global_index(self):
        index, _ = index_with()
        asyncio.run(index.index_document("d1", 1, "a"))
        index._global = {}

        index.rebuild_global_index()

        assert index.get_global_inflections("먹다") == {"먹었어요", "먹는"}

    def test_destroy_releases_analyzer(self):
        index, analyzer = index_with()
        asyncio.run(index.index_document("d1", 1, "a"))

        index.destroy()

        assert analyzer.destroyed
        assert index.get_stats()["documents"] == 0
