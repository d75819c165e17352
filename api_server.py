#!/usr/bin/env python3
"""
HiWords REST API Server
HTTP endpoints for editors and reading frontends to match text and look up vocabulary
"""

from flask import Flask, request, jsonify
from flask_cors import CORS
import asyncio
import threading
import time

from hiwords.core.config import HiWordsConfig, configure_logging
from hiwords.core.workspace import HiWordsWorkspace

app = Flask(__name__)
CORS(app)  # Enable CORS for browser frontends

# Global components (initialized once)
workspace = None
event_loop = None
loop_thread = None

REQUEST_TIMEOUT = 30


def run_async(coro, timeout: float = REQUEST_TIMEOUT):
    """Run a coroutine on the workspace event loop and wait for its result"""
    future = asyncio.run_coroutine_threadsafe(coro, event_loop)
    return future.result(timeout)


async def _call(fn, *args, **kwargs):
    return fn(*args, **kwargs)


def call_in_loop(fn, *args, **kwargs):
    """Run a plain function on the workspace event loop"""
    return run_async(_call(fn, *args, **kwargs))


def initialize_components(config: HiWordsConfig = None, backend=None) -> bool:
    """Start the event loop thread and load the workspace on it"""
    global workspace, event_loop, loop_thread

    try:
        print("Initializing HiWords components...")
        event_loop = asyncio.new_event_loop()
        loop_thread = threading.Thread(target=event_loop.run_forever, name="hiwords-loop", daemon=True)
        loop_thread.start()

        async def _create():
            ws = HiWordsWorkspace(config, backend=backend)
            await ws.start()
            return ws

        workspace = run_async(_create(), timeout=300)
        stats = workspace.store.get_stats()
        print(f"Loaded {stats['total_words']} words from {stats['enabled_books']} book(s)")
        print("HiWords API server ready!")
        return True

    except Exception as e:
        print(f"Failed to initialize HiWords: {e}")
        return False


def shutdown_components():
    """Flush pending writes and stop the event loop thread"""
    global workspace, event_loop, loop_thread

    if workspace is not None and event_loop is not None:
        try:
            run_async(workspace.close())
        except Exception as e:
            print(f"Shutdown error: {e}")
    if event_loop is not None:
        event_loop.call_soon_threadsafe(event_loop.stop)
    if loop_thread is not None:
        loop_thread.join(timeout=5)
    if event_loop is not None:
        event_loop.close()

    workspace = None
    event_loop = None
    loop_thread = None


def _not_ready():
    return jsonify({"error": "HiWords is not initialized"}), 503


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        "status": "healthy",
        "message": "HiWords API is running",
        "ready": workspace is not None
    })


@app.route('/api/match', methods=['POST'])
def match_text():
    """Find vocabulary words (and their inflections) in a text"""
    if workspace is None:
        return _not_ready()

    try:
        data = request.get_json(silent=True) or {}
        text = data.get('text', '')

        if not text:
            return jsonify({"error": "No text provided"}), 400

        matches = call_in_loop(workspace.match_text, text)
        return jsonify({
            "matches": [m.to_dict() for m in matches],
            "count": len(matches)
        })

    except Exception as e:
        print(f"Match error: {e}")
        return jsonify({"error": f"Match failed: {str(e)}"}), 500


@app.route('/api/definition/<word>', methods=['GET'])
def get_definition(word):
    """Definition of a word, following its base form for inflected input"""
    if workspace is None:
        return _not_ready()

    try:
        definition = run_async(workspace.lookup(word))
        if definition is None:
            return jsonify({"error": f"No definition found for '{word}'"}), 404
        return jsonify(definition.to_dict())

    except Exception as e:
        print(f"Definition error: {e}")
        return jsonify({"error": f"Lookup failed: {str(e)}"}), 500


@app.route('/api/inflections/<base>', methods=['GET'])
def get_inflections(base):
    """Surfaces observed in indexed documents for a base form"""
    if workspace is None:
        return _not_ready()

    inflections = call_in_loop(workspace.store.get_all_inflections, base)
    return jsonify({"base_form": base, "inflections": sorted(inflections)})


@app.route('/api/analyze', methods=['POST'])
def analyze_word():
    """Morphological analysis of one word"""
    if workspace is None:
        return _not_ready()

    try:
        data = request.get_json(silent=True) or {}
        word = data.get('word', '')

        if not word:
            return jsonify({"error": "No word provided"}), 400

        result = run_async(workspace.analyze(word))
        if result is None:
            return jsonify({"word": word, "result": None})

        return jsonify({
            "word": word,
            "result": {
                "surface": result.surface,
                "base_form": result.base_form,
                "part_of_speech": result.part_of_speech,
                "confidence": result.confidence
            }
        })

    except Exception as e:
        print(f"Analyze error: {e}")
        return jsonify({"error": f"Analysis failed: {str(e)}"}), 500


@app.route('/api/documents', methods=['POST'])
def index_document():
    """
    Body: { "id": "notes/day1.md", "content": "...", "timestamp": 1700000000 }
    Returns: { "id": str, "indexed": bool }
    """
    if workspace is None:
        return _not_ready()

    try:
        data = request.get_json(silent=True) or {}
        doc_id = data.get('id')
        content = data.get('content')

        if not doc_id or content is None:
            return jsonify({"error": "Missing id or content"}), 400

        timestamp = data.get('timestamp', time.time_ns())
        changed = run_async(workspace.index_document(doc_id, content, timestamp))
        return jsonify({"id": doc_id, "indexed": changed})

    except Exception as e:
        print(f"Indexing error: {e}")
        return jsonify({"error": f"Indexing failed: {str(e)}"}), 500


@app.route('/api/documents/<path:doc_id>', methods=['DELETE'])
def remove_document(doc_id):
    """Drop a document from the morphology index"""
    if workspace is None:
        return _not_ready()

    removed = call_in_loop(workspace.remove_document, doc_id)
    if not removed:
        return jsonify({"error": f"Document '{doc_id}' is not indexed"}), 404
    return jsonify({"id": doc_id, "removed": True})


@app.route('/api/words', methods=['POST'])
def add_word():
    """
    Body: { "source": "books/verbs.yaml", "word": "...", "definition": "...",
            "etymology": "...", "color": 2 }
    The source defaults to the first configured vocabulary book.
    """
    if workspace is None:
        return _not_ready()

    try:
        data = request.get_json(silent=True) or {}
        word = data.get('word', '')

        if not word:
            return jsonify({"error": "No word provided"}), 400

        source = data.get('source')
        if not source:
            sources = workspace.store.source_ids
            if not sources:
                return jsonify({"error": "No vocabulary book configured"}), 400
            source = sources[0]

        added = call_in_loop(
            workspace.add_word,
            source,
            word,
            data.get('definition', ''),
            data.get('etymology'),
            data.get('color')
        )
        return jsonify(added.to_dict()), 201

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        print(f"Add word error: {e}")
        return jsonify({"error": f"Adding word failed: {str(e)}"}), 500


@app.route('/api/stats', methods=['GET'])
def get_stats():
    """Get system statistics"""
    if workspace is None:
        return _not_ready()

    try:
        return jsonify(call_in_loop(workspace.get_stats))
    except Exception as e:
        print(f"Stats error: {e}")
        return jsonify({"error": f"Stats failed: {str(e)}"}), 500


if __name__ == '__main__':
    print("Starting HiWords API server...")
    config = HiWordsConfig()
    configure_logging(config.log_level)

    if initialize_components(config):
        print("\nStarting Flask server on http://localhost:8000")
        print("Press Ctrl+C to stop\n")
        try:
            app.run(host='0.0.0.0', port=8000, debug=False)
        finally:
            shutdown_components()
    else:
        print("Failed to start HiWords API server")
