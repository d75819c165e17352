#!/usr/bin/env python3
"""
HiWords CLI Interface
Command-line interface for vocabulary lookup, morphology and text matching
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from hiwords.core.config import BookConfig, HiWordsConfig, configure_logging
from hiwords.core.highlighter import WordMatch
from hiwords.core.workspace import HiWordsWorkspace

console = Console()

HELP_TEXT = """
[bold]Available Commands:[/bold]
  /help                     - Show this help
  /lookup <word>            - Show the definition of a word (inflections included)
  /analyze <word>           - Show the morphological analysis of a word
  /match <text>             - Highlight vocabulary in a piece of text
  /add <word> <definition>  - Add a word to the first vocabulary book
  /master <word>            - Mark a word as mastered (/master -<word> to undo)
  /stats                    - Show vocabulary and index statistics
  /reindex                  - Pick up changes in the notes directory
  /exit                     - Exit the program
"""


class HiWordsCLI:
    """Command-line interface for HiWords"""

    def __init__(self, config: HiWordsConfig):
        self.config = config
        self.workspace = HiWordsWorkspace(config)

    async def start(self, index_documents: bool = True):
        with console.status("[bold green]Loading vocabulary books..."):
            await self.workspace.start(index_documents=index_documents)

        stats = self.workspace.store.get_stats()
        console.print(
            f"✅ Loaded {stats['total_words']} words from {stats['enabled_books']} book(s)",
            style="green"
        )
        if not self.workspace.analyzer.backend_available and self.workspace.analyzer.is_initialized:
            console.print("⚠️  Korean tokenizer unavailable, using rule-based analysis", style="yellow")

    # ==================== Actions ====================

    async def lookup(self, word: str):
        definition = await self.workspace.lookup(word)
        if definition is None:
            console.print(f"No definition found for '{word}'", style="yellow")
            return None

        body = f"[bold]{definition.word}[/bold]\n{definition.definition}"
        if definition.etymology:
            body += f"\n\n[dim]Etymology: {definition.etymology}[/dim]"
        if definition.mastered:
            body += "\n\n[green]✔ mastered[/green]"

        inflections = sorted(self.workspace.store.get_all_inflections(definition.word) - {definition.word})
        if inflections:
            body += f"\n\n[cyan]Seen as:[/cyan] {', '.join(inflections[:15])}"

        console.print(Panel(body, title=f"📖 {word}", border_style="cyan"))
        return definition

    async def analyze(self, word: str):
        result = await self.workspace.analyze(word)
        if result is None:
            console.print(f"'{word}' is not Korean text; nothing to analyze", style="yellow")
            return None

        table = Table(title="🔬 Morphological Analysis")
        table.add_column("Surface", style="cyan")
        table.add_column("Base form", style="green")
        table.add_column("POS", style="yellow")
        table.add_column("Confidence", style="magenta")
        table.add_row(result.surface, result.base_form, result.part_of_speech, f"{result.confidence:.2f}")
        console.print(table)
        return result

    def match(self, text: str) -> List[WordMatch]:
        matches = self.workspace.match_text(text)

        highlighted = Text(text)
        for m in matches:
            highlighted.stylize("bold underline magenta", m.start, m.end)
        console.print(Panel(highlighted, title="✨ Highlighted", border_style="magenta"))

        if matches:
            table = Table(title=f"Found {len(matches)} word(s)")
            table.add_column("Found", style="cyan")
            table.add_column("Word", style="green")
            table.add_column("Definition", style="white", overflow="fold")
            table.add_column("Span", style="dim")
            for m in matches:
                table.add_row(m.word, m.base_form or m.word, m.definition.definition, f"{m.start}-{m.end}")
            console.print(table)
        else:
            console.print("No vocabulary words found.", style="yellow")
        return matches

    def add_word(self, word: str, definition: str):
        sources = self.workspace.store.source_ids
        if not sources:
            console.print("❌ No vocabulary book configured (use --books)", style="red")
            return None
        try:
            added = self.workspace.add_word(sources[0], word, definition)
        except ValueError as e:
            console.print(f"❌ {e}", style="red")
            return None
        console.print(f"✅ Added '{added.word}' to {sources[0]}", style="green")
        return added

    async def master(self, word: str, mastered: bool = True):
        if await self.workspace.set_mastered(word, mastered):
            state = "mastered" if mastered else "not mastered"
            console.print(f"✅ '{word}' marked as {state}", style="green")
        else:
            console.print(f"❌ Could not update '{word}'", style="red")

    def show_stats(self):
        stats = self.workspace.get_stats()
        vocabulary, morphology, mastered = stats["vocabulary"], stats["morphology"], stats["mastered"]

        table = Table(title="📊 HiWords Statistics")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Vocabulary Books", f"{vocabulary['enabled_books']} / {vocabulary['total_books']}")
        table.add_row("Total Words", str(vocabulary["total_words"]))
        table.add_row("Mastered Words",
                      f"{mastered['total_mastered']} ({mastered['mastered_percentage']:.1f}%)")
        table.add_row("Pending Writes", str(vocabulary["pending_writes"]))
        table.add_row("Indexed Documents", str(morphology["documents"]))
        table.add_row("Base Forms", str(morphology["base_forms"]))
        table.add_row("Inflections", str(morphology["surfaces"]))
        table.add_row("Korean Tokenizer", "available" if morphology["backend_available"] else "rule-based")

        console.print(table)

    async def reindex(self):
        with console.status("[bold green]Scanning notes..."):
            count = await self.workspace.reindex()
        console.print(f"🔄 {count} document change(s) applied", style="green")

    # ==================== Interactive mode ====================

    async def interactive_mode(self):
        """Run the interactive prompt"""
        console.print(Panel(
            "[bold cyan]HiWords Interactive Mode[/bold cyan]\n"
            "Type text to highlight it, or use commands:\n"
            "  /help - Show commands\n"
            "  /lookup <word> - Look up a word\n"
            "  /stats - Show statistics\n"
            "  /exit - Exit",
            title="📚 Welcome to HiWords",
            border_style="cyan"
        ))

        while True:
            try:
                line = await asyncio.to_thread(console.input, "\n[bold cyan]>[/bold cyan] ")

                if line.startswith("/"):
                    if not await self._handle_command(line):
                        break
                elif line.strip():
                    self.match(line)

            except (KeyboardInterrupt, EOFError):
                console.print("\n👋 Goodbye!", style="yellow")
                break
            except Exception as e:
                console.print(f"❌ Error: {str(e)}", style="red")

    async def _handle_command(self, command: str) -> bool:
        """Handle one /command; returns False when the session should end"""
        parts = command.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "/exit":
            console.print("👋 Goodbye!", style="yellow")
            return False

        elif cmd == "/help":
            console.print(Panel(HELP_TEXT, title="Help", border_style="green"))

        elif cmd == "/lookup" and arg:
            await self.lookup(arg)

        elif cmd == "/analyze" and arg:
            await self.analyze(arg)

        elif cmd == "/match" and arg:
            self.match(arg)

        elif cmd == "/add" and arg:
            word, _, definition = arg.partition(" ")
            self.add_word(word, definition.strip())

        elif cmd == "/master" and arg:
            if arg.startswith("-"):
                await self.master(arg[1:], mastered=False)
            else:
                await self.master(arg)

        elif cmd == "/stats":
            self.show_stats()

        elif cmd == "/reindex":
            await self.reindex()

        else:
            console.print(f"Unknown command: {cmd}", style="red")

        return True

    async def close(self):
        await self.workspace.close()


def build_config(args) -> HiWordsConfig:
    if args.config:
        config = HiWordsConfig.load_from_file(args.config)
    else:
        config = HiWordsConfig()

    if args.books:
        config.vocabulary.books = [BookConfig(path=p) for p in args.books]
    if args.notes:
        config.notes_dir = args.notes
    if args.debug:
        config.log_level = "DEBUG"
    return config


async def run(args, config: HiWordsConfig) -> int:
    cli = HiWordsCLI(config)
    try:
        await cli.start()

        acted = False
        if args.text or args.file:
            text = args.text
            if args.file:
                path = Path(args.file)
                if not path.exists():
                    console.print(f"File not found: {args.file}", style="red")
                    return 1
                text = path.read_text(encoding="utf-8")
            cli.match(text)
            acted = True

        if args.lookup:
            await cli.lookup(args.lookup)
            acted = True

        if args.analyze:
            await cli.analyze(args.analyze)
            acted = True

        if args.stats:
            cli.show_stats()
            acted = True

        if args.index:
            acted = True

        # Enter interactive mode if no specific action
        if not acted:
            await cli.interactive_mode()
        return 0
    finally:
        await cli.close()


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="HiWords - Vocabulary highlighting with Korean morphology",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Interactive mode
  hiwords --books words.yaml --notes ./notes

  # Highlight vocabulary in a text
  hiwords --books words.yaml --text "어제 한국어를 공부했습니다"

  # Look up an inflected word
  hiwords --books words.yaml --lookup 공부했습니다

  # Show statistics after indexing the notes
  hiwords --config hiwords.yaml --index --stats
        """
    )

    parser.add_argument("--config", "-c", help="YAML configuration file")
    parser.add_argument("--books", "-b", nargs="+", help="Vocabulary book files (YAML)")
    parser.add_argument("--notes", "-n", help="Notes directory to index")

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--text", "-t", help="Text to highlight")
    source.add_argument("--file", "-f", help="File whose text to highlight")

    parser.add_argument("--lookup", "-l", help="Word to look up")
    parser.add_argument("--analyze", "-a", help="Word to analyze morphologically")
    parser.add_argument("--index", action="store_true", help="Index the notes directory")
    parser.add_argument("--stats", action="store_true", help="Show statistics")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        console.print(f"❌ {e}", style="red")
        sys.exit(2)
    configure_logging(config.log_level)

    sys.exit(asyncio.run(run(args, config)))


if __name__ == "__main__":
    main()
