"""Command-line entry point: ingest a document, inspect its chunks, ask questions."""

import argparse
import logging
import sys
from pathlib import Path

from docqa.config import find_config_path, load_config, with_overrides
from docqa.exceptions import DocQAError
from docqa.loaders import get_loader_for_file
from docqa.models import ChatRequest
from docqa.pipelines import build_pipelines, create_splitter_from_config, new_doc_id

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _load_config(config_path: Path | None) -> dict:
    try:
        return load_config(find_config_path(config_path))
    except FileNotFoundError:
        logger.warning("No config.toml found, using defaults")
        return {}


def cmd_ingest(args: argparse.Namespace) -> int:
    pipelines = build_pipelines(_load_config(args.config))
    result = pipelines.ingestion.ingest_file(args.file)

    print("\n=== Ingestion Complete ===")
    print(f"Document id: {result.doc_id}")
    print(f"Pages: {result.page_count}")
    print(f"Chunks created: {result.chunk_count}")
    return 0


def cmd_chunk(args: argparse.Namespace) -> int:
    splitter = create_splitter_from_config(_load_config(args.config))
    pages = get_loader_for_file(args.file).extract_file(args.file)
    chunks = splitter.split_pages(pages, new_doc_id())

    for chunk in chunks:
        preview = chunk.text[:60].replace("\n", " ")
        print(
            f"{chunk.id}  page {chunk.page_number:>3}  "
            f"[{chunk.char_start}:{chunk.char_end}]  {len(chunk.text):>5} chars  {preview}"
        )
    print(f"\n{len(chunks)} chunks from {len(pages)} pages")
    return 0


def cmd_ask(args: argparse.Namespace) -> int:
    config = with_overrides(
        _load_config(args.config),
        {
            "retrieval.use_mmr": False if args.no_mmr else None,
            "retrieval.rerank": True if args.rerank else None,
        },
    )

    pipelines = build_pipelines(config)
    upload = pipelines.ingestion.ingest_file(args.file)

    request = ChatRequest(doc_id=upload.doc_id, question=args.question, top_k=args.top_k)
    exit_code = 0
    for event in pipelines.chat.stream_answer(request):
        if args.json:
            sys.stdout.write(event.to_sse())
        elif event.type == "text":
            sys.stdout.write(event.text or "")
        elif event.type == "done":
            print("\n\nSources:")
            for citation in event.citations or []:
                marker = " (inferred)" if citation.fallback else ""
                print(f"  page {citation.page_number}, {citation.chunk_id}{marker}: {citation.excerpt}")
        else:
            print(f"\nError: {event.error}", file=sys.stderr)
        sys.stdout.flush()

        if event.type == "error":
            exit_code = 1
    return exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docqa",
        description="Question answering over a single uploaded document",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.toml in project root)",
    )
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", parents=[common], help="Extract, chunk, embed and store a document")
    ingest.add_argument("file", type=Path)
    ingest.set_defaults(handler=cmd_ingest)

    chunk = subparsers.add_parser("chunk", parents=[common], help="Show how a document would be chunked")
    chunk.add_argument("file", type=Path)
    chunk.set_defaults(handler=cmd_chunk)

    ask = subparsers.add_parser("ask", parents=[common], help="Ingest a document and answer a question about it")
    ask.add_argument("file", type=Path)
    ask.add_argument("question")
    ask.add_argument("--top-k", type=int, default=None, help="Number of chunks to retrieve (1-20, default from config)")
    ask.add_argument("--no-mmr", action="store_true", help="Rank by similarity only")
    ask.add_argument("--rerank", action="store_true", help="Boost chunks containing query terms")
    ask.add_argument("--json", action="store_true", help="Print the event stream as SSE frames")
    ask.set_defaults(handler=cmd_ask)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        return args.handler(args)
    except (DocQAError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
