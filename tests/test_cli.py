from pathlib import Path
from unittest.mock import patch

import pytest

from docqa.cli import build_parser, main
from docqa.pipelines import (
    ChatPipeline,
    IngestionPipeline,
    Pipelines,
    RetrievalOptions,
    RetrievalPipeline,
)
from docqa.stores import MemoryVectorStore

from conftest import MockLLM


@pytest.fixture
def text_file(tmp_path: Path, sample_pages) -> Path:
    path = tmp_path / "plan.txt"
    path.write_text("\f".join(page.text for page in sample_pages))
    return path


@pytest.fixture
def pipelines(mock_embedder) -> Pipelines:
    store = MemoryVectorStore()
    retrieval = RetrievalPipeline(
        mock_embedder, store, options=RetrievalOptions(score_threshold=-1.0)
    )
    return Pipelines(
        ingestion=IngestionPipeline(mock_embedder, store),
        retrieval=retrieval,
        chat=ChatPipeline(retrieval=retrieval, llm=MockLLM()),
        vector_store=store,
    )


class TestParser:
    def test_ask_defaults(self) -> None:
        args = build_parser().parse_args(["ask", "doc.pdf", "What is the plan?"])
        assert args.top_k is None
        assert args.no_mmr is False
        assert args.json is False

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestChunkCommand:
    def test_prints_chunks(self, text_file, temp_config, capsys) -> None:
        exit_code = main(["chunk", str(text_file), "--config", str(temp_config)])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "page   1" in out
        assert "page   2" in out
        assert "chunks from 2 pages" in out

    def test_missing_file_returns_error(self, tmp_path, temp_config, capsys) -> None:
        exit_code = main(["chunk", str(tmp_path / "missing.txt"), "--config", str(temp_config)])

        assert exit_code == 1
        assert "Error" in capsys.readouterr().err

    def test_unsupported_extension_returns_error(self, tmp_path, temp_config) -> None:
        path = tmp_path / "sheet.xlsx"
        path.write_bytes(b"data")

        assert main(["chunk", str(path), "--config", str(temp_config)]) == 1


class TestAskCommand:
    def test_streams_answer_and_sources(self, text_file, temp_config, pipelines, capsys) -> None:
        with patch("docqa.cli.build_pipelines", return_value=pipelines), patch(
            "docqa.pipelines.chat.count_tokens",
            side_effect=lambda text, model="gpt-4": len(text) // 4,
        ):
            exit_code = main(
                ["ask", str(text_file), "When is the launch?", "--config", str(temp_config)]
            )

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Mock response" in out
        assert "Sources:" in out
        assert "(inferred)" in out

    def test_flags_override_retrieval_config(self, text_file, temp_config, pipelines) -> None:
        with patch("docqa.cli.build_pipelines", return_value=pipelines) as mock_build, patch(
            "docqa.pipelines.chat.count_tokens",
            side_effect=lambda text, model="gpt-4": len(text) // 4,
        ):
            main(
                [
                    "ask",
                    str(text_file),
                    "When is the launch?",
                    "--no-mmr",
                    "--rerank",
                    "--config",
                    str(temp_config),
                ]
            )

        config = mock_build.call_args[0][0]
        assert config["retrieval"]["use_mmr"] is False
        assert config["retrieval"]["rerank"] is True

    def test_json_output_is_sse(self, text_file, temp_config, pipelines, capsys) -> None:
        with patch("docqa.cli.build_pipelines", return_value=pipelines), patch(
            "docqa.pipelines.chat.count_tokens",
            side_effect=lambda text, model="gpt-4": len(text) // 4,
        ):
            main(["ask", str(text_file), "When is the launch?", "--json", "--config", str(temp_config)])

        frames = [f for f in capsys.readouterr().out.split("\n\n") if f]
        assert all(frame.startswith("data: ") for frame in frames)
        assert '"type":"done"' in frames[-1].replace(" ", "")
