"""Tests for the Gemini, Tavily and document-loader adapters (no network)."""

import json
import logging
from unittest.mock import MagicMock, patch

import fitz
import httpx
import pytest
from langchain_core.messages import HumanMessage

from ragroute.config.settings import settings
from ragroute.src.adapters import gemini
from ragroute.src.adapters.gemini import GeminiModelClient, build_gemini_embedder
from ragroute.src.adapters.loader import FileSystemLoader
from ragroute.src.adapters.tavily import TAVILY_SEARCH_URL, TavilySearcher
from ragroute.src.core.errors import DocumentNotFoundError, InvalidParameterError, UnsupportedFormatError


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def gemini_records():
    """Collect DEBUG records from the Gemini adapter logger (it does not propagate)."""
    records = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    adapter_logger = logging.getLogger(gemini.__name__)
    handler, previous_level = _Collect(), adapter_logger.level
    adapter_logger.addHandler(handler)
    adapter_logger.setLevel(logging.DEBUG)
    yield records
    adapter_logger.removeHandler(handler)
    adapter_logger.setLevel(previous_level)


class TestGeminiModelClient:
    def test_generate_sends_one_human_message(self) -> None:
        # Arrange
        llm = MagicMock()
        llm.invoke.return_value = MagicMock(content="Grounded answer.")
        client = GeminiModelClient(llm=llm)

        # Act
        answer = client.generate("prompt text")

        # Assert
        assert answer == "Grounded answer."
        (messages,), _ = llm.invoke.call_args
        assert len(messages) == 1
        assert isinstance(messages[0], HumanMessage)
        assert messages[0].content == "prompt text"

    def test_content_blocks_are_flattened(self) -> None:
        llm = MagicMock()
        llm.invoke.return_value = MagicMock(content=[{"type": "text", "text": "Hello "}, {"type": "thinking", "thinking": "..."}, "world"])

        assert GeminiModelClient(llm=llm).generate("p") == "Hello world"

    def test_request_and_response_are_logged(self, gemini_records) -> None:
        llm = MagicMock()
        llm.invoke.return_value = MagicMock(content="Paris is sunny.")

        GeminiModelClient(model="gemini-test", llm=llm).generate("What is the weather in Paris?")

        messages = [r.getMessage() for r in gemini_records if r.levelno == logging.DEBUG]
        assert any("Model request to gemini-test" in m and "What is the weather in Paris?" in m for m in messages)
        assert any("Model response from gemini-test" in m and "Paris is sunny." in m for m in messages)

    def test_missing_api_key_rejected(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "GOOGLE_API_KEY", None)

        with pytest.raises(InvalidParameterError):
            GeminiModelClient()

    def test_builds_chat_model_from_settings(self) -> None:
        with patch("langchain_google_genai.ChatGoogleGenerativeAI") as chat_cls:
            GeminiModelClient(model="gemini-test", temperature=0.2, api_key="k-123")

        kwargs = chat_cls.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["temperature"] == 0.2
        assert kwargs["google_api_key"] == "k-123"
        assert kwargs["max_output_tokens"] == settings.LLM_MAX_OUTPUT_TOKENS

    def test_build_embedder(self) -> None:
        with patch("langchain_google_genai.GoogleGenerativeAIEmbeddings") as embeddings_cls:
            build_gemini_embedder(api_key="k-123")

        embeddings_cls.assert_called_once_with(model=settings.EMBEDDING_MODEL, google_api_key="k-123")


class TestTavilySearcher:
    def test_search_maps_results(self) -> None:
        # Arrange
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"results": [
                {"title": "Paris", "url": "https://example.org/paris", "content": "Sunny.", "score": 0.91},
                {"title": "Lyon", "url": "https://example.org/lyon", "content": "Cloudy.", "score": 0.5},
            ]})

        searcher = TavilySearcher(api_key="tv-key", max_results=3, client=_client(handler))

        # Act
        hits = searcher.search("weather in France")

        # Assert
        assert seen["url"] == TAVILY_SEARCH_URL
        assert seen["auth"] == "Bearer tv-key"
        assert seen["body"] == {"query": "weather in France", "max_results": 3}
        assert [(h.text, h.url, h.score) for h in hits] == [("Sunny.", "https://example.org/paris", 0.91), ("Cloudy.", "https://example.org/lyon", 0.5)]

    def test_http_errors_propagate(self) -> None:
        searcher = TavilySearcher(api_key="tv-key", client=_client(lambda request: httpx.Response(500)))

        with pytest.raises(httpx.HTTPStatusError):
            searcher.search("q")

    def test_missing_api_key_rejected(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "TAVILY_API_KEY", None)

        with pytest.raises(InvalidParameterError):
            TavilySearcher()


class TestFileSystemLoader:
    def test_loads_utf8_text(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "notes.md"
        path.write_text("# Notes\nCafé", encoding="utf-8")

        document = FileSystemLoader().load(str(path))

        assert document.text == "# Notes\nCafé"
        assert document.source_id == "notes.md"

    def test_falls_back_to_latin1(self, tmp_path) -> None:
        path = tmp_path / "legacy.txt"
        path.write_bytes(b"caf\xe9")

        assert FileSystemLoader().load(str(path)).text == "café"

    def test_reads_pdf_text_layer(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "paper.pdf"
        pdf = fitz.open()
        pdf.new_page().insert_text((72, 72), "Hello PDF")
        pdf.save(str(path))
        pdf.close()

        document = FileSystemLoader().load(str(path))

        assert "Hello PDF" in document.text
        assert document.source_id == "paper.pdf"

    def test_same_file_name_in_different_folders(self, tmp_path, monkeypatch) -> None:
        # Arrange
        monkeypatch.chdir(tmp_path)
        for folder in ("a", "b"):
            (tmp_path / "docs" / folder).mkdir(parents=True)
            (tmp_path / "docs" / folder / "notes.txt").write_text(f"notes from {folder}", encoding="utf-8")
        loader = FileSystemLoader()

        # Act
        first = loader.load("docs/a/notes.txt")
        second = loader.load(str(tmp_path / "docs" / "b" / "notes.txt"))

        # Assert
        assert (first.source_id, second.source_id) == ("docs/a/notes.txt", "docs/b/notes.txt")

    def test_files_outside_working_directory_use_absolute_path(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "work").mkdir()
        monkeypatch.chdir(tmp_path / "work")
        path = tmp_path / "notes.txt"
        path.write_text("notes", encoding="utf-8")

        assert FileSystemLoader().load(str(path)).source_id == path.resolve().as_posix()

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(DocumentNotFoundError):
            FileSystemLoader().load(str(tmp_path / "nope.txt"))

    def test_unsupported_extension(self, tmp_path) -> None:
        path = tmp_path / "report.docx"
        path.write_bytes(b"PK")

        with pytest.raises(UnsupportedFormatError):
            FileSystemLoader().load(str(path))

    def test_loads_plain_text_url(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="remote notes", headers={"content-type": "text/plain; charset=utf-8"}))

        document = FileSystemLoader(client=client).load("https://example.org/notes.txt")

        assert document.text == "remote notes"
        assert document.source_id == "https://example.org/notes.txt"

    def test_html_url_is_unsupported(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"}))

        with pytest.raises(UnsupportedFormatError):
            FileSystemLoader(client=client).load("https://example.org/")

    def test_missing_url(self) -> None:
        client = _client(lambda request: httpx.Response(404))

        with pytest.raises(DocumentNotFoundError):
            FileSystemLoader(client=client).load("https://example.org/gone.txt")
