"""Tests for the chat CLI helpers (argument parsing and the question loop)."""

from unittest.mock import MagicMock

import pytest

from ragroute.scripts.chat import _parse_args, parse_document_arg, run_loop


class TestArguments:
    def test_defaults(self) -> None:
        args = _parse_args(["notes.txt"])

        assert args.documents == ["notes.txt"]
        assert args.strategy == "single"
        assert args.web is False
        assert args.question is None

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(SystemExit):
            _parse_args(["notes.txt", "--strategy", "random"])

    @pytest.mark.parametrize("arg, expected", [
        ("notes.txt", ("notes.txt", None)),
        ("docs/rag.pdf=Retrieval-augmented generation", ("docs/rag.pdf", "Retrieval-augmented generation")),
        ("notes.txt=", ("notes.txt", None)),
        ("https://example.org/a.txt=Remote notes", ("https://example.org/a.txt", "Remote notes")),
        ("https://example.org/doc?id=7", ("https://example.org/doc?id=7", None)),
    ])
    def test_document_descriptions(self, arg: str, expected: tuple) -> None:
        assert parse_document_arg(arg) == expected


class TestRunLoop:
    def test_skips_blank_lines_and_stops_on_exit(self) -> None:
        # Arrange
        lines = iter(["", "   ", "What is RAG?", "Quitter", "never asked"])
        ask = MagicMock(return_value="An answer.")
        written = []

        # Act
        answered = run_loop(ask, read=lambda prompt: next(lines), write=written.append)

        # Assert
        assert answered == 1
        ask.assert_called_once_with("What is RAG?")
        assert written == ["\nAssistant: An answer."]

    def test_end_of_input_stops(self) -> None:
        def read(prompt):
            raise EOFError

        assert run_loop(MagicMock(), read=read, write=lambda text: None) == 0
