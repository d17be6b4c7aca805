"""Tests for ErrorTranslator and ExecutionIOError."""

import errno

import pytest

from procguard.errors import ErrorTranslator, ExecutionIOError, ProcGuardError, UserFriendlyError


class TestExecutionIOError:
    def test_message_names_stage_and_program(self):
        cause = FileNotFoundError(errno.ENOENT, "No such file or directory", "missing")
        error = ExecutionIOError("missing", "spawn", cause)

        assert str(error).startswith("spawn failed for 'missing'")
        assert error.errno == errno.ENOENT
        assert isinstance(error, ProcGuardError)

    def test_without_cause(self):
        error = ExecutionIOError("prog", "wait")

        assert str(error) == "wait failed for 'prog'"
        assert error.errno is None


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "cause,title",
        [
            (FileNotFoundError(errno.ENOENT, "No such file or directory"), "Program not found"),
            (PermissionError(errno.EACCES, "Permission denied"), "Permission denied"),
            (ValueError("Separator is not found, and chunk exceed the limit"), "Output line too long"),
            (BrokenPipeError(errno.EPIPE, "Broken pipe"), "Pipe closed by the program"),
        ],
    )
    def test_known_causes(self, cause, title):
        translator = ErrorTranslator()

        result = translator.translate(ExecutionIOError("prog", "spawn", cause))

        assert isinstance(result, UserFriendlyError)
        assert result.title == title
        assert len(result.actions) > 0
        assert result.show_technical is False

    def test_chained_cause_is_considered(self):
        translator = ErrorTranslator()
        try:
            try:
                raise FileNotFoundError(errno.ENOENT, "No such file or directory")
            except FileNotFoundError as e:
                raise RuntimeError("wrapper") from e
        except RuntimeError as wrapped:
            result = translator.translate(wrapped)

        assert result.title == "Program not found"

    def test_unknown_error_falls_back(self):
        translator = ErrorTranslator()

        result = translator.translate(Exception("something odd"))

        assert result.title == "Execution failed"
        assert result.explanation == "something odd"
        assert result.show_technical is True

    def test_cli_format_lists_actions(self):
        translator = ErrorTranslator()
        friendly = translator.translate(Exception("something odd"))

        output = translator.format_for_cli(friendly)

        assert "Execution failed" in output
        assert "How to fix:" in output
        assert "1. Re-run with --log-level DEBUG" in output
        assert "Technical details" in output
