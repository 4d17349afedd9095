"""Tests for bashmcp.shell.markers."""

from __future__ import annotations

import shlex

import pytest

from bashmcp.shell.markers import (
    PROMPT_RE,
    build_init_script,
    is_initialization_complete,
    new_command_id,
    strip_prompts,
    wrap_command,
)


# ---------------------------------------------------------------------------
# Init script
# ---------------------------------------------------------------------------


class TestInitScript:
    def test_sets_prompt_with_exit_code(self) -> None:
        script = build_init_script()
        assert "export PS1='MCP_PROMPT|$?|# '" in script

    def test_defines_marker_functions(self) -> None:
        script = build_init_script()
        assert '__mcp_cmd_start() { echo "MCP_CMD_START|$(date +%s.%N)|$1"; }' in script
        assert "MCP_CMD_END|$(date +%s.%N)|$1|$rc" in script

    def test_every_line_hidden_from_history(self) -> None:
        script = build_init_script()
        assert "HISTCONTROL=ignorespace" in script
        for line in script.splitlines():
            assert line.startswith(" ")

    def test_sentinel_not_literal_in_script(self) -> None:
        # The terminal echoes the script back; only bash's output may complete init
        script = build_init_script(interactive=True)
        assert "MCP_INIT_COMPLETE" not in script
        assert not is_initialization_complete(script)

    def test_terminal_setup_depends_on_mode(self) -> None:
        assert "stty -echo -icanon" in build_init_script(interactive=False)
        assert "stty" not in build_init_script(interactive=True)

    def test_ends_with_newline(self) -> None:
        assert build_init_script().endswith("\n")


class TestInitComplete:
    def test_standalone_line(self) -> None:
        assert is_initialization_complete("bash-5.2$ MCP_INIT_COMPLETE\r\n")

    def test_needs_full_line(self) -> None:
        assert not is_initialization_complete("MCP_INIT_COMP")
        assert not is_initialization_complete("MCP_INIT_COMPLETE")

    def test_absent(self) -> None:
        assert not is_initialization_complete("some output\n")


# ---------------------------------------------------------------------------
# Command wrapping
# ---------------------------------------------------------------------------


class TestWrapCommand:
    def test_frames_command_in_subshell(self) -> None:
        wrapped = wrap_command("ls -la", "abc123")
        assert wrapped == " __mcp_cmd_start abc123; ( eval 'ls -la' ); __mcp_cmd_end abc123\n"

    def test_multiline_command_stays_one_word(self) -> None:
        wrapped = wrap_command("for i in 1 2\ndo echo $i\ndone", "id1")
        assert "( eval 'for i in 1 2\ndo echo $i\ndone' )" in wrapped

    def test_unbalanced_quote_is_quoted(self) -> None:
        wrapped = wrap_command('echo "abc', "id1")
        assert wrapped == " __mcp_cmd_start id1; ( eval 'echo \"abc' ); __mcp_cmd_end id1\n"

    def test_stray_parenthesis_cannot_close_subshell(self) -> None:
        wrapped = wrap_command("echo )", "id1")
        assert "( eval 'echo )' )" in wrapped

    def test_single_quotes_are_escaped(self) -> None:
        wrapped = wrap_command("echo 'hi'", "id1")
        assert shlex.split(wrapped.split("eval ", 1)[1].rsplit(" )", 1)[0]) == ["echo 'hi'"]

    def test_id_required(self) -> None:
        with pytest.raises(ValueError):
            wrap_command("ls", "")

    def test_ids_are_unique(self) -> None:
        ids = {new_command_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(i) == 32 for i in ids)


class TestPrompts:
    def test_prompt_pattern(self) -> None:
        assert PROMPT_RE.search("MCP_PROMPT|0|# ")
        assert PROMPT_RE.search("MCP_PROMPT|127|# ")

    def test_strip_prompts(self) -> None:
        text = "line one\nMCP_PROMPT|0|# line two\nMCP_PROMPT|1|# "
        assert strip_prompts(text) == "line one\nline two\n"
