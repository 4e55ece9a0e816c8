"""Tests for loading command scripts."""

import sys
import textwrap

import pytest

from pipeshell import ShellSession
from pipeshell.errors import ScriptError
from pipeshell.scripting import ScriptLoader

HELLO_SCRIPT = """
from pipeshell import InteractionContext, ShellCommand, command, option


class Hello(ShellCommand):
    \"\"\"Say hello from a script.\"\"\"

    NAME = "hello"

    @command
    def main(self, context: InteractionContext[str], *, name: str = option("n", "name", default="script")) -> None:
        context.provide(f"hello from {name}")


class Refuse(ShellCommand):
    NAME = "refuse-script"

    @command
    def main(self) -> None:
        raise ScriptFailure("not today")


class Helper:
    pass
"""


def _write(directory, name, content):
    path = directory / name
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.fixture
def scripts_dir(tmp_path):
    directory = tmp_path / "scripts"
    directory.mkdir()
    _write(directory, "hello.py", HELLO_SCRIPT)
    return directory


class TestDiscover:
    def test_skips_private_and_other_files(self, scripts_dir):
        _write(scripts_dir, "_shared.py", "")
        _write(scripts_dir, "notes.txt", "")

        assert [path.name for path in ScriptLoader(scripts_dir).discover()] == ["hello.py"]

    def test_missing_directory(self, tmp_path):
        assert ScriptLoader(tmp_path / "missing").discover() == []


class TestLoad:
    def test_collects_command_classes(self, scripts_dir):
        commands = ScriptLoader(scripts_dir).load()
        assert sorted(command_cls.command_name() for command_cls in commands) == ["hello", "refuse-script"]

    def test_module_is_registered(self, scripts_dir):
        ScriptLoader(scripts_dir).load()
        module = sys.modules["pipeshell_script_hello"]
        assert module.ScriptFailure.__name__ == "ScriptFailure"

    def test_loaded_commands_run(self, scripts_dir, surface):
        session = ShellSession(ScriptLoader(scripts_dir).load())
        session.execute("hello -n tests", surface)
        assert surface.values == ["hello from tests"]

    def test_script_failure_global_is_translated(self, scripts_dir, surface):
        session = ShellSession(ScriptLoader(scripts_dir).load())
        with pytest.raises(ScriptError, match="not today"):
            session.execute("refuse-script", surface)

    def test_broken_scripts_are_skipped(self, scripts_dir):
        _write(scripts_dir, "broken.py", "def oops(:\n")

        commands = ScriptLoader(scripts_dir).load()

        assert "pipeshell_script_broken" not in sys.modules
        assert {command_cls.command_name() for command_cls in commands} == {"hello", "refuse-script"}

    def test_imported_commands_are_not_collected(self, scripts_dir):
        _write(scripts_dir, "reexport.py", "from pipeshell.builtins import Echo\n")
        commands = ScriptLoader(scripts_dir).load()
        assert "echo" not in {command_cls.command_name() for command_cls in commands}
