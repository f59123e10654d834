"""
Unit tests for CompilationExecutor.
"""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from dawnbuild.build.compilation_executor import (
    CompilationError,
    CompilationExecutor,
    clang_target,
)
from dawnbuild.build.flag_builder import Dialect
from dawnbuild.build.graph import CompileGroup
from dawnbuild.config.platform_target import PlatformDescriptor


@pytest.fixture
def executor(tmp_path):
    return CompilationExecutor(tmp_path / "build", target="x86_64-linux-gnu")


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "src" / "Device.cpp"
    path.parent.mkdir(parents=True)
    path.write_text("int main() { return 0; }")
    return path


class TestClangTarget:
    def test_apple_gets_vendor(self):
        assert clang_target(PlatformDescriptor.parse("aarch64-macos")) == "aarch64-apple-macos"

    def test_other_targets_pass_through(self):
        assert clang_target(PlatformDescriptor.parse("x86_64-windows-gnu")) == "x86_64-windows-gnu"


class TestCompilationExecutor:
    """Test cases for CompilationExecutor."""

    def test_compiler_for(self, executor):
        """Test that C-family dialects use cc and C++-family use cxx."""
        assert executor.compiler_for(Dialect.C) == "clang"
        assert executor.compiler_for(Dialect.OBJC) == "clang"
        assert executor.compiler_for(Dialect.CXX) == "clang++"
        assert executor.compiler_for(Dialect.OBJCXX) == "clang++"

    @patch("subprocess.run")
    def test_compile_source_command(self, mock_run, executor, source, tmp_path):
        """Test the compiler command line."""
        mock_run.return_value = Mock(returncode=0, stdout="", stderr="")
        output = tmp_path / "obj" / "Device.o"
        rsp = tmp_path / "flags.rsp"

        result = executor.compile_source(source, output, Dialect.CXX, rsp)

        assert result == output
        assert output.parent.is_dir()
        cmd = mock_run.call_args[0][0]
        assert cmd == [
            "clang++",
            "-target", "x86_64-linux-gnu",
            "-x", "c++",
            "-O3", "-DNDEBUG", "-g0",
            f"@{rsp}",
            "-c", str(source),
            "-o", str(output),
        ]

    @patch("subprocess.run")
    def test_no_target_for_host(self, mock_run, source, tmp_path):
        """Test that no -target is passed when building for the host."""
        mock_run.return_value = Mock(returncode=0, stdout="", stderr="")
        executor = CompilationExecutor(tmp_path / "build", cc="gcc")
        executor.compile_source(source, tmp_path / "a.o", Dialect.C, tmp_path / "f.rsp")
        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "gcc"
        assert "-target" not in cmd
        assert cmd[1:3] == ["-x", "c"]

    @patch("subprocess.run")
    def test_compile_failure(self, mock_run, executor, source, tmp_path):
        """Test that a failing compile raises with the compiler output."""
        mock_run.return_value = Mock(returncode=1, stdout="", stderr="error: expected ';'")
        with pytest.raises(CompilationError, match="expected ';'"):
            executor.compile_source(source, tmp_path / "a.o", Dialect.CXX, tmp_path / "f.rsp")

    @patch("subprocess.run", side_effect=subprocess.TimeoutExpired(["clang++"], 600))
    def test_compile_timeout(self, mock_run, executor, source, tmp_path):
        with pytest.raises(CompilationError, match="timeout"):
            executor.compile_source(source, tmp_path / "a.o", Dialect.CXX, tmp_path / "f.rsp")

    def test_missing_source(self, executor, tmp_path):
        with pytest.raises(CompilationError, match="Source file not found"):
            executor.compile_source(tmp_path / "nope.cpp", tmp_path / "a.o", Dialect.CXX, tmp_path / "f.rsp")

    def test_object_path_unique_per_source(self, executor, tmp_path):
        """Test that same-named sources in different directories get distinct objects."""
        obj_dir = tmp_path / "obj"
        first = executor.object_path(Path("/w/a/Buffer.cpp"), obj_dir)
        second = executor.object_path(Path("/w/b/Buffer.cpp"), obj_dir)
        assert first != second
        assert first.name.startswith("Buffer-")
        assert first.suffix == ".o"
        assert executor.object_path(Path("/w/a/Buffer.cpp"), obj_dir) == first

    def test_write_response_file(self, executor, tmp_path):
        """Test that flags are written one per line, quoted when needed."""
        rsp = executor.write_response_file(
            "tint-0", ["-IC:\\dawn\\include", "-DUNREFERENCED_PARAMETER(x)=", "-Ipath with space"]
        )
        assert rsp == tmp_path / "build" / "rsp" / "tint-0.rsp"
        assert rsp.read_text(encoding="utf-8").splitlines() == [
            "-IC:/dawn/include",
            "-DUNREFERENCED_PARAMETER(x)=",
            '"-Ipath with space"',
        ]

    def test_prepare_group(self, executor, source, tmp_path):
        """Test that a group becomes one task per source sharing a response file."""
        other = source.parent / "Queue.c"
        other.write_text("")
        group = CompileGroup(dialect=Dialect.C, sources=[source, other], flags=["-DX"])

        tasks = executor.prepare_group(group, tmp_path / "obj", "dawn_native-1")

        rsp = tmp_path / "build" / "rsp" / "dawn_native-1.rsp"
        assert [t.source for t in tasks] == [source, other]
        assert [t.output.parent for t in tasks] == [tmp_path / "obj"] * 2
        assert {t.response_file for t in tasks} == {rsp}
        assert {t.dialect for t in tasks} == {Dialect.C}
        assert rsp.read_text(encoding="utf-8") == "-DX"

    @patch("subprocess.run")
    def test_compile_task(self, mock_run, executor, source, tmp_path):
        """Test compiling prepared tasks with the shared response file."""
        mock_run.return_value = Mock(returncode=0, stdout="", stderr="")
        other = source.parent / "Queue.c"
        other.write_text("")
        group = CompileGroup(dialect=Dialect.C, sources=[source, other], flags=["-DX"])

        tasks = executor.prepare_group(group, tmp_path / "obj", "dawn_native-1")
        objects = [executor.compile_task(task) for task in tasks]

        assert objects == [t.output for t in tasks]
        assert mock_run.call_count == 2
        rsp_args = {call[0][0][8] for call in mock_run.call_args_list}
        assert rsp_args == {f"@{tmp_path / 'build' / 'rsp' / 'dawn_native-1.rsp'}"}

    @patch("shutil.which", return_value=None)
    def test_check_toolchain_missing(self, mock_which, executor):
        with pytest.raises(CompilationError, match="Compiler not found: clang\\+\\+"):
            executor.check_toolchain([Dialect.CXX])

    @patch("shutil.which", return_value="/usr/bin/clang")
    def test_check_toolchain_found(self, mock_which, executor):
        executor.check_toolchain([Dialect.C, Dialect.CXX])
        assert mock_which.call_count == 2

    def test_check_toolchain_absolute_path(self, tmp_path):
        compiler = tmp_path / "clang"
        compiler.write_text("")
        executor = CompilationExecutor(tmp_path, cc=str(compiler))
        executor.check_toolchain([Dialect.C])
