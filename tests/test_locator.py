"""
test_locator.py - Testes para resolve_server_path e check_executable
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from lulu_lsp_client.errors import ServerResolutionError
from lulu_lsp_client.locator import (
    SERVER_NAME,
    check_executable,
    resolve_server_path,
    server_executable_name,
)


def test_ext_root_normalized():
    """/ext/../../target/debug/lulu-lsp → /target/debug/lulu-lsp."""
    assert resolve_server_path("/ext", platform="linux") == Path("/target/debug/lulu-lsp")


@pytest.mark.parametrize(
    "install_root",
    ["/opt/editor/extensions/lulu", "/a/b", "/home/user/.vscode/ext/lulu-1.0"],
)
def test_two_levels_above_install_root(install_root):
    result = resolve_server_path(install_root, platform="linux")

    assert result.name == SERVER_NAME
    assert result.parent == Path(install_root).parent.parent / "target" / "debug"
    assert result.is_absolute()


def test_relative_root_becomes_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "a" / "b").mkdir(parents=True)

    result = resolve_server_path("a/b", platform="linux")

    assert result == Path(os.getcwd()) / "target" / "debug" / SERVER_NAME


def test_accepts_path_objects():
    assert resolve_server_path(Path("/x/y/z"), platform="linux") == Path(
        "/x/target/debug/lulu-lsp"
    )


def test_windows_executable_name():
    assert server_executable_name("win32") == "lulu-lsp.exe"
    assert server_executable_name("linux") == "lulu-lsp"
    assert server_executable_name("darwin") == "lulu-lsp"


def test_resolution_does_not_touch_filesystem(tmp_path):
    """O caminho é calculado mesmo que nada exista."""
    result = resolve_server_path(tmp_path / "nada" / "aqui", platform="linux")
    assert not result.exists()


def test_check_executable_missing(tmp_path):
    with pytest.raises(ServerResolutionError, match="não encontrado"):
        check_executable(tmp_path / "lulu-lsp")


def test_check_executable_directory(tmp_path):
    with pytest.raises(ServerResolutionError, match="não é um arquivo"):
        check_executable(tmp_path)


@pytest.mark.skipif(os.name == "nt", reason="permissões POSIX")
def test_check_executable_without_permission(tmp_path):
    binary = tmp_path / "lulu-lsp"
    binary.write_text("")
    binary.chmod(0o644)

    if os.access(binary, os.X_OK):
        pytest.skip("executando como root")
    with pytest.raises(ServerResolutionError, match="permissão"):
        check_executable(binary)


def test_check_executable_ok(server_binary):
    assert check_executable(server_binary) == server_binary
