"""
conftest.py - Fakes compartilhados pelos testes da sessão

Propósito:
    Substituir o processo lulu-lsp e o host do editor por objetos em
    memória que registram as chamadas, sem spawn real.
"""

from __future__ import annotations

import asyncio
import stat
from pathlib import Path
from types import SimpleNamespace

import pytest
from lsprotocol.types import ServerCapabilities, TextDocumentSyncKind

from lulu_lsp_client.config import BridgeSettings
from lulu_lsp_client.session import ClientSession


class FakeLanguageClient:
    """Mock de LuluLanguageClient: registra chamadas e notificações."""

    def __init__(
        self,
        spawn_error=None,
        init_error=None,
        init_delay=0.0,
        shutdown_error=None,
        shutdown_delay=0.0,
        init_exit_code=None,
    ):
        self.spawn_error = spawn_error
        self.init_error = init_error
        self.init_delay = init_delay
        self.shutdown_error = shutdown_error
        self.shutdown_delay = shutdown_delay
        self.init_exit_code = init_exit_code
        self.exit_callbacks = []
        self.calls: list[str] = []
        self.notifications: list[tuple[str, object]] = []
        self.diagnostics: dict[str, list] = {}
        self.argv = None
        self.spawn_kwargs = None
        self.initialize_params = None
        self.process_alive = False
        self.channel_open = False

    async def start_io(self, cmd, *args, **kwargs):
        self.calls.append("start_io")
        if self.spawn_error:
            raise self.spawn_error
        self.argv = [cmd, *args]
        self.spawn_kwargs = kwargs
        self.process_alive = True
        self.channel_open = True

    async def initialize_async(self, params):
        self.calls.append("initialize")
        self.initialize_params = params
        if self.init_exit_code is not None:
            self.crash(self.init_exit_code)
            await asyncio.sleep(3600)
        if self.init_delay:
            await asyncio.sleep(self.init_delay)
        if self.init_error:
            raise self.init_error
        return SimpleNamespace(
            capabilities=ServerCapabilities(text_document_sync=TextDocumentSyncKind.Full),
            server_info=SimpleNamespace(name="lulu-lsp", version="0.1.0"),
        )

    def initialized(self, params):
        self.calls.append("initialized")

    async def shutdown_async(self, params):
        self.calls.append("shutdown")
        if self.shutdown_delay:
            await asyncio.sleep(self.shutdown_delay)
        if self.shutdown_error:
            raise self.shutdown_error

    def on_exit(self, callback):
        self.exit_callbacks.append(callback)

    def crash(self, returncode=1):
        """Simula a saída do processo sem shutdown/exit."""
        self.process_alive = False
        for callback in self.exit_callbacks:
            callback(returncode)

    def exit(self, params):
        self.calls.append("exit")

    async def stop(self):
        self.calls.append("stop")
        self.process_alive = False
        self.channel_open = False

    def _record(self, method, params):
        self.notifications.append((method, params))

    def text_document_did_open(self, params):
        self._record("textDocument/didOpen", params)

    def text_document_did_change(self, params):
        self._record("textDocument/didChange", params)

    def text_document_did_save(self, params):
        self._record("textDocument/didSave", params)

    def text_document_did_close(self, params):
        self._record("textDocument/didClose", params)

    def workspace_did_change_watched_files(self, params):
        self._record("workspace/didChangeWatchedFiles", params)

    def workspace_did_change_configuration(self, params):
        self._record("workspace/didChangeConfiguration", params)

    def sent(self, method):
        return [params for name, params in self.notifications if name == method]


class FakeWatcher:
    def __init__(self, glob_pattern):
        self.glob_pattern = glob_pattern
        self.callbacks = []
        self.disposed = False

    def on_event(self, callback):
        self.callbacks.append(callback)

    def emit(self, path, change_type):
        for callback in self.callbacks:
            callback(path, change_type)

    def dispose(self):
        self.disposed = True


class FakeHost:
    """Mock mínimo do contexto do host."""

    def __init__(self, install_root: Path, workspace_root: Path):
        self.install_root = install_root
        self.workspace_root = workspace_root
        self.watchers: list[FakeWatcher] = []

    def create_file_system_watcher(self, glob_pattern):
        watcher = FakeWatcher(glob_pattern)
        self.watchers.append(watcher)
        return watcher


def make_executable(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def server_binary(tmp_path):
    return make_executable(tmp_path / "bin" / "lulu-lsp")


@pytest.fixture
def host(tmp_path):
    workspace = tmp_path / "ws"
    workspace.mkdir()
    return FakeHost(install_root=tmp_path / "ext", workspace_root=workspace)


@pytest.fixture
def clients():
    return []


@pytest.fixture
def make_session(server_binary, clients):
    """Cria ClientSession com cliente falso; clients acumula as instâncias."""

    def factory(client_options=None, **settings_changes):
        settings_changes.setdefault("server_path", server_binary)
        settings = BridgeSettings(**settings_changes)

        def client_factory():
            client = FakeLanguageClient(**(client_options or {}))
            clients.append(client)
            return client

        return ClientSession(settings, client_factory=client_factory)

    return factory
