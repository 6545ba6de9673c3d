"""
session.py - Sessão cliente: ciclo de vida do processo lulu-lsp

Propósito:
    Possuir exatamente um processo lulu-lsp e um canal LSP ativo, expondo
    start/stop ao host e repassando eventos do editor enquanto em RUNNING.

Componentes principais:
    - SessionState: uninitialized → starting → running → stopping
    - ClientSession: start, stop e operações de repasse (did_open, ...)

Dependências críticas:
    - pygls (via LuluLanguageClient): spawn + transporte STDIO
    - lsprotocol.types: Parâmetros das notificações

Notas de implementação:
    - start/stop serializados por asyncio.Lock (stop durante start espera)
    - start em sessão ativa é no-op com warning (nunca lança 2º processo)
    - Notificações passam por asyncio.Queue drenada por uma única task
    - Falha no start libera tudo e volta a UNINITIALIZED antes de lançar
    - Falha no shutdown é lançada só depois de liberar recursos locais
    - Saída inesperada do servidor: antes do initialize vira HandshakeError
      com o código de saída; em RUNNING libera tudo e volta a UNINITIALIZED
"""

from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    WORKSPACE_DID_CHANGE_WATCHED_FILES,
    ClientCapabilities,
    Diagnostic,
    DidChangeConfigurationClientCapabilities,
    DidChangeConfigurationParams,
    DidChangeTextDocumentParams,
    DidChangeWatchedFilesClientCapabilities,
    DidChangeWatchedFilesParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    FileChangeType,
    FileEvent,
    InitializedParams,
    InitializeParams,
    InitializeParamsClientInfoType,
    PublishDiagnosticsClientCapabilities,
    TextDocumentClientCapabilities,
    TextDocumentContentChangeEvent_Type2,
    TextDocumentIdentifier,
    TextDocumentItem,
    TextDocumentSyncClientCapabilities,
    VersionedTextDocumentIdentifier,
    WindowClientCapabilities,
    WorkspaceClientCapabilities,
    WorkspaceFolder,
)

from lulu_lsp_client import __version__
from lulu_lsp_client.client import CLIENT_NAME, LuluLanguageClient
from lulu_lsp_client.config import BridgeSettings
from lulu_lsp_client.errors import HandshakeError, ServerShutdownError, ServerSpawnError
from lulu_lsp_client.host import FileWatcher, HostContext
from lulu_lsp_client.launch import LaunchDescriptor, build_server_options
from lulu_lsp_client.locator import check_executable, resolve_server_path
from lulu_lsp_client.manifest import (
    SubscriptionManifest,
    build_manifest,
    path_to_uri,
    uri_to_path,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], LuluLanguageClient]

# Método LSP → método gerado do BaseLanguageClient
_SENDERS = {
    TEXT_DOCUMENT_DID_OPEN: "text_document_did_open",
    TEXT_DOCUMENT_DID_CHANGE: "text_document_did_change",
    TEXT_DOCUMENT_DID_SAVE: "text_document_did_save",
    TEXT_DOCUMENT_DID_CLOSE: "text_document_did_close",
    WORKSPACE_DID_CHANGE_WATCHED_FILES: "workspace_did_change_watched_files",
    WORKSPACE_DID_CHANGE_CONFIGURATION: "workspace_did_change_configuration",
}

_STOP = object()


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


def _client_capabilities() -> ClientCapabilities:
    return ClientCapabilities(
        workspace=WorkspaceClientCapabilities(
            did_change_configuration=DidChangeConfigurationClientCapabilities(
                dynamic_registration=False
            ),
            did_change_watched_files=DidChangeWatchedFilesClientCapabilities(
                dynamic_registration=False
            ),
            workspace_folders=True,
        ),
        text_document=TextDocumentClientCapabilities(
            synchronization=TextDocumentSyncClientCapabilities(did_save=True),
            publish_diagnostics=PublishDiagnosticsClientCapabilities(
                related_information=True
            ),
        ),
        window=WindowClientCapabilities(work_done_progress=False),
    )


class ClientSession:
    """
    Sessão única entre a ponte e o servidor lulu-lsp.

    Attributes:
        state: Estado atual do ciclo de vida
        client: Cliente LSP (processo + canal); None fora de RUNNING/STOPPING
        launch: Descritor usado no último start
        manifest: Manifesto de assinaturas do último start
        server_info: ServerInfo devolvido no initialize
    """

    def __init__(
        self,
        settings: Optional[BridgeSettings] = None,
        client_factory: ClientFactory = LuluLanguageClient,
    ):
        self.settings = settings or BridgeSettings()
        self.state = SessionState.UNINITIALIZED
        self.client: Optional[LuluLanguageClient] = None
        self.launch: Optional[LaunchDescriptor] = None
        self.manifest: Optional[SubscriptionManifest] = None
        self.server_info = None
        self.server_capabilities = None
        self._client_factory = client_factory
        self._watchers: list[FileWatcher] = []
        self._open_documents: dict[str, str] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._pump: Optional[asyncio.Task] = None
        self._exited: Optional[asyncio.Future] = None
        self._exit_task: Optional[asyncio.Task] = None
        self._workspace_root: Optional[Path] = None
        self._lifecycle_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self.state is SessionState.RUNNING

    @property
    def open_documents(self) -> set[str]:
        return set(self._open_documents)

    # --- Ciclo de vida ---

    async def start(self, host: HostContext) -> None:
        """
        Lança o servidor, completa o initialize e registra os watchers.

        Raises:
            ServerResolutionError: executável ausente ou sem permissão
            ServerSpawnError: o processo não pôde ser criado
            HandshakeError: initialize falhou, expirou ou o servidor saiu antes
        """
        await self._wait_exit_cleanup()
        async with self._lifecycle_lock:
            if self.state is not SessionState.UNINITIALIZED:
                logger.warning(f"start ignorado: sessão já está em {self.state.value}")
                return

            self.state = SessionState.STARTING
            try:
                await self._start(host)
            except (Exception, asyncio.CancelledError) as e:
                logger.error(f"Falha ao iniciar lulu-lsp: {e}", exc_info=True)
                try:
                    await self._release()
                except ServerShutdownError as release_error:
                    # O erro de start é o que o host precisa receber
                    logger.warning(f"Limpeza após falha no start: {release_error}")
                finally:
                    self.state = SessionState.UNINITIALIZED
                raise

            self.state = SessionState.RUNNING
            logger.info(f"Sessão lulu-lsp ativa: {self.launch.command}")

    async def _start(self, host: HostContext) -> None:
        self.server_info = None
        self.server_capabilities = None
        server_path = self.settings.server_path or resolve_server_path(host.install_root)
        options = build_server_options(server_path, self.settings.server_args)
        self.launch = options.select(self.settings.debug)
        self.manifest = build_manifest(self.settings.watch_patterns)

        check_executable(self.launch.command)

        self._workspace_root = Path(os.path.abspath(host.workspace_root))

        client = self._client_factory()
        self.client = client
        self._exited = asyncio.get_running_loop().create_future()
        client.on_exit(lambda returncode: self._on_server_exit(client, returncode))
        logger.info(f"Iniciando servidor: {' '.join(self.launch.argv())}")
        try:
            await client.start_io(*self.launch.argv(), cwd=str(host.workspace_root))
        except OSError as e:
            raise ServerSpawnError(str(self.launch.command), e) from e

        await self._handshake(client, Path(host.workspace_root))

        for pattern in self.manifest.file_events:
            watcher = host.create_file_system_watcher(pattern)
            watcher.on_event(self.file_changed)
            self._watchers.append(watcher)

        if self._exited.done():
            returncode = self._exited.result()
            raise HandshakeError(
                f"servidor saiu com código {returncode} durante o start",
                returncode=returncode,
            )

        self._queue = asyncio.Queue()
        self._pump = asyncio.get_running_loop().create_task(self._pump_messages())

    async def _handshake(self, client: LuluLanguageClient, workspace_root: Path) -> None:
        workspace_uri = workspace_root.as_uri()
        params = InitializeParams(
            capabilities=_client_capabilities(),
            process_id=os.getpid(),
            client_info=InitializeParamsClientInfoType(name=CLIENT_NAME, version=__version__),
            root_uri=workspace_uri,
            root_path=str(workspace_root),
            workspace_folders=[
                WorkspaceFolder(uri=workspace_uri, name=workspace_root.name or workspace_uri)
            ],
            initialization_options=self.settings.initialization_options or None,
        )

        timeout = self.settings.startup_timeout
        request = asyncio.ensure_future(client.initialize_async(params))
        waiters = {request}
        if self._exited is not None:
            waiters.add(self._exited)
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if not request.done():
                request.cancel()

        if request not in done:
            if self._exited is not None and self._exited.done():
                returncode = self._exited.result()
                raise HandshakeError(
                    f"servidor saiu com código {returncode} antes do initialize",
                    returncode=returncode,
                )
            raise HandshakeError(f"initialize expirou após {timeout}s")
        try:
            result = request.result()
        except Exception as e:
            raise HandshakeError(f"initialize falhou: {e}") from e

        if result is not None:
            self.server_info = result.server_info
            self.server_capabilities = result.capabilities
        if self.server_info:
            logger.info(
                f"Servidor inicializado: {self.server_info.name} {self.server_info.version or ''}"
            )

        client.initialized(InitializedParams())

    async def stop(self) -> None:
        """
        Encerra a sessão: shutdown → exit → término do processo.

        No-op quando não há sessão ativa. Recursos locais são sempre
        liberados; falhas do encerramento gracioso são lançadas depois.

        Raises:
            ServerShutdownError: shutdown/exit falhou ou expirou
        """
        await self._wait_exit_cleanup()
        async with self._lifecycle_lock:
            if self.state is not SessionState.RUNNING:
                return

            self.state = SessionState.STOPPING
            try:
                await self._drain()
                await self._shutdown_handshake()
            finally:
                await self._release()
                self.state = SessionState.UNINITIALIZED
                logger.info("Sessão lulu-lsp encerrada")

    async def _shutdown_handshake(self) -> None:
        client = self.client
        timeout = self.settings.shutdown_timeout
        try:
            await asyncio.wait_for(client.shutdown_async(None), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"shutdown expirou após {timeout}s")
            raise ServerShutdownError(f"shutdown expirou após {timeout}s") from e
        except Exception as e:
            logger.error(f"shutdown falhou: {e}", exc_info=True)
            raise ServerShutdownError(f"shutdown falhou: {e}") from e
        finally:
            client.expect_exit = True
            try:
                client.exit(None)
            except Exception as e:
                # O processo é terminado em _release de qualquer forma
                logger.warning(f"Falha ao enviar exit: {e}")

    async def _release(self) -> None:
        for watcher in self._watchers:
            watcher.dispose()
        self._watchers.clear()

        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
        self._pump = None
        self._queue = None
        self._exited = None
        self._workspace_root = None
        self._open_documents.clear()

        client, self.client = self.client, None
        if client is None:
            return
        try:
            await client.stop()
        except Exception as e:
            logger.error(f"Erro ao terminar processo lulu-lsp: {e}", exc_info=True)
            raise ServerShutdownError(f"falha ao terminar processo: {e}") from e

    def _on_server_exit(self, client: LuluLanguageClient, returncode: Optional[int]) -> None:
        if client is not self.client:
            return
        if self._exited is not None and not self._exited.done():
            self._exited.set_result(returncode)
        if self.state is SessionState.RUNNING:
            # Fora de RUNNING a partir daqui: nenhum evento é mais aceito
            self.state = SessionState.STOPPING
            self._exit_task = asyncio.get_running_loop().create_task(
                self._release_after_exit(client, returncode)
            )

    async def _release_after_exit(
        self, client: LuluLanguageClient, returncode: Optional[int]
    ) -> None:
        try:
            async with self._lifecycle_lock:
                if client is not self.client:
                    return
                try:
                    await self._release()
                except ServerShutdownError as e:
                    logger.warning(f"Limpeza após saída do servidor: {e}")
                finally:
                    self.state = SessionState.UNINITIALIZED
                    logger.error(f"Sessão lulu-lsp encerrada: servidor saiu com código {returncode}")
        finally:
            self._exit_task = None

    async def _wait_exit_cleanup(self) -> None:
        exit_task = self._exit_task
        if exit_task is not None:
            await exit_task

    # --- Repasse de eventos ---

    async def _pump_messages(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                method, params = item
                getattr(self.client, _SENDERS[method])(params)
                logger.debug(f"Notificação enviada: {method}")
            except Exception as e:
                logger.error(f"Erro ao enviar notificação: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def _drain(self) -> None:
        if self._queue is None or self._pump is None:
            return
        self._queue.put_nowait(_STOP)
        await self._pump

    async def flush(self) -> None:
        """Aguarda até que todas as notificações enfileiradas sejam enviadas."""
        if self._queue is not None:
            await self._queue.join()

    def _enqueue(self, method: str, params: Any) -> bool:
        if self.state is not SessionState.RUNNING or self._queue is None:
            logger.debug(f"{method} descartado: sessão em {self.state.value}")
            return False
        self._queue.put_nowait((method, params))
        return True

    def did_open(self, uri: str, language_id: str, text: str, version: int = 0) -> bool:
        if not self.is_running:
            return False
        if not self.manifest.matches_document(uri, language_id):
            logger.debug(f"Documento fora do seletor: {uri} ({language_id})")
            return False
        if uri in self._open_documents:
            logger.debug(f"Documento já aberto: {uri}")
            return False

        self._open_documents[uri] = language_id
        params = DidOpenTextDocumentParams(
            text_document=TextDocumentItem(
                uri=uri, language_id=language_id, version=version, text=text
            )
        )
        return self._enqueue(TEXT_DOCUMENT_DID_OPEN, params)

    def did_change(self, uri: str, text: str, version: int) -> bool:
        # O servidor anuncia sincronização FULL: envia sempre o texto completo
        if uri not in self._open_documents:
            return False
        params = DidChangeTextDocumentParams(
            text_document=VersionedTextDocumentIdentifier(uri=uri, version=version),
            content_changes=[TextDocumentContentChangeEvent_Type2(text=text)],
        )
        return self._enqueue(TEXT_DOCUMENT_DID_CHANGE, params)

    def did_save(self, uri: str, text: Optional[str] = None) -> bool:
        if uri not in self._open_documents:
            return False
        params = DidSaveTextDocumentParams(
            text_document=TextDocumentIdentifier(uri=uri), text=text
        )
        return self._enqueue(TEXT_DOCUMENT_DID_SAVE, params)

    def did_close(self, uri: str) -> bool:
        if self._open_documents.pop(uri, None) is None:
            return False
        params = DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=uri))
        return self._enqueue(TEXT_DOCUMENT_DID_CLOSE, params)

    def file_changed(
        self,
        path: Union[str, os.PathLike],
        change_type: FileChangeType = FileChangeType.Changed,
    ) -> bool:
        if not self.is_running:
            return False
        if not self.manifest.matches_file(path, change_type):
            logger.debug(f"Arquivo fora dos padrões monitorados: {path}")
            return False

        text = os.fspath(path)
        local = uri_to_path(text) if text.startswith("file://") else Path(text)
        if local is None or not self._in_workspace(local):
            logger.debug(f"Arquivo fora do workspace: {path}")
            return False

        uri = text if text.startswith("file://") else path_to_uri(text)
        params = DidChangeWatchedFilesParams(changes=[FileEvent(uri=uri, type=change_type)])
        logger.info(f"Arquivo monitorado mudou: {uri} (tipo: {change_type.name})")
        return self._enqueue(WORKSPACE_DID_CHANGE_WATCHED_FILES, params)

    def _in_workspace(self, path: Path) -> bool:
        if self._workspace_root is None:
            return False
        return Path(os.path.abspath(path)).is_relative_to(self._workspace_root)

    def update_configuration(self, settings: Any) -> bool:
        params = DidChangeConfigurationParams(settings=settings)
        return self._enqueue(WORKSPACE_DID_CHANGE_CONFIGURATION, params)

    def diagnostics(self, uri: str) -> list[Diagnostic]:
        """Últimos diagnósticos publicados pelo servidor para o URI."""
        if self.client is None:
            return []
        return list(self.client.diagnostics.get(uri, []))
