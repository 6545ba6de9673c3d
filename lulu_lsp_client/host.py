"""
host.py - Contexto do host (editor) para a ponte

Propósito:
    Definir o que a sessão precisa do host: raiz de instalação, raiz do
    workspace e criação de watchers de arquivos. Fornece também um host
    concreto para uso fora do editor (CLI), com watcher por polling.

Componentes principais:
    - HostContext / FileWatcher: Protocolos esperados pela sessão
    - PollingFileWatcher: Watcher asyncio baseado em snapshots de mtime
    - WorkspaceHostContext: Host concreto sobre um diretório local

Notas de implementação:
    - Callbacks recebem (Path, FileChangeType)
    - Exceções em callbacks são logadas e não interrompem o polling
    - O primeiro snapshot é a linha de base (não gera eventos)
    - Em segundo plano, as varreduras rodam em thread (asyncio.to_thread)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Protocol

from lsprotocol.types import FileChangeType

logger = logging.getLogger(__name__)

FileEventCallback = Callable[[Path, FileChangeType], None]


class FileWatcher(Protocol):
    def on_event(self, callback: FileEventCallback) -> None: ...

    def dispose(self) -> None: ...


class HostContext(Protocol):
    install_root: Path
    workspace_root: Path

    def create_file_system_watcher(self, glob_pattern: str) -> FileWatcher: ...


class PollingFileWatcher:
    """Watcher que compara snapshots de mtime dos arquivos do glob."""

    def __init__(self, root: Path, glob_pattern: str, interval: float = 1.0):
        self.root = root
        self.glob_pattern = glob_pattern
        self.interval = interval
        self._callbacks: list[FileEventCallback] = []
        self._snapshot: Optional[dict[Path, int]] = None
        self._task: Optional[asyncio.Task] = None
        self.ready = asyncio.Event()
        self.disposed = False

    def on_event(self, callback: FileEventCallback) -> None:
        self._callbacks.append(callback)

    def _scan(self) -> dict[Path, int]:
        snapshot: dict[Path, int] = {}
        if not self.root.is_dir():
            return snapshot
        for path in self.root.glob(self.glob_pattern):
            try:
                if path.is_file():
                    snapshot[path] = path.stat().st_mtime_ns
            except OSError:
                # Arquivo removido entre o glob e o stat
                continue
        return snapshot

    def poll(self) -> list[tuple[Path, FileChangeType]]:
        """
        Executa uma varredura síncrona e despacha os eventos encontrados.

        A primeira varredura apenas registra a linha de base.
        """
        current = self._scan()
        if self._snapshot is None:
            self._snapshot = current
            return []
        return self._apply(current)

    def _apply(self, current: dict[Path, int]) -> list[tuple[Path, FileChangeType]]:
        events: list[tuple[Path, FileChangeType]] = []

        for path, mtime in current.items():
            previous = self._snapshot.get(path)
            if previous is None:
                events.append((path, FileChangeType.Created))
            elif previous != mtime:
                events.append((path, FileChangeType.Changed))
        for path in self._snapshot.keys() - current.keys():
            events.append((path, FileChangeType.Deleted))

        self._snapshot = current
        for path, change_type in events:
            self._dispatch(path, change_type)
        return events

    def _dispatch(self, path: Path, change_type: FileChangeType) -> None:
        for callback in list(self._callbacks):
            try:
                callback(path, change_type)
            except Exception as e:
                logger.error(f"Erro no callback do watcher para {path}: {e}", exc_info=True)

    async def _run(self) -> None:
        # Varreduras fora do event loop, que também carrega o transporte LSP
        if self._snapshot is None:
            self._snapshot = await asyncio.to_thread(self._scan)
        self.ready.set()
        while not self.disposed:
            await asyncio.sleep(self.interval)
            current = await asyncio.to_thread(self._scan)
            if self.disposed:
                break
            self._apply(current)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    def dispose(self) -> None:
        self.disposed = True
        self._callbacks.clear()
        if self._task is not None:
            self._task.cancel()
            self._task = None


class WorkspaceHostContext:
    """
    Host concreto sobre um diretório de workspace local.

    Attributes:
        workspace_root: Diretório monitorado
        install_root: Raiz de instalação da ponte (padrão: diretório do pacote)
        watchers: Watchers criados e ainda não descartados
    """

    def __init__(
        self,
        workspace_root: Path,
        install_root: Optional[Path] = None,
        poll_interval: float = 1.0,
    ):
        self.workspace_root = Path(workspace_root).resolve()
        self.install_root = (
            Path(install_root).resolve()
            if install_root
            else Path(__file__).resolve().parent
        )
        self.poll_interval = poll_interval
        self.watchers: list[PollingFileWatcher] = []

    def as_absolute_path(self, relative: str) -> Path:
        return self.install_root / relative

    def create_file_system_watcher(self, glob_pattern: str) -> PollingFileWatcher:
        watcher = PollingFileWatcher(self.workspace_root, glob_pattern, self.poll_interval)
        watcher.start()
        self.watchers.append(watcher)
        logger.info(f"Monitorando {glob_pattern} em {self.workspace_root}")
        return watcher

    def dispose(self) -> None:
        for watcher in self.watchers:
            watcher.dispose()
        self.watchers.clear()
