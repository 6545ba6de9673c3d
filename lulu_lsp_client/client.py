"""
client.py - Cliente LSP para o lulu-lsp usando pygls

Propósito:
    Encapsular o canal JSON-RPC com o processo lulu-lsp e tratar as
    mensagens que o servidor envia ao cliente.

Componentes principais:
    - LuluLanguageClient: BaseLanguageClient com handlers de entrada
    - Handlers: publishDiagnostics, logMessage, showMessage

Dependências críticas:
    - pygls: Spawn do processo e transporte STDIO (start_io)
    - lsprotocol.types: Tipos das mensagens recebidas

Notas de implementação:
    - Diagnósticos são guardados por URI (última publicação vence)
    - Mensagens de log do servidor vão para o logger da ponte
    - server_exit registra o código de saída do processo e avisa os
      callbacks de on_exit quando a saída não foi pedida pela sessão
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from lsprotocol.types import (
    TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS,
    WINDOW_LOG_MESSAGE,
    WINDOW_SHOW_MESSAGE,
    Diagnostic,
    LogMessageParams,
    MessageType,
    PublishDiagnosticsParams,
    ShowMessageParams,
)
from pygls.lsp.client import BaseLanguageClient

from lulu_lsp_client import __version__

logger = logging.getLogger(__name__)
server_logger = logging.getLogger("lulu_lsp_client.server")

CLIENT_ID = "lulu-lsp"
CLIENT_NAME = "Lulu Language Server"

ExitCallback = Callable[[Optional[int]], None]

_LOG_LEVELS = {
    MessageType.Error: logging.ERROR,
    MessageType.Warning: logging.WARNING,
    MessageType.Info: logging.INFO,
    MessageType.Log: logging.DEBUG,
}


class LuluLanguageClient(BaseLanguageClient):
    """
    Cliente LSP especializado para o lulu-lsp.

    Attributes:
        diagnostics: Mapeamento de URI -> últimos diagnósticos publicados
        exit_code: Código de saída do servidor, None enquanto vivo
        expect_exit: True depois que a sessão enviou exit
    """

    def __init__(self, *args, **kwargs):
        super().__init__(CLIENT_ID, __version__, *args, **kwargs)
        self.diagnostics: dict[str, list[Diagnostic]] = {}
        self.exit_code: Optional[int] = None
        self.expect_exit = False
        self._exit_callbacks: list[ExitCallback] = []
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self.feature(TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS)
        def publish_diagnostics(ls: LuluLanguageClient, params: PublishDiagnosticsParams):
            ls.diagnostics[params.uri] = list(params.diagnostics)
            logger.debug(
                f"{len(params.diagnostics)} diagnósticos recebidos para {params.uri}"
            )

        @self.feature(WINDOW_LOG_MESSAGE)
        def log_message(ls: LuluLanguageClient, params: LogMessageParams):
            server_logger.log(_LOG_LEVELS.get(params.type, logging.INFO), params.message)

        @self.feature(WINDOW_SHOW_MESSAGE)
        def show_message(ls: LuluLanguageClient, params: ShowMessageParams):
            server_logger.log(_LOG_LEVELS.get(params.type, logging.INFO), params.message)

    @property
    def is_alive(self) -> bool:
        """Indica se o processo do servidor foi lançado e ainda não saiu."""
        process = getattr(self, "_server", None)
        return process is not None and process.returncode is None

    def on_exit(self, callback: ExitCallback) -> None:
        """Registra callback chamado quando o servidor sai sem exit enviado."""
        self._exit_callbacks.append(callback)

    async def server_exit(self, server: asyncio.subprocess.Process):
        self.exit_code = server.returncode
        if self.stopped or self.expect_exit:
            logger.info(f"Servidor lulu-lsp encerrado (código {server.returncode})")
            return

        logger.warning(
            f"Servidor lulu-lsp saiu inesperadamente (código {server.returncode})"
        )
        for callback in list(self._exit_callbacks):
            try:
                callback(server.returncode)
            except Exception as e:
                logger.error(f"Erro no callback de saída do servidor: {e}", exc_info=True)
