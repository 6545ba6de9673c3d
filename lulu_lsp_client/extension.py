"""
extension.py - Pontos de entrada do host (activate/deactivate)

Propósito:
    Ligar o ciclo de vida do host ao da sessão. A sessão é um valor
    explícito: activate devolve, deactivate recebe.

Exemplo de uso:
    session = await activate(WorkspaceHostContext(Path(".")))
    ...
    pending = deactivate(session)
    if pending is not None:
        await pending
"""

from __future__ import annotations

import logging
from typing import Awaitable, Optional

from lulu_lsp_client.client import LuluLanguageClient
from lulu_lsp_client.config import BridgeSettings, load_settings
from lulu_lsp_client.host import HostContext
from lulu_lsp_client.session import ClientFactory, ClientSession, SessionState

logger = logging.getLogger(__name__)


async def activate(
    context: HostContext,
    settings: Optional[BridgeSettings] = None,
    client_factory: ClientFactory = LuluLanguageClient,
) -> ClientSession:
    """
    Cria a sessão e inicia o servidor lulu-lsp.

    Erros de start (BridgeError) são propagados ao host; nesse caso
    nenhum processo permanece em execução.
    """
    logger.info(f"Ativando ponte lulu-lsp para {context.workspace_root}")
    session = ClientSession(settings or load_settings(), client_factory=client_factory)
    await session.start(context)
    return session


def deactivate(session: Optional[ClientSession]) -> Optional[Awaitable[None]]:
    """
    Encerra a sessão.

    Returns:
        Awaitable do encerramento, ou None se nada estava em execução
    """
    # STOPPING após saída do servidor: stop() aguarda a limpeza em curso
    if session is None or session.state is SessionState.UNINITIALIZED:
        logger.debug("deactivate sem sessão ativa")
        return None
    return session.stop()
