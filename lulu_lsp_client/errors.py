"""
errors.py - Taxonomia de erros da ponte

Propósito:
    Distinguir as falhas do ciclo de vida da sessão para que o host possa
    reportá-las sem inspecionar mensagens.

Componentes principais:
    - ServerResolutionError: executável inexistente ou sem permissão
    - ServerSpawnError: o sistema operacional recusou criar o processo
    - HandshakeError: initialize não concluído
    - ServerShutdownError: shutdown/exit falhou ou expirou

Notas de implementação:
    - Erros de start deixam a sessão em UNINITIALIZED
    - Erros de stop são levantados somente após liberar recursos locais
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class BridgeError(Exception):
    """Erro base da ponte lulu-lsp."""


class ServerResolutionError(BridgeError):
    """O caminho calculado para o servidor não existe ou não é executável."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Servidor lulu-lsp inválido em {path}: {reason}")
        self.path = path
        self.reason = reason


class ServerSpawnError(BridgeError):
    """Falha ao criar o processo do servidor."""

    def __init__(self, command: str, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Não foi possível iniciar {command}{detail}")
        self.command = command


class HandshakeError(BridgeError):
    """O servidor iniciou mas não completou o initialize."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class ServerShutdownError(BridgeError):
    """O encerramento gracioso (shutdown/exit) falhou."""
