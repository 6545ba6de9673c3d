"""
locator.py - Localização do executável lulu-lsp

Propósito:
    Calcular o caminho absoluto do servidor a partir da raiz de instalação
    da ponte, sem caminhos absolutos fixos no código.

Componentes principais:
    - resolve_server_path: raiz de instalação → caminho do executável
    - check_executable: validação adiada para o momento do spawn

Exemplo de uso:
    resolve_server_path("/ext")  # → /target/debug/lulu-lsp

Notas de implementação:
    - resolve_server_path não toca o filesystem (apenas strings de caminho)
    - Mudanças no layout de build alteram somente BUILD_OUTPUT_OFFSET
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Union

from lulu_lsp_client.errors import ServerResolutionError

SERVER_NAME = "lulu-lsp"
BUILD_OUTPUT_OFFSET = ("..", "..", "target", "debug")


def server_executable_name(platform: str = sys.platform) -> str:
    """Nome do executável na plataforma (com .exe no Windows)."""
    if platform.startswith("win"):
        return f"{SERVER_NAME}.exe"
    return SERVER_NAME


def resolve_server_path(
    install_root: Union[str, os.PathLike], platform: str = sys.platform
) -> Path:
    """
    Resolve o caminho do servidor relativo à raiz de instalação.

    Sobe dois diretórios a partir de install_root e desce em target/debug.
    O resultado é normalizado, então '..' acima da raiz do filesystem
    permanece na raiz.
    """
    root = os.path.abspath(os.fspath(install_root))
    joined = os.path.join(root, *BUILD_OUTPUT_OFFSET, server_executable_name(platform))
    return Path(os.path.normpath(joined))


def check_executable(path: Path) -> Path:
    """
    Verifica se o caminho existe e pode ser executado.

    Raises:
        ServerResolutionError: arquivo ausente, diretório ou sem permissão
    """
    if not path.exists():
        raise ServerResolutionError(path, "arquivo não encontrado")
    if not path.is_file():
        raise ServerResolutionError(path, "não é um arquivo")
    if not os.access(path, os.X_OK):
        raise ServerResolutionError(path, "sem permissão de execução")
    return path
