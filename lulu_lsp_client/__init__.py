"""
lulu_lsp_client - Cliente LSP (ponte do editor) para o lulu-lsp

Propósito:
    Ponte do lado do editor que lança e supervisiona o processo externo
    lulu-lsp e repassa eventos do editor (documentos abertos, alterações,
    arquivos monitorados) via Language Server Protocol.

Componentes principais:
    - locator: Caminho do executável relativo à raiz de instalação
    - launch: Descritores de execução (run/debug) via STDIO
    - manifest: Seletor de documentos + padrões de arquivos monitorados
    - session: Ciclo de vida start/stop da sessão cliente
    - extension: Pontos de entrada activate/deactivate do host

Dependências críticas:
    - pygls: Cliente JSON-RPC/LSP sobre STDIO
    - lsprotocol: Tipos do protocolo LSP

Exemplo de uso:
    python -m lulu_lsp_client --workspace . arquivo.lua

Notas de implementação:
    - Exatamente um processo lulu-lsp por sessão
    - Notificações são enfileiradas (fire-and-forget)
    - Sem reinício automático: falha no start exige novo start
"""
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
import re


def _read_version_from_pyproject() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    try:
        text = pyproject.read_text(encoding="utf-8")
    except OSError:
        return "0.0.0"
    match = re.search(r'(?m)^version = "([^"]+)"\s*$', text)
    return match.group(1) if match else "0.0.0"


try:
    __version__ = _pkg_version("lulu-lsp-client")
except PackageNotFoundError:
    __version__ = _read_version_from_pyproject()

__all__ = ["extension", "session", "locator", "launch", "manifest"]
