"""
cli.py - Host de linha de comando para a ponte lulu-lsp

Propósito:
    Executar a ponte fora do editor: ativa a sessão para um workspace,
    abre os arquivos indicados, reporta os diagnósticos recebidos e
    desativa a sessão.

Exemplo de uso:
    python -m lulu_lsp_client --workspace . src/main.lua
    python -m lulu_lsp_client --watch --workspace .

Notas de implementação:
    - Código de saída 0: sem erros; 1: erro da ponte; 2: diagnósticos de erro
    - --watch mantém a sessão ativa até Ctrl+C
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from lsprotocol.types import DiagnosticSeverity

from lulu_lsp_client import __version__
from lulu_lsp_client.config import load_settings
from lulu_lsp_client.errors import BridgeError
from lulu_lsp_client.extension import activate, deactivate
from lulu_lsp_client.host import WorkspaceHostContext
from lulu_lsp_client.manifest import LANGUAGE_ID, path_to_uri
from lulu_lsp_client.session import ClientSession

# Configuração de logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BRIDGE_ERROR = 1
EXIT_DIAGNOSTIC_ERRORS = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lulu-lsp-client",
        description="Lança o lulu-lsp e reporta diagnósticos dos arquivos indicados.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Arquivos a abrir")
    parser.add_argument("--workspace", type=Path, default=Path("."))
    parser.add_argument("--install-root", type=Path, default=None)
    parser.add_argument("--server-path", type=Path, default=None)
    parser.add_argument("--debug", action="store_true", help="Usa o descritor debug")
    parser.add_argument(
        "--wait",
        type=float,
        default=2.0,
        help="Segundos aguardando diagnósticos antes de encerrar",
    )
    parser.add_argument("--watch", action="store_true", help="Executa até Ctrl+C")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def language_id_for(path: Path) -> str:
    suffix = path.suffix.lower().lstrip(".")
    return LANGUAGE_ID if suffix == "lua" else suffix


def open_files(session: ClientSession, files: Sequence[Path]) -> list[str]:
    """Abre os arquivos na sessão; retorna os URIs aceitos pelo seletor."""
    accepted = []
    for path in files:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Não foi possível ler {path}: {e}")
            continue
        uri = path_to_uri(path)
        if session.did_open(uri, language_id_for(path), text):
            accepted.append(uri)
        else:
            logger.warning(f"Arquivo ignorado (fora do seletor): {path}")
    return accepted


def report_diagnostics(session: ClientSession, uris: Sequence[str]) -> int:
    """Loga diagnósticos no formato arquivo:linha:coluna; retorna nº de erros."""
    error_count = 0
    for uri in uris:
        for diag in session.diagnostics(uri):
            severity = diag.severity or DiagnosticSeverity.Information
            if severity == DiagnosticSeverity.Error:
                error_count += 1
            start = diag.range.start
            logger.info(
                f"{uri}:{start.line + 1}:{start.character + 1}: "
                f"{severity.name.lower()}: {diag.message}"
            )
    return error_count


async def run(args: argparse.Namespace) -> int:
    overrides: dict = {"server": {}}
    if args.debug:
        overrides["server"]["debug"] = True
    if args.server_path:
        overrides["server"]["path"] = str(args.server_path)
    if args.log_level:
        overrides["logLevel"] = args.log_level
    settings = load_settings(overrides)
    logging.getLogger().setLevel(settings.log_level)

    host = WorkspaceHostContext(
        args.workspace,
        install_root=args.install_root,
        poll_interval=settings.watch_poll_interval,
    )

    try:
        session = await activate(host, settings)
    except BridgeError as e:
        logger.error(f"Falha ao ativar a ponte: {e}")
        return EXIT_BRIDGE_ERROR

    exit_code = EXIT_OK
    try:
        uris = open_files(session, args.files)
        await session.flush()
        if args.watch:
            logger.info("Sessão ativa, Ctrl+C para encerrar")
            await asyncio.Event().wait()
        elif args.wait > 0:
            await asyncio.sleep(args.wait)
        if report_diagnostics(session, uris):
            exit_code = EXIT_DIAGNOSTIC_ERRORS
    finally:
        pending = deactivate(session)
        try:
            if pending is not None:
                await pending
        except BridgeError as e:
            logger.error(f"Falha ao encerrar a ponte: {e}")
            exit_code = EXIT_BRIDGE_ERROR
        finally:
            host.dispose()

    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Ponto de entrada principal do host CLI.
    """
    args = build_parser().parse_args(argv)
    logger.info(f"Iniciando lulu-lsp-client {__version__}")
    logger.info("Python executable: %s", sys.executable)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrompido pelo usuário")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
