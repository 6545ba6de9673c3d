"""
launch.py - Descritores de execução do servidor

Propósito:
    Descrever como invocar o lulu-lsp: comando, argumentos e transporte.
    Os modos run e debug usam o mesmo descritor.

Componentes principais:
    - TransportKind: Tipo de transporte (apenas STDIO)
    - LaunchDescriptor: Comando imutável para um modo
    - ServerOptions: Par run/debug
    - build_server_options: Caminho → ServerOptions
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence


class TransportKind(Enum):
    STDIO = "stdio"


@dataclass(frozen=True)
class LaunchDescriptor:
    """Como lançar o processo do servidor."""

    command: Path
    args: tuple[str, ...] = ()
    transport: TransportKind = TransportKind.STDIO

    def argv(self) -> list[str]:
        return [str(self.command), *self.args]


@dataclass(frozen=True)
class ServerOptions:
    run: LaunchDescriptor
    debug: LaunchDescriptor

    def select(self, debug: bool = False) -> LaunchDescriptor:
        return self.debug if debug else self.run


def build_server_options(server_path: Path, args: Sequence[str] = ()) -> ServerOptions:
    """Constrói opções com descritores idênticos para run e debug."""
    descriptor = LaunchDescriptor(command=server_path, args=tuple(args))
    return ServerOptions(run=descriptor, debug=descriptor)
