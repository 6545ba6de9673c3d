"""
manifest.py - Manifesto de assinaturas da sessão

Propósito:
    Declarar quais documentos e quais arquivos do workspace interessam ao
    servidor lulu-lsp. Tudo que não casa com o manifesto nunca é repassado.

Componentes principais:
    - DocumentFilter: (scheme, language) de um documento aceito
    - SubscriptionManifest: seletor de documentos + globs monitorados
    - build_manifest: manifesto padrão (file/lua + **/.clientrc)
    - uri_to_path / path_to_uri: conversão file URI ↔ Path

Notas de implementação:
    - Globs iniciados por '**/' casam em qualquer profundidade
    - Demais globs casam a partir do final do caminho (PurePath.match)
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Sequence, Union
from urllib.parse import unquote, urlparse

from lsprotocol.types import FileChangeType, WatchKind

from lulu_lsp_client.config import DEFAULT_WATCH_PATTERNS

FILE_SCHEME = "file"
LANGUAGE_ID = "lua"

ALL_WATCH_KINDS = WatchKind.Create | WatchKind.Change | WatchKind.Delete

_KIND_FOR_CHANGE = {
    FileChangeType.Created: WatchKind.Create,
    FileChangeType.Changed: WatchKind.Change,
    FileChangeType.Deleted: WatchKind.Delete,
}


def uri_to_path(uri: str) -> Optional[Path]:
    """
    Converte file URI em Path; retorna None para outros schemes.

    Mantém o caminho sem resolve() para evitar dependência do filesystem.
    """
    parsed = urlparse(uri)
    if parsed.scheme != FILE_SCHEME:
        return None

    path_str = unquote(parsed.path or "")

    # UNC paths: file://server/share/path -> //server/share/path
    if parsed.netloc:
        path_str = f"//{parsed.netloc}{path_str}"

    # Windows drive: /d:/path -> d:/path
    if len(path_str) >= 3 and path_str[0] == "/" and path_str[2] == ":":
        path_str = path_str[1:]

    return Path(path_str)


def path_to_uri(path: Union[str, os.PathLike]) -> str:
    """Converte caminho (relativo ou absoluto) em file URI."""
    return Path(os.path.abspath(os.fspath(path))).as_uri()


def _as_posix(path: Union[str, os.PathLike]) -> PurePosixPath:
    text = os.fspath(path)
    if isinstance(text, str) and text.startswith(f"{FILE_SCHEME}://"):
        converted = uri_to_path(text)
        text = os.fspath(converted) if converted else text
    text = text.replace("\\", "/")
    if sys.platform.startswith("win"):
        text = text.lower()
    return PurePosixPath(text)


def glob_matches(pattern: str, path: Union[str, os.PathLike]) -> bool:
    """Verifica se o caminho casa com o glob do manifesto."""
    target = _as_posix(path)
    if sys.platform.startswith("win"):
        pattern = pattern.lower()
    if pattern.startswith("**/"):
        remainder = pattern[3:]
        if not remainder:
            return True
        return target.match(remainder)
    return target.match(pattern)


@dataclass(frozen=True)
class DocumentFilter:
    scheme: str = FILE_SCHEME
    language: str = LANGUAGE_ID

    def matches(self, uri: str, language_id: str) -> bool:
        return urlparse(uri).scheme == self.scheme and language_id == self.language


@dataclass(frozen=True)
class SubscriptionManifest:
    """
    O que o servidor deve receber.

    Attributes:
        document_selector: Filtros de documentos aceitos (OR entre filtros)
        file_events: Globs de arquivos cujas mudanças são notificadas
        watch_kind: Máscara de WatchKind aceita para eventos de arquivo
    """

    document_selector: tuple[DocumentFilter, ...]
    file_events: tuple[str, ...]
    watch_kind: int = ALL_WATCH_KINDS

    def matches_document(self, uri: str, language_id: str) -> bool:
        return any(f.matches(uri, language_id) for f in self.document_selector)

    def matches_file(
        self,
        path: Union[str, os.PathLike],
        change_type: FileChangeType = FileChangeType.Changed,
    ) -> bool:
        if not self.watch_kind & _KIND_FOR_CHANGE[change_type]:
            return False
        return any(glob_matches(pattern, path) for pattern in self.file_events)


def build_manifest(
    watch_patterns: Sequence[str] = DEFAULT_WATCH_PATTERNS,
    language: str = LANGUAGE_ID,
) -> SubscriptionManifest:
    """Manifesto padrão: documentos file/lua e arquivos .clientrc."""
    return SubscriptionManifest(
        document_selector=(DocumentFilter(scheme=FILE_SCHEME, language=language),),
        file_events=tuple(watch_patterns),
    )
