"""
test_manifest.py - Testes para o manifesto de assinaturas

Cobertura:
- Seletor de documentos (scheme + linguagem)
- Globs de arquivos monitorados
- Conversão file URI ↔ Path
"""

from __future__ import annotations

from pathlib import Path

import pytest
from lsprotocol.types import FileChangeType, WatchKind

from lulu_lsp_client.manifest import (
    DocumentFilter,
    SubscriptionManifest,
    build_manifest,
    glob_matches,
    path_to_uri,
    uri_to_path,
)


class TestDocumentSelector:
    def test_default_selector(self):
        manifest = build_manifest()
        assert manifest.document_selector == (DocumentFilter(scheme="file", language="lua"),)

    def test_matches_lua_file(self):
        assert build_manifest().matches_document("file:///ws/a.lua", "lua")

    @pytest.mark.parametrize(
        "uri, language_id",
        [
            ("file:///ws/a.py", "python"),
            ("file:///ws/a.lua", "luau"),
            ("untitled:Untitled-1", "lua"),
            ("git:/ws/a.lua", "lua"),
        ],
    )
    def test_rejects_outside_selector(self, uri, language_id):
        assert not build_manifest().matches_document(uri, language_id)


class TestFileEvents:
    def test_default_pattern(self):
        assert build_manifest().file_events == ("**/.clientrc",)

    @pytest.mark.parametrize(
        "path",
        ["/ws/.clientrc", "/ws/a/b/c/.clientrc", "file:///ws/sub/.clientrc", Path("/x/.clientrc")],
    )
    def test_clientrc_anywhere(self, path):
        assert build_manifest().matches_file(path)

    @pytest.mark.parametrize("path", ["/ws/other.txt", "/ws/.clientrc.bak", "/ws/clientrc"])
    def test_other_files(self, path):
        assert not build_manifest().matches_file(path)

    def test_watch_kind_filter(self):
        manifest = SubscriptionManifest(
            document_selector=(DocumentFilter(),),
            file_events=("**/.clientrc",),
            watch_kind=WatchKind.Change,
        )
        assert manifest.matches_file("/ws/.clientrc", FileChangeType.Changed)
        assert not manifest.matches_file("/ws/.clientrc", FileChangeType.Created)
        assert not manifest.matches_file("/ws/.clientrc", FileChangeType.Deleted)

    def test_custom_patterns(self):
        manifest = build_manifest(["**/lulu.conf.lua", "*.rockspec"])
        assert manifest.matches_file("/ws/pkg/lulu.conf.lua")
        assert manifest.matches_file("/ws/lulu-1.0.rockspec")
        assert not manifest.matches_file("/ws/.clientrc")

    def test_glob_double_star_only(self):
        assert glob_matches("**/", "/anything/at/all")


class TestUriConversion:
    def test_uri_to_path(self):
        assert uri_to_path("file:///ws/a%20b/main.lua") == Path("/ws/a b/main.lua")

    def test_non_file_scheme(self):
        assert uri_to_path("untitled:Untitled-1") is None

    def test_unc_path(self):
        assert uri_to_path("file://server/share/a.lua").as_posix() == "//server/share/a.lua"

    def test_windows_drive(self):
        assert uri_to_path("file:///d:/ws/a.lua").as_posix() == "d:/ws/a.lua"

    def test_path_to_uri(self):
        assert path_to_uri(Path("/ws/main.lua")) == "file:///ws/main.lua"
