"""
config.py - Configuração da ponte lulu-lsp

Propósito:
    Reunir em um único objeto imutável as opções que controlam como o
    servidor é lançado e monitorado.

Componentes principais:
    - BridgeSettings: Opções efetivas (caminho, argumentos, timeouts, globs)
    - load_settings: Defaults < variáveis de ambiente < dict de settings

Exemplo de uso:
    settings = load_settings({"lulu": {"server": {"debug": True}}})

Notas de implementação:
    - O dict pode vir como {'lulu': {...}} ou já ser a seção
    - Valores malformados voltam ao default com warning (nunca crasha)
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "lulu"
DEFAULT_WATCH_PATTERNS = ("**/.clientrc",)

ENV_SERVER_PATH = "LULU_LSP_PATH"
ENV_SERVER_ARGS = "LULU_LSP_ARGS"
ENV_DEBUG = "LULU_LSP_DEBUG"
ENV_STARTUP_TIMEOUT = "LULU_LSP_STARTUP_TIMEOUT"
ENV_SHUTDOWN_TIMEOUT = "LULU_LSP_SHUTDOWN_TIMEOUT"
ENV_LOG_LEVEL = "LULU_LSP_LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class BridgeSettings:
    """Opções efetivas da ponte."""

    server_path: Optional[Path] = None
    server_args: tuple[str, ...] = ()
    debug: bool = False
    startup_timeout: float = 15.0
    shutdown_timeout: float = 5.0
    watch_patterns: tuple[str, ...] = DEFAULT_WATCH_PATTERNS
    watch_poll_interval: float = 1.0
    log_level: str = "INFO"
    initialization_options: dict = field(default_factory=dict)


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    logger.warning(f"Valor booleano inválido: {value!r}, usando {default}")
    return default


def _parse_timeout(value: Any, default: float) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Timeout inválido: {value!r}, usando {default}")
        return default
    if timeout <= 0:
        logger.warning(f"Timeout deve ser positivo: {value!r}, usando {default}")
        return default
    return timeout


def _parse_level(value: Any, default: str) -> str:
    level = str(value).strip().upper()
    if isinstance(logging.getLevelName(level), int):
        return level
    logger.warning(f"Nível de log inválido: {value!r}, usando {default}")
    return default


def _parse_args(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if isinstance(value, (list, tuple)):
        return tuple(str(arg) for arg in value)
    logger.warning(f"Argumentos do servidor inválidos: {value!r}, ignorando")
    return ()


def _from_env(settings: BridgeSettings, env: Mapping[str, str]) -> BridgeSettings:
    changes: dict[str, Any] = {}

    if env.get(ENV_SERVER_PATH):
        changes["server_path"] = Path(env[ENV_SERVER_PATH])
    if ENV_SERVER_ARGS in env:
        changes["server_args"] = _parse_args(env[ENV_SERVER_ARGS])
    if ENV_DEBUG in env:
        changes["debug"] = _parse_bool(env[ENV_DEBUG], settings.debug)
    if ENV_STARTUP_TIMEOUT in env:
        changes["startup_timeout"] = _parse_timeout(
            env[ENV_STARTUP_TIMEOUT], settings.startup_timeout
        )
    if ENV_SHUTDOWN_TIMEOUT in env:
        changes["shutdown_timeout"] = _parse_timeout(
            env[ENV_SHUTDOWN_TIMEOUT], settings.shutdown_timeout
        )
    if env.get(ENV_LOG_LEVEL):
        changes["log_level"] = _parse_level(env[ENV_LOG_LEVEL], settings.log_level)

    return replace(settings, **changes)


def _from_dict(settings: BridgeSettings, raw: Mapping[str, Any]) -> BridgeSettings:
    # Pode vir como {'lulu': {...}} ou diretamente {...}
    section = raw.get(SETTINGS_SECTION, raw)
    if not isinstance(section, Mapping):
        logger.warning(f"Seção '{SETTINGS_SECTION}' inválida, ignorando")
        return settings

    changes: dict[str, Any] = {}

    server = section.get("server", {})
    if isinstance(server, Mapping):
        if server.get("path"):
            changes["server_path"] = Path(str(server["path"]))
        if "args" in server:
            changes["server_args"] = _parse_args(server["args"])
        if "debug" in server:
            changes["debug"] = _parse_bool(server["debug"], settings.debug)

    timeouts = section.get("timeouts", {})
    if isinstance(timeouts, Mapping):
        if "startup" in timeouts:
            changes["startup_timeout"] = _parse_timeout(
                timeouts["startup"], settings.startup_timeout
            )
        if "shutdown" in timeouts:
            changes["shutdown_timeout"] = _parse_timeout(
                timeouts["shutdown"], settings.shutdown_timeout
            )

    watch = section.get("watch")
    if isinstance(watch, (list, tuple)) and watch:
        changes["watch_patterns"] = tuple(str(pattern) for pattern in watch)
    elif watch is not None:
        logger.warning(f"Lista de padrões 'watch' inválida: {watch!r}, ignorando")

    if "pollInterval" in section:
        changes["watch_poll_interval"] = _parse_timeout(
            section["pollInterval"], settings.watch_poll_interval
        )

    if "logLevel" in section:
        changes["log_level"] = _parse_level(section["logLevel"], settings.log_level)

    init_options = section.get("initializationOptions")
    if isinstance(init_options, Mapping):
        changes["initialization_options"] = dict(init_options)

    return replace(settings, **changes)


def load_settings(
    raw: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> BridgeSettings:
    """
    Constrói BridgeSettings a partir de defaults, ambiente e settings.

    Args:
        raw: Settings no formato do editor ({'lulu': {...}} ou a própria seção)
        env: Variáveis de ambiente (padrão: os.environ)

    Returns:
        BridgeSettings com a precedência aplicada
    """
    settings = _from_env(BridgeSettings(), os.environ if env is None else env)
    if raw:
        settings = _from_dict(settings, raw)
    return settings
