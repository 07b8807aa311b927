"""pynlfem.utils.reporting
Level-based event reporting on top of the standard ``logging`` module.

Every event class (warnings, integration warnings, info, verbose, trace,
time measurements, debug output) is switched on or off by one flag of a
:class:`ReportConfig`.  The configuration is plain runtime data held by the
process-wide reporting state, so a disabled level costs a single attribute
check.

Message conventions
-------------------
* A message starting with ``!`` is emphasised (preceded by an empty line).
* A message starting with a space is a sub-item of the previous message and
  is printed without the level letter.

>>> configure_reporting(ReportConfig(info=True, verbose=True))
>>> rep = get_reporter(__name__)
>>> rep.info("Result is %d", 32)
>>> rep.info(" Probability of error is %g", 0.1)
"""
from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Iterator, Optional

# custom levels between the stdlib ones
TRACE = 5
VERBOSE = 15
TIME = 17
logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")
logging.addLevelName(TIME, "TIME")

ROOT_LOGGER = "pynlfem"
ENV_LEVELS = "PYNLFEM_REPORT"
ENV_FILE = "PYNLFEM_REPORT_FILE"

_LEVEL_LETTER = {
    logging.WARNING: "W",
    logging.INFO: "I",
    VERBOSE: "V",
    TRACE: "R",
    TIME: "T",
    logging.DEBUG: "D",
    logging.ERROR: "E",
}


@dataclass(frozen=True)
class ReportConfig:
    """Which event classes are reported, and where."""

    warn: bool = True
    warn_integration: bool = False
    info: bool = False
    verbose: bool = False
    trace: bool = False
    time: bool = False
    debug: bool = False
    log_file: Optional[str] = None      # None -> console only
    console: bool = True

    @classmethod
    def all(cls, **overrides) -> "ReportConfig":
        """Everything on except integration warnings (they are very frequent)."""
        cfg = cls(warn=True, warn_integration=False, info=True, verbose=True,
                  trace=True, time=True, debug=True)
        return replace(cfg, **overrides)

    @classmethod
    def from_env(cls, environ=None) -> "ReportConfig":
        """
        Build a configuration from ``PYNLFEM_REPORT`` (comma separated level
        names, or ``all``) and ``PYNLFEM_REPORT_FILE``.
        """
        env = os.environ if environ is None else environ
        raw = env.get(ENV_LEVELS, "")
        log_file = env.get(ENV_FILE) or None
        names = {tok.strip().lower() for tok in raw.split(",") if tok.strip()}
        if not names:
            return cls(log_file=log_file)
        if "all" in names:
            return cls.all(log_file=log_file,
                           warn_integration="warn_integration" in names)
        flags = {f.name for f in fields(cls) if f.type in ("bool", bool)} - {"console"}
        unknown = names - flags
        if unknown:
            from pynlfem.errors import ConfigurationError
            raise ConfigurationError(
                f"{ENV_LEVELS} contains unknown report levels {sorted(unknown)}; "
                f"valid names are {sorted(flags)} or 'all'."
            )
        kwargs = {name: (name in names) for name in flags}
        return cls(log_file=log_file, **kwargs)


class _EventFormatter(logging.Formatter):
    """Prefix with the level letter; honour the '!' and ' ' conventions."""

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        letter = _LEVEL_LETTER.get(record.levelno, "?")
        if msg.startswith("!"):
            text = f"\n{letter} {msg[1:]}"
        elif msg.startswith(" "):
            text = f"  {msg[1:]}"
        else:
            text = f"{letter} {msg}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


class _ReportingState:
    """Process-wide configuration; installed once by :func:`configure_reporting`."""

    def __init__(self):
        self.config = ReportConfig()
        self.handlers: list[logging.Handler] = []


_state = _ReportingState()


def configure_reporting(config: Optional[ReportConfig] = None) -> ReportConfig:
    """
    Install *config* as the process-wide reporting configuration.

    Handlers installed by a previous call are removed first, so calling this
    again (e.g. from tests) never duplicates output.
    """
    cfg = ReportConfig.from_env() if config is None else config
    logger = logging.getLogger(ROOT_LOGGER)
    for h in _state.handlers:
        logger.removeHandler(h)
        h.close()
    _state.handlers = []

    fmt = _EventFormatter()
    if cfg.console:
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        _state.handlers.append(sh)
    if cfg.log_file:
        fh = logging.FileHandler(cfg.log_file, mode="a", encoding="utf-8")
        fh.setFormatter(fmt)
        _state.handlers.append(fh)
    for h in _state.handlers:
        logger.addHandler(h)

    # the flags decide; the logger itself lets everything through
    logger.setLevel(TRACE)
    logger.propagate = False
    _state.config = cfg
    return cfg


def get_config() -> ReportConfig:
    return _state.config


class Reporter:
    """
    Thin event API around a ``logging.Logger``.

    *config* pins a configuration for this reporter only; by default the
    process-wide one is consulted on every call.
    """

    def __init__(self, logger: logging.Logger, config: Optional[ReportConfig] = None):
        self.logger = logger
        self._config = config

    @property
    def config(self) -> ReportConfig:
        return self._config if self._config is not None else _state.config

    def _emit(self, enabled: bool, level: int, msg: str, args) -> bool:
        if not enabled:
            return False
        self.logger.log(level, msg, *args, stacklevel=3)
        return True

    def warn(self, msg: str, *args) -> bool:
        return self._emit(self.config.warn, logging.WARNING, msg, args)

    def warn_integration(self, msg: str, *args) -> bool:
        return self._emit(self.config.warn_integration, logging.WARNING, msg, args)

    def info(self, msg: str, *args) -> bool:
        return self._emit(self.config.info, logging.INFO, msg, args)

    def info_if(self, cond: bool, msg: str, *args) -> bool:
        return self._emit(bool(cond) and self.config.info, logging.INFO, msg, args)

    def verbose(self, msg: str, *args) -> bool:
        return self._emit(self.config.verbose, VERBOSE, msg, args)

    def trace(self, msg: str, *args) -> bool:
        return self._emit(self.config.trace, TRACE, msg, args)

    def time(self, msg: str, *args) -> bool:
        return self._emit(self.config.time, TIME, msg, args)

    def debug(self, msg: str, *args) -> bool:
        return self._emit(self.config.debug, logging.DEBUG, msg, args)

    @contextmanager
    def timed(self, label: str) -> Iterator[dict]:
        """Measure the enclosed block; the elapsed seconds land in ``out['elapsed']``."""
        out = {"elapsed": 0.0}
        t0 = time.perf_counter()
        try:
            yield out
        finally:
            out["elapsed"] = time.perf_counter() - t0
            self.time("%s: %.3e s", label, out["elapsed"])


def get_reporter(name: str = ROOT_LOGGER, config: Optional[ReportConfig] = None) -> Reporter:
    """Reporter for a module; names outside the ``pynlfem`` tree are nested under it."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return Reporter(logging.getLogger(name), config)


__all__ = [
    "TRACE", "VERBOSE", "TIME", "ReportConfig", "Reporter",
    "configure_reporting", "get_config", "get_reporter",
]
