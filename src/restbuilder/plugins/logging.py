"""Request logging plugin.

Each served route logs one line when it starts and one when it ends::

    show start GET /widgets/3
    show end (0.42 ms) [status=200]

The start line carries the request method and the full path
(``script_name`` + ``path_info``) as the route saw it; the end line carries
the elapsed time and the outcome of the returned context, ``[error=<n>]``
when it reports an error code, otherwise ``[status=<n>]`` when one is set.
Forwards log under the child's plural name, so a nested request shows the
parent's forward around the child's action.

Options (``enabled``, ``before``, ``after``, ``log``, ``print``) are set
router-wide when plugging, per route with ``_target``, or through ``flags``
(``"before:off,print:on"``). ``print`` writes to stdout; otherwise ``log``
sends the line to the ``"restbuilder"`` logger (or the one passed as
``logger``) at INFO level. Exceptions propagate and skip the end line.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from restbuilder.core.context import RequestContext
from restbuilder.core.router import Router
from restbuilder.plugins._base_plugin import BasePlugin, RouteEntry

DEFAULTS = {"enabled": True, "before": True, "after": True, "log": True, "print": False}


class LoggingPlugin(BasePlugin):
    """Logs every route served, with timing and outcome."""

    plugin_code = "logging"
    plugin_description = "Logs request lines, timing and outcome of served routes"

    __slots__ = ("_logger",)

    def __init__(self, router, *, logger: Optional[logging.Logger] = None, **cfg):
        self._logger = logger or logging.getLogger("restbuilder")
        super().__init__(router, **cfg)

    def configure(
        self,
        enabled: bool = True,
        before: bool = True,
        after: bool = True,
        log: bool = True,
        print: bool = False,  # noqa: A002
    ):
        """Options are stored by the ``BasePlugin`` configure wrapper."""

    def wrap_handler(self, router, entry: RouteEntry, call_next: Callable):
        def logged(ctx: RequestContext, *args, **kwargs):
            settings = self.settings(entry)
            if not settings["enabled"]:
                return call_next(ctx, *args, **kwargs)
            if settings["before"]:
                self._emit(settings, f"{entry.name} start {_request_line(ctx)}")
            started = time.perf_counter()
            result = call_next(ctx, *args, **kwargs)
            if settings["after"]:
                elapsed = (time.perf_counter() - started) * 1000
                self._emit(settings, f"{entry.name} end ({elapsed:.2f} ms){_outcome(result)}")
            return result

        return logged

    def settings(self, entry: RouteEntry) -> Dict[str, bool]:
        """Effective options for ``entry``; unset values fall back to ``DEFAULTS``."""
        configured = self.entry_configuration(entry)
        return {
            key: default if configured.get(key) is None else bool(configured[key])
            for key, default in DEFAULTS.items()
        }

    def _emit(self, settings: Dict[str, bool], message: str) -> None:
        if settings["print"]:
            print(message)
        elif settings["log"]:
            self._logger.info(message)


def _request_line(ctx: RequestContext) -> str:
    request = ctx.request
    return f"{request.method} /" + "/".join(request.script_name + request.path_info)


def _outcome(result: Any) -> str:
    error_code = getattr(result, "error_code", None)
    if error_code is not None:
        return f" [error={error_code}]"
    status = getattr(result, "status", None)
    if status is not None:
        return f" [status={status}]"
    return ""


Router.register_plugin(LoggingPlugin)
