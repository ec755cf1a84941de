"""
Health and diagnostics helpers for Daedalus.

This module exposes a small, framework-agnostic "health" interface that
an HTTP layer can wrap as `/health` or `/status`.

It is read-only: it reports what the parse handler has done so far and
never triggers a parse itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from ariadne.pipelines.simple_parse import ANALYTICS_SOURCES, RRWEB_SOURCES

from .parse import ParseHandler


@dataclass
class HealthHandler:
    """
    Health/status interface over a ParseHandler.

    Typical HTTP usage:

        handler = HealthHandler(parser)

        def get_health():
            body = handler.health()
            return 200, body
    """

    parser: ParseHandler

    def health(self) -> Dict[str, Any]:
        """
        Return a minimal health payload.

        Response format:
            {
              "status": "ok",
              "details": {
                "sources": [...],
                "sessions_parsed": <int>,
                "requests_failed": <int>
              }
            }
        """
        return {
            "status": "ok",
            "details": {
                "sources": list(RRWEB_SOURCES + ANALYTICS_SOURCES),
                **self.parser.stats.to_dict(),
            },
        }
