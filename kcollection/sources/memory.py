"""
In-memory source.

Serves payloads held in a dictionary keyed by collection URL. Useful for
tests and for wiring fixture data into an application.
"""

import asyncio
from typing import Any, Dict, Optional

from kcollection.sources.base import Source, register_source


@register_source("memory")
class MemorySource(Source):
    """Source backed by a dictionary of payloads.

    The payload key is ``options.params["key"]`` when given, otherwise the
    collection's ``url``. A missing key settles the request as failed.
    """

    def __init__(
        self,
        payloads: Optional[Dict[str, Any]] = None,
        delay: float = 0.0,
        **kwargs,
    ):
        """Initialize source.

        Args:
            payloads: Mapping of key to payload
            delay: Seconds to wait before settling
            **kwargs: Ignored (allows shared kwargs across sources)
        """
        self.payloads: Dict[str, Any] = dict(payloads or {})
        self.delay = delay
        self.requests = 0

    @property
    def name(self) -> str:
        return "memory"

    async def fetch(self, collection: Any, options: Any) -> None:
        self.requests += 1
        await asyncio.sleep(self.delay)

        key = options.params.get("key") or getattr(collection, "url", "")
        if key not in self.payloads:
            options.fail(collection, options, {"error": f"No payload for key: {key!r}"})
            return

        options.success(collection, options, self.payloads[key])
