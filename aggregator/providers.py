"""
aggregator.providers — Upstream APIs and their published limits.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from urllib.parse import urlencode

from aggregator.classify import PayloadBanClassifier, StatusClassifier
from aggregator.ratelimiter import RateLimiter

ANIDB_CLIENT = os.environ.get("AGGREGATOR_ANIDB_CLIENT", "aggregator")
ANIDB_CLIENT_VERSION = os.environ.get("AGGREGATOR_ANIDB_CLIENTVER", "1")


@dataclass(frozen=True)
class Upstream:
    name: str
    base_url: str
    requests_per_second: int
    requests_per_minute: int
    min_interval: Optional[float] = None
    bans_via_payload: bool = False
    # (key, value) pairs so the profile stays hashable
    params: Tuple[Tuple[str, str], ...] = ()

    def url(self, *parts, **query) -> str:
        """
        Build a request URL: ``parts`` become path segments, ``query`` is
        merged over the upstream's fixed parameters.

        >>> UPSTREAMS["jikan"].url(21, "episodes", page=2)
        'https://api.jikan.moe/v4/anime/21/episodes?page=2'
        """
        url = self.base_url
        if parts:
            url = url.rstrip("/") + "/" + "/".join(str(p).strip("/") for p in parts)
        params = {**dict(self.params), **query}
        if params:
            url += "?" + urlencode(params)
        return url

    def new_rate_limiter(self) -> RateLimiter:
        return RateLimiter(
            self.requests_per_second,
            self.requests_per_minute,
            min_interval=self.min_interval,
        )

    def new_classifier(self) -> StatusClassifier:
        if self.bans_via_payload:
            return PayloadBanClassifier()
        return StatusClassifier()


UPSTREAMS: Dict[str, Upstream] = {
    "jikan": Upstream(
        name="jikan",
        base_url="https://api.jikan.moe/v4/anime",
        requests_per_second=3,
        requests_per_minute=60,
    ),
    "shikimori": Upstream(
        name="shikimori",
        base_url="https://shikimori.one/api/animes",
        requests_per_second=3,
        requests_per_minute=70,
    ),
    "anidb": Upstream(
        name="anidb",
        base_url="http://api.anidb.net:9001/httpapi",
        requests_per_second=1,
        requests_per_minute=12,
        min_interval=5.0,
        bans_via_payload=True,
        params=(
            ("request", "anime"),
            ("client", ANIDB_CLIENT),
            ("clientver", ANIDB_CLIENT_VERSION),
            ("protover", "1"),
        ),
    ),
    # Catalog dump in large limit/offset batches; few requests, kept gentle.
    "anime365": Upstream(
        name="anime365",
        base_url="https://smotret-anime.online/api/series/",
        requests_per_second=1,
        requests_per_minute=30,
    ),
}


def get_upstream(name: str) -> Upstream:
    try:
        return UPSTREAMS[name]
    except KeyError:
        raise KeyError(f"Unknown upstream {name!r}; known: {sorted(UPSTREAMS)}") from None
