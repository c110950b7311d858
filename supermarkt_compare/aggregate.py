"""Fan one query out to every supermarket and collect one result per retailer.

Every connector runs in its own worker thread and is bounded by the same
deadline. A connector that is still running when the deadline passes is
reported as timed out; its thread is abandoned rather than killed (Python
threads cannot be cancelled). The deadline is also passed down as the HTTP
timeout, so an abandoned worker's socket gives up shortly afterwards.
Pool workers are not daemon threads: the interpreter joins them at exit, so a
short-lived process such as the CLI can outlive the deadline by up to that
HTTP timeout when a connector hangs.
"""

from __future__ import annotations

import functools
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Mapping

from .ah import AlbertHeijnConnector, TokenCache
from .base import Connector
from .checkjebon import CheckjebonConnector, CheckjebonSource, DatasetCache
from .config import Config
from .dirk import DirkConnector
from .errors import ConnectorTimeout
from .fallback import LiveThenFallback
from .jumbo import JumboConnector
from .log import get_logger
from .models import RETAILER_LABELS, Retailer, RetailerResult
from .picnic import ClientProvider, PicnicConnector, no_clients

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 8.0

_ORDER = {r: i for i, r in enumerate(Retailer)}


def build_connectors(
    config: Config | None = None,
    *,
    client_for: ClientProvider = no_clients,
    dataset: CheckjebonSource | None = None,
) -> dict[Retailer, Connector]:
    """The retailer → connector table; retailers without a live API read the dataset."""
    config = config or Config()
    common = {"max_results": config.max_results, "surface_errors": config.surface_errors}
    dataset = dataset or CheckjebonSource(
        DatasetCache(url=config.dataset_url, ttl_s=config.dataset_ttl_s),
        max_results=config.max_results,
    )

    live: dict[Retailer, Connector] = {
        Retailer.AH: AlbertHeijnConnector(token_cache=TokenCache(), **common),
        Retailer.JUMBO: LiveThenFallback(JumboConnector(**common), dataset, live_share=config.live_share),
        Retailer.PICNIC: PicnicConnector(client_for=client_for, **common),
        Retailer.DIRK: DirkConnector(**common),
    }

    table: dict[Retailer, Connector] = {}
    for retailer in config.retailers:
        table[retailer] = live.get(retailer) or CheckjebonConnector(retailer, dataset, **common)
    return table


class Aggregator:
    def __init__(
        self,
        connectors: Mapping[Retailer, Connector],
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.connectors = dict(sorted(connectors.items(), key=lambda kv: _ORDER[kv[0]]))
        self.timeout_s = timeout_s

    @classmethod
    def from_config(cls, config: Config | None = None, *, client_for: ClientProvider = no_clients) -> "Aggregator":
        config = config or Config()
        return cls(build_connectors(config, client_for=client_for), timeout_s=config.connector_timeout_s)

    def search_all(self, query: str, household_id: str) -> list[RetailerResult]:
        query = query.strip()
        if not self.connectors:
            return []

        executor = ThreadPoolExecutor(
            max_workers=len(self.connectors), thread_name_prefix="supermarkt-search"
        )
        try:
            futures: dict[Retailer, Future] = {
                retailer: executor.submit(
                    connector.search, query, household_id=household_id, timeout_s=self.timeout_s
                )
                for retailer, connector in self.connectors.items()
            }
            done, _ = wait(futures.values(), timeout=self.timeout_s)
        finally:
            # Do not block on stragglers; their results are discarded.
            executor.shutdown(wait=False, cancel_futures=True)

        results = [self._collect(retailer, fut, fut in done) for retailer, fut in futures.items()]
        logger.debug(
            "Searched %d retailers for %r: %d ok, %d failed",
            len(results),
            query,
            sum(1 for r in results if r.ok),
            sum(1 for r in results if not r.ok),
        )
        return results

    def _collect(self, retailer: Retailer, fut: Future, settled: bool) -> RetailerResult:
        label = RETAILER_LABELS[retailer]
        if not settled:
            fut.cancel()
            err = ConnectorTimeout(label, self.timeout_s)
            logger.warning("%s", err)
            return RetailerResult.failure(retailer, str(err))

        exc = fut.exception()
        if exc is not None:
            logger.warning("%s search raised: %s", label, exc)
            return RetailerResult.failure(retailer, str(exc) or type(exc).__name__)
        return RetailerResult.success(retailer, fut.result())


@functools.lru_cache(maxsize=1)
def default_aggregator() -> Aggregator:
    """The process-wide aggregator, so token and dataset caches are shared."""
    return Aggregator.from_config(Config.from_env())


def search_all(query: str, household_id: str, *, aggregator: Aggregator | None = None) -> list[RetailerResult]:
    return (aggregator or default_aggregator()).search_all(query, household_id)
