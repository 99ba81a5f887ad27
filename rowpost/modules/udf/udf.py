import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Optional

from rowpost.config.provider import BridgeConfig
from rowpost.modules.bridge import RowRequestBridge
from rowpost.modules.client import get_registry

logger = logging.getLogger("rowpost.udf")


class RowFunction:
    """
    Picklable single-argument row function.

    Only the configuration travels with the function. In each process
    that calls it, the bridge runs on that process's shared client.
    """

    def __init__(self, config: BridgeConfig, name: str = "rowpost", registry=None):
        self.config = config
        self.__name__ = name
        self._registry = registry

    def __getstate__(self):
        state = self.__dict__.copy()
        state["_registry"] = None
        return state

    def bridge(self) -> RowRequestBridge:
        registry = self._registry if self._registry is not None else get_registry()
        return RowRequestBridge(registry.get_client(self.config), self.config)

    def __call__(self, payload: Optional[Any]) -> str:
        return self.bridge()(payload)


def register_udf(
    session: Any,
    name: str,
    config: BridgeConfig,
    return_type: str = "string",
) -> RowFunction:
    """
    Register a row function with a data engine session.

    Args:
        session: Engine session exposing udf.register(name, f, return_type),
            e.g. a Spark SparkSession
        name: Name to call the function by in queries
        config: Bridge configuration shipped with the function
        return_type: Engine type of the returned column (DDL string)

    Returns:
        The registered RowFunction
    """
    function = RowFunction(config, name=name)
    session.udf.register(name, function, return_type)
    logger.info(f"Registered row function '{name}' -> {config.endpoint_url}")
    return function


def map_rows(function, payloads: Iterable[Any], max_workers: int = 8) -> List[str]:
    """
    Apply a row function to every payload on a thread pool.

    Stands in for the engine when running outside a cluster. Results are
    returned in input order.
    """
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="rowpost-row") as pool:
        return list(pool.map(function, payloads))
