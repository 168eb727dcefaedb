from typing import Dict, Iterable, List, Optional, Type

import structlog

from app.modules.inventory.domain.plugin import ResourceScanner
from app.schemas.inventory import ResourceKind

logger = structlog.get_logger()


class ScannerRegistry:
    """Maps each resource kind to the plugin class that scans it."""

    def __init__(self) -> None:
        self._plugins: Dict[ResourceKind, Type[ResourceScanner]] = {}

    def register(self, plugin_cls: Type[ResourceScanner]) -> Type[ResourceScanner]:
        kind = plugin_cls().kind
        if kind in self._plugins and self._plugins[kind] is not plugin_cls:
            logger.warning(
                "scanner_registration_replaced",
                kind=kind.value,
                previous=self._plugins[kind].__name__,
                plugin=plugin_cls.__name__,
            )
        self._plugins[kind] = plugin_cls
        return plugin_cls

    def get_plugins(
        self, kinds: Optional[Iterable[ResourceKind]] = None
    ) -> List[ResourceScanner]:
        selected = list(kinds) if kinds is not None else list(self._plugins)
        missing = [k.value for k in selected if k not in self._plugins]
        if missing:
            raise ValueError(f"No scanner registered for: {', '.join(missing)}")
        return [self._plugins[k]() for k in selected]

    @property
    def kinds(self) -> List[ResourceKind]:
        return list(self._plugins)


registry = ScannerRegistry()
