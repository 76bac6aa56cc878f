"""Component Factory for strategy instantiation.

Builds the scanner, fetcher, interpolator and substitution engine from
settings, so strategies can be swapped without touching the engine.
"""

import logging

import httpx

from esi_engine.core.config import Settings, get_settings
from esi_engine.core.engine import SubstitutionEngine
from esi_engine.core.options import EsiConfig
from esi_engine.interfaces.fetcher import BaseFragmentFetcher
from esi_engine.interfaces.interpolator import BaseVariableInterpolator
from esi_engine.interfaces.scanner import BaseDirectiveScanner
from esi_engine.strategies.fetchers import HttpxFragmentFetcher
from esi_engine.strategies.interpolators import VarsInterpolator
from esi_engine.strategies.scanners import StateMachineScanner

logger = logging.getLogger(__name__)


class ComponentFactory:
    """Factory for creating ESI components based on configuration.

    Components are created lazily and cached, so every engine built by one
    factory shares a single HTTP connection pool.

    Example:
        ```python
        factory = ComponentFactory(get_settings())
        engine = factory.get_engine()
        ...
        await factory.aclose()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            settings: Application settings. If None, uses global settings.
            transport: Optional httpx transport for the fetcher's client.
        """
        self._settings = settings or get_settings()
        self._transport = transport
        self._scanner_cache: BaseDirectiveScanner | None = None
        self._fetcher_cache: BaseFragmentFetcher | None = None
        self._interpolator_cache: BaseVariableInterpolator | None = None
        self._engine_cache: SubstitutionEngine | None = None

    def get_scanner(self, scanner_type: str | None = None) -> BaseDirectiveScanner:
        """Get a directive scanner.

        Raises:
            ValueError: If the scanner type is unknown.
        """
        if self._scanner_cache is None or scanner_type is not None:
            scanner_type = scanner_type or self._settings.scanner_type

            logger.info(f"Instantiating scanner: {scanner_type}")

            match scanner_type:
                case "state_machine":
                    self._scanner_cache = StateMachineScanner()
                case _:
                    raise ValueError(
                        f"Unknown scanner type: {scanner_type}. "
                        f"Valid options: 'state_machine'"
                    )

        return self._scanner_cache

    def get_fetcher(self, fetcher_type: str | None = None) -> BaseFragmentFetcher:
        """Get a fragment fetcher.

        Raises:
            ValueError: If the fetcher type is unknown.
        """
        if self._fetcher_cache is None or fetcher_type is not None:
            fetcher_type = fetcher_type or self._settings.fetcher_type

            logger.info(f"Instantiating fetcher: {fetcher_type}")

            match fetcher_type:
                case "httpx":
                    self._fetcher_cache = HttpxFragmentFetcher(
                        follow_redirects=self._settings.follow_redirects,
                        transport=self._transport,
                    )
                case _:
                    raise ValueError(
                        f"Unknown fetcher type: {fetcher_type}. "
                        f"Valid options: 'httpx'"
                    )

        return self._fetcher_cache

    def get_interpolator(self) -> BaseVariableInterpolator:
        """Get the esi:vars interpolator."""
        if self._interpolator_cache is None:
            self._interpolator_cache = VarsInterpolator()
        return self._interpolator_cache

    def get_engine(self) -> SubstitutionEngine:
        """Get the substitution engine wired with the configured strategies."""
        if self._engine_cache is None:
            self._engine_cache = SubstitutionEngine(
                scanner=self.get_scanner(),
                fetcher=self.get_fetcher(),
                interpolator=self.get_interpolator(),
            )
        return self._engine_cache

    def get_config(self) -> EsiConfig:
        """Get the global ESI configuration layer."""
        return self._settings.to_config()

    async def aclose(self) -> None:
        """Close the fetcher's HTTP client, if one was created."""
        if self._fetcher_cache is not None:
            await self._fetcher_cache.aclose()
            logger.info("Fragment fetcher closed")

    @property
    def settings(self) -> Settings:
        return self._settings
