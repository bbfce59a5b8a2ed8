import logging
from typing import Dict, Iterable, List, Optional

from ..core.config import settings
from ..core.exceptions import ProviderError, UnsupportedProviderError
from ..models.song import Song
from .providers import PROVIDERS, MusicProvider

logger = logging.getLogger(__name__)


def parse_sources(raw: Optional[str], default: Optional[List[str]] = None) -> List[str]:
    """Split a ``qq,netease`` style parameter; empty input means the default sources."""
    sources: List[str] = []
    for source in (raw or "").split(","):
        source = source.strip().lower()
        if source and source not in sources:
            sources.append(source)
    if not sources:
        return list(default if default is not None else settings.default_sources)
    return sources


class MusicAggregator:
    """Dispatches searches and URL lookups to the registered providers, one at a time."""

    def __init__(self, providers: Iterable[MusicProvider]):
        self.providers: Dict[str, MusicProvider] = {provider.name: provider for provider in providers}

    @property
    def available_sources(self) -> List[str]:
        return list(self.providers)

    def get_provider(self, source: str) -> MusicProvider:
        provider = self.providers.get(source)
        if provider is None:
            raise UnsupportedProviderError(source)
        return provider

    def search(self, keyword: str, sources: Iterable[str]) -> List[Song]:
        songs: List[Song] = []
        seen = set()

        for source in sources:
            provider = self.providers.get(source)
            if provider is None:
                logger.warning(f"Unsupported music source: {source}")
                continue

            try:
                results = provider.search(keyword)
            except ProviderError as e:
                logger.warning(f"Search on {source} failed: {e}", extra={"source": source, "keyword": keyword})
                continue
            except Exception:
                logger.exception(f"Unexpected error searching {source}")
                continue

            for song in results:
                if song.key in seen:
                    continue
                seen.add(song.key)
                songs.append(song)

        logger.info(f"Search '{keyword}' returned {len(songs)} songs")
        return songs

    def get_song_url(self, song_id: str, source: str) -> str:
        return self.get_provider(source).get_song_url(song_id)

    def warm_up(self) -> None:
        for name, provider in self.providers.items():
            try:
                provider.warm_up()
            except Exception as e:
                logger.error(f"Error warming up {name}: {e}")

    def close(self) -> None:
        for provider in self.providers.values():
            provider.close()


_aggregator: Optional[MusicAggregator] = None


def build_aggregator() -> MusicAggregator:
    return MusicAggregator(provider_class() for provider_class in PROVIDERS.values())


def get_aggregator() -> MusicAggregator:
    """FastAPI dependency returning the process-wide aggregator."""
    global _aggregator
    if _aggregator is None:
        _aggregator = build_aggregator()
    return _aggregator


def close_aggregator() -> None:
    """Close the process-wide aggregator, if one was built."""
    global _aggregator
    if _aggregator is not None:
        _aggregator.close()
        _aggregator = None
