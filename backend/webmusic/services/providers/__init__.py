"""
Provider adapters package initialization
"""
from .base import MusicProvider
from .qq import QQMusicProvider
from .netease import NeteaseProvider
from .kuwo import KuwoProvider

# Registry of provider classes keyed by source tag
PROVIDERS = {
    provider.name: provider
    for provider in (QQMusicProvider, NeteaseProvider, KuwoProvider)
}

__all__ = ['MusicProvider', 'QQMusicProvider', 'NeteaseProvider', 'KuwoProvider', 'PROVIDERS']
