from gamelib.services.sync.adapters.base import BaseSourceAdapter
from gamelib.services.sync.adapters.steam_adapter import SteamAdapter
from gamelib.services.sync.adapters.playstation_adapter import PlayStationAdapter
from gamelib.services.sync.adapters.riot_adapter import RiotAdapter, RiotCredential

__all__ = [
    "BaseSourceAdapter",
    "SteamAdapter",
    "PlayStationAdapter",
    "RiotAdapter",
    "RiotCredential",
]
