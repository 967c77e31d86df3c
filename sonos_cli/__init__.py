"""
Sonos command-line client

Discovers Sonos speakers on the local network and controls them over UPnP/SOAP.
Every operation is async and takes an aiohttp session plus the speaker's IP.
"""

from .discovery import discover, find, get_zone_group_state, get_group_coordinator
from .control import (
    get_device_info,
    get_volume,
    set_volume,
    get_mute,
    set_mute,
    get_track_info,
    get_queue,
)
from .errors import SonosError

__all__ = [
    'discover',
    'find',
    'get_zone_group_state',
    'get_group_coordinator',
    'get_device_info',
    'get_volume',
    'set_volume',
    'get_mute',
    'set_mute',
    'get_track_info',
    'get_queue',
    'SonosError',
]
