from urllib.parse import urlparse
import logging
import xml.etree.ElementTree as ET

from async_upnp_client.search import async_search

from .control import get_device_info, soap_request
from .errors import SonosError

logger = logging.getLogger(__name__)

SEARCH_TARGET = "urn:schemas-upnp-org:device:ZonePlayer:1"
DISCOVERY_TIMEOUT = 2

def is_sonos(info):
    return info.get('model', '').startswith('Sonos') or info.get('manufacturer', '').startswith('Sonos')

def invisible_members(zone_state):
    """Returns the UUIDs of bonded members (subs, surrounds, stereo pair slaves)."""
    try:
        state_root = ET.fromstring(zone_state)
    except ET.ParseError as e:
        logger.error(f"Failed to parse zone state: {e}")
        return set()
    return {
        member.get('UUID')
        for member in state_root.iter()
        if member.tag in ('ZoneGroupMember', 'Satellite') and member.get('Invisible', '0') != '0'
    }

async def discover(session, timeout=DISCOVERY_TIMEOUT):
    """Discover Sonos speakers on the local network using SSDP.

    Waits the full timeout for answers, then fetches every device description,
    drops bonded members the zone topology marks invisible and returns the
    speakers sorted by room name.
    """
    locations = []

    async def on_response(headers):
        location = headers.get('location')
        if location and location not in locations:
            logger.debug(f"SSDP response from {location}")
            locations.append(location)

    await async_search(on_response, timeout=timeout, search_target=SEARCH_TARGET)
    logger.info(f"Found {len(locations)} ZonePlayer location(s)")

    speakers = []
    for location in locations:
        info = await get_device_info(session, location)
        if not info or not is_sonos(info):
            logger.info(f"Ignoring non-Sonos device at {location}")
            continue
        speaker = {
            'location': location,
            'ip': urlparse(location).hostname,
        }
        speaker.update(info)
        speaker['room'] = info.get('room') or info.get('zone') or info['name']
        speakers.append(speaker)

    # Get zone state from the first device that answers
    zone_state = None
    for speaker in speakers:
        try:
            zone_state = await get_zone_group_state(session, speaker['ip'])
        except SonosError as e:
            logger.error(f"Could not get zone state from {speaker['ip']}: {e}")
            continue
        if zone_state:
            break

    if zone_state:
        hidden = invisible_members(zone_state)
        for speaker in speakers:
            if speaker['uuid'] in hidden:
                logger.info(f"Ignoring bonded {speaker['model']} at {speaker['ip']} in {speaker['room']}")
        speakers = [speaker for speaker in speakers if speaker['uuid'] not in hidden]
    elif speakers:
        logger.error("Could not get zone state from any device")

    speakers.sort(key=lambda x: x['room'].lower())
    return speakers

def match_room(speakers, name):
    """Returns the speaker whose room name matches name (case-insensitive), or None."""
    for speaker in speakers:
        if speaker['room'].lower() == name.lower():
            logger.info(f"Resolved {name} to {speaker['ip']}")
            return speaker
    logger.info(f"No speaker named {name}")
    return None

async def find(session, name, timeout=DISCOVERY_TIMEOUT):
    """Discovers speakers and returns the one in room name, or None."""
    return match_room(await discover(session, timeout), name)

async def get_zone_group_state(session, ip):
    """Gets the zone group state from a Sonos device."""
    result = await soap_request(session, ip, 'ZoneGroupTopology:1', 'GetZoneGroupState')
    return result.get('ZoneGroupState') or None

async def get_group_coordinator(session, ip, uuid):
    """Returns the UUID of the coordinator of the group uuid belongs to."""
    zone_state = await get_zone_group_state(session, ip)
    if not zone_state:
        return None
    try:
        state_root = ET.fromstring(zone_state)
    except ET.ParseError as e:
        logger.error(f"Failed to parse zone state: {e}")
        return None

    for group in state_root.iter('ZoneGroup'):
        member_uuids = [m.get('UUID') for m in group.iter('ZoneGroupMember')]
        if uuid in member_uuids:
            return group.get('Coordinator')
    return None
