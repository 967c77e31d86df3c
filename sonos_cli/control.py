import asyncio
import logging
import xml.etree.ElementTree as ET

import aiohttp

from .errors import SonosError
from .utils import (
    create_soap_body,
    create_soap_headers,
    format_time,
    parse_didl,
    parse_soap_fault,
    parse_soap_response,
    parse_time,
    play_mode_to_state,
    state_to_play_mode,
)

logger = logging.getLogger(__name__)

SONOS_PORT = 1400

SERVICES = {
    'AVTransport:1': '/MediaRenderer/AVTransport/Control',
    'RenderingControl:1': '/MediaRenderer/RenderingControl/Control',
    'ContentDirectory:1': '/MediaServer/ContentDirectory/Control',
    'ZoneGroupTopology:1': '/ZoneGroupTopology/Control',
}

QUEUE_PAGE_SIZE = 100

async def soap_request(session, ip, service, action, **kwargs):
    """Sends one SOAP action to a Sonos device and returns its output arguments."""
    url = f'http://{ip}:{SONOS_PORT}{SERVICES[service]}'
    logger.info(f"Sending {action} to {ip}")
    try:
        async with session.post(
            url,
            data=create_soap_body(service, action, **kwargs),
            headers=create_soap_headers(service, action)
        ) as response:
            status = response.status
            text = await response.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"{action} request to {ip} failed: {e}")
        raise SonosError(f"Could not reach speaker at {ip}: {e}") from e

    logger.debug(f"{action} response from {ip}: {text}")
    if status != 200:
        error_code = parse_soap_fault(text)
        logger.error(f"{action} failed for {ip} with status {status}, error code: {error_code}")
        raise SonosError(f"{action} failed on {ip}", error_code)

    result = parse_soap_response(text, action)
    if result is None:
        raise SonosError(f"Unexpected response to {action} from {ip}")
    return result

async def get_device_info(session, location):
    """Gets detailed device information from a Sonos device."""
    try:
        async with session.get(location) as response:
            if response.status != 200:
                logger.error(f"Device description at {location} returned {response.status}")
                return None
            text = await response.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Could not fetch device description at {location}: {e}")
        return None

    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        logger.error(f"Invalid device description at {location}: {e}")
        return None

    device = root.find('.//{urn:schemas-upnp-org:device-1-0}device')
    if device is None:
        return None

    def text_of(tag):
        found = device.find(f'{{urn:schemas-upnp-org:device-1-0}}{tag}')
        return found.text if found is not None else None

    udn = text_of('UDN') or ''
    return {
        'name': text_of('friendlyName') or 'Unknown',
        'room': text_of('roomName'),
        'model': text_of('modelName') or 'Unknown',
        'manufacturer': text_of('manufacturer') or 'Unknown',
        'zone': text_of('zoneName'),
        'uuid': udn[len('uuid:'):] if udn.startswith('uuid:') else udn or None,
    }

async def play(session, ip):
    """Starts playback on a Sonos device."""
    await soap_request(session, ip, 'AVTransport:1', 'Play', InstanceID=0, Speed=1)

async def pause(session, ip):
    """Pauses playback on a Sonos device."""
    await soap_request(session, ip, 'AVTransport:1', 'Pause', InstanceID=0)

async def stop(session, ip):
    """Stops playback on a Sonos device."""
    await soap_request(session, ip, 'AVTransport:1', 'Stop', InstanceID=0)

async def next_track(session, ip):
    """Skips to the next track on a Sonos device."""
    await soap_request(session, ip, 'AVTransport:1', 'Next', InstanceID=0)

async def previous_track(session, ip):
    """Skips back to the previous track on a Sonos device."""
    await soap_request(session, ip, 'AVTransport:1', 'Previous', InstanceID=0)

async def get_volume(session, ip):
    """Gets the current volume level from a Sonos device."""
    result = await soap_request(
        session, ip, 'RenderingControl:1', 'GetVolume', InstanceID=0, Channel='Master'
    )
    return _int_argument(result, 'CurrentVolume', ip)

async def set_volume(session, ip, volume):
    """Sets the volume level for a Sonos device, clamped to 0-100."""
    volume = max(0, min(100, volume))
    await soap_request(
        session, ip, 'RenderingControl:1', 'SetVolume',
        InstanceID=0, Channel='Master', DesiredVolume=volume
    )
    return volume

async def get_mute(session, ip):
    """Gets the current mute state from a Sonos device."""
    result = await soap_request(
        session, ip, 'RenderingControl:1', 'GetMute', InstanceID=0, Channel='Master'
    )
    return result.get('CurrentMute') == '1'

async def set_mute(session, ip, mute):
    """Sets the mute state for a Sonos device."""
    await soap_request(
        session, ip, 'RenderingControl:1', 'SetMute',
        InstanceID=0, Channel='Master', DesiredMute=1 if mute else 0
    )

async def get_bass(session, ip):
    """Gets the current bass level from a Sonos device."""
    result = await soap_request(session, ip, 'RenderingControl:1', 'GetBass', InstanceID=0)
    return _int_argument(result, 'CurrentBass', ip)

async def set_bass(session, ip, level):
    """Sets the bass level, clamped to -10..10."""
    level = max(-10, min(10, level))
    await soap_request(session, ip, 'RenderingControl:1', 'SetBass', InstanceID=0, DesiredBass=level)
    return level

async def get_treble(session, ip):
    """Gets the current treble level from a Sonos device."""
    result = await soap_request(session, ip, 'RenderingControl:1', 'GetTreble', InstanceID=0)
    return _int_argument(result, 'CurrentTreble', ip)

async def set_treble(session, ip, level):
    """Sets the treble level, clamped to -10..10."""
    level = max(-10, min(10, level))
    await soap_request(session, ip, 'RenderingControl:1', 'SetTreble', InstanceID=0, DesiredTreble=level)
    return level

async def get_loudness(session, ip):
    """Gets the loudness compensation state from a Sonos device."""
    result = await soap_request(
        session, ip, 'RenderingControl:1', 'GetLoudness', InstanceID=0, Channel='Master'
    )
    return result.get('CurrentLoudness') == '1'

async def set_loudness(session, ip, loudness):
    """Turns loudness compensation on or off for a Sonos device."""
    await soap_request(
        session, ip, 'RenderingControl:1', 'SetLoudness',
        InstanceID=0, Channel='Master', DesiredLoudness=1 if loudness else 0
    )

async def get_play_mode(session, ip):
    """Gets the current Sonos PlayMode (NORMAL, SHUFFLE, ...)."""
    result = await soap_request(session, ip, 'AVTransport:1', 'GetTransportSettings', InstanceID=0)
    return result.get('PlayMode', 'NORMAL')

async def set_play_mode(session, ip, play_mode):
    """Sets the Sonos PlayMode for a Sonos device."""
    await soap_request(session, ip, 'AVTransport:1', 'SetPlayMode', InstanceID=0, NewPlayMode=play_mode)

async def get_shuffle(session, ip):
    """Returns whether shuffle is on."""
    shuffle, _ = play_mode_to_state(await get_play_mode(session, ip))
    return shuffle

async def set_shuffle(session, ip, shuffle):
    """Turns shuffle on or off, keeping the current repeat mode."""
    _, repeat = play_mode_to_state(await get_play_mode(session, ip))
    await set_play_mode(session, ip, state_to_play_mode(shuffle, repeat))

async def get_repeat(session, ip):
    """Returns the repeat mode: off, all or one."""
    _, repeat = play_mode_to_state(await get_play_mode(session, ip))
    return repeat

async def set_repeat(session, ip, repeat):
    """Sets repeat to 'off', 'all' or 'one', keeping the current shuffle setting."""
    shuffle, _ = play_mode_to_state(await get_play_mode(session, ip))
    await set_play_mode(session, ip, state_to_play_mode(shuffle, repeat))

async def get_track_info(session, ip):
    """Gets the current track, or None when nothing is loaded."""
    result = await soap_request(session, ip, 'AVTransport:1', 'GetPositionInfo', InstanceID=0)
    uri = result.get('TrackURI')
    tracks = parse_didl(result.get('TrackMetaData'))
    if not tracks and not uri:
        return None

    track = tracks[0] if tracks else {'title': None, 'artist': None, 'album': None, 'uri': None}
    track['uri'] = track.get('uri') or uri
    track['duration'] = parse_time(result.get('TrackDuration'))
    track['elapsed'] = parse_time(result.get('RelTime'))
    try:
        track['position'] = int(result.get('Track', '0')) or None
    except ValueError:
        track['position'] = None
    return track

async def get_queue(session, ip):
    """Reads the whole queue, page by page."""
    queue = []
    while True:
        result = await soap_request(
            session, ip, 'ContentDirectory:1', 'Browse',
            ObjectID='Q:0',
            BrowseFlag='BrowseDirectChildren',
            Filter='dc:title,res,dc:creator,upnp:artist,upnp:album',
            StartingIndex=len(queue),
            RequestedCount=QUEUE_PAGE_SIZE,
            SortCriteria=''
        )
        page = parse_didl(result.get('Result'))
        for track in page:
            track['position'] = len(queue) + 1
            queue.append(track)

        total = _int_argument(result, 'TotalMatches', ip)
        if not page or len(queue) >= total:
            return queue

async def add_to_queue(session, ip, uri, as_next=False):
    """Adds a URI to the queue, either at the end or right after the current track.

    Returns the queue position the first added track ended up at.
    """
    position = 0
    if as_next:
        track = await get_track_info(session, ip)
        position = (track['position'] or 0) + 1 if track else 1
    result = await soap_request(
        session, ip, 'AVTransport:1', 'AddURIToQueue',
        InstanceID=0,
        EnqueuedURI=uri,
        EnqueuedURIMetaData='',
        DesiredFirstTrackNumberEnqueued=position,
        EnqueueAsNext=1 if as_next else 0
    )
    return _int_argument(result, 'FirstTrackNumberEnqueued', ip)

async def clear_queue(session, ip):
    """Removes every track from the queue."""
    await soap_request(session, ip, 'AVTransport:1', 'RemoveAllTracksFromQueue', InstanceID=0)

async def remove_track(session, ip, index):
    """Removes the track at a 1-based queue position."""
    if index < 1:
        raise ValueError(f"Queue positions start at 1, got {index}")
    await soap_request(
        session, ip, 'AVTransport:1', 'RemoveTrackFromQueue',
        InstanceID=0, ObjectID=f'Q:0/{index}', UpdateID=0
    )

async def seek(session, ip, seconds):
    """Seeks to an absolute position in the current track."""
    await soap_request(
        session, ip, 'AVTransport:1', 'Seek',
        InstanceID=0, Unit='REL_TIME', Target=format_time(seconds)
    )

async def skip_by(session, ip, seconds):
    """Seeks relative to the current position; never before the start of the track."""
    track = await get_track_info(session, ip)
    if track is None or track['elapsed'] is None:
        raise SonosError(f"Current track on {ip} does not support seeking")
    target = max(0, track['elapsed'] + seconds)
    if track['duration']:
        target = min(target, track['duration'])
    await seek(session, ip, target)
    return target

async def skip_to_track(session, ip, index):
    """Jumps to a 1-based queue position."""
    if index < 1:
        raise ValueError(f"Queue positions start at 1, got {index}")
    await soap_request(session, ip, 'AVTransport:1', 'Seek', InstanceID=0, Unit='TRACK_NR', Target=index)

async def join(session, ip, coordinator_uuid):
    """Makes the device at ip a member of the group led by coordinator_uuid."""
    await soap_request(
        session, ip, 'AVTransport:1', 'SetAVTransportURI',
        InstanceID=0, CurrentURI=f'x-rincon:{coordinator_uuid}', CurrentURIMetaData=''
    )

async def leave(session, ip):
    """Takes a Sonos device out of its group."""
    await soap_request(session, ip, 'AVTransport:1', 'BecomeCoordinatorOfStandaloneGroup', InstanceID=0)

def _int_argument(result, name, ip):
    try:
        return int(result[name])
    except (KeyError, TypeError, ValueError):
        raise SonosError(f"Missing or invalid {name} in response from {ip}")

