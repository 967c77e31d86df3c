import xml.etree.ElementTree as ET
from xml.sax.saxutils import escape
import logging

logger = logging.getLogger(__name__)

# Sonos PlayMode -> (shuffle, repeat)
PLAY_MODES = {
    'NORMAL': (False, 'off'),
    'REPEAT_ALL': (False, 'all'),
    'REPEAT_ONE': (False, 'one'),
    'SHUFFLE_NOREPEAT': (True, 'off'),
    'SHUFFLE': (True, 'all'),
    'SHUFFLE_REPEAT_ONE': (True, 'one'),
}

def get_xml_text(element, path, namespaces=None):
    """Helper function to safely get text from an XML element."""
    if namespaces:
        found = element.find(path, namespaces)
    else:
        found = element.find(path)
    return found.text if found is not None else None

def parse_soap_response(response_text, action):
    """Returns the output arguments of a SOAP action response as a dict."""
    try:
        root = ET.fromstring(response_text)
    except ET.ParseError as e:
        logger.error(f"Error parsing SOAP response for {action}: {str(e)}")
        return None

    response = root.find(f'.//{{*}}{action}Response')
    if response is None:
        # Some firmwares answer without a namespace on the response element
        response = root.find(f'.//{action}Response')
    if response is None:
        return None
    return {child.tag.split('}')[-1]: child.text or '' for child in response}

def parse_soap_fault(response_text):
    """Extracts the UPnP error code from a SOAP fault, if there is one."""
    try:
        root = ET.fromstring(response_text)
    except ET.ParseError:
        return None
    error_code = root.find('.//{*}errorCode')
    if error_code is None or not error_code.text:
        return None
    try:
        return int(error_code.text)
    except ValueError:
        return None

def create_soap_body(service, action, **kwargs):
    """Helper function to create SOAP request bodies."""
    body = f"""<?xml version="1.0"?>
    <s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">
        <s:Body>
            <u:{action} xmlns:u="urn:schemas-upnp-org:service:{service}">"""

    for key, value in kwargs.items():
        body += f"\n                <{key}>{escape(str(value))}</{key}>"

    body += f"""
            </u:{action}>
        </s:Body>
    </s:Envelope>"""

    return body

def create_soap_headers(service, action):
    """Helper function to create SOAP headers."""
    return {
        'Content-Type': 'text/xml; charset="utf-8"',
        'SOAPACTION': f'"urn:schemas-upnp-org:service:{service}#{action}"'
    }

def parse_didl(text):
    """Parses DIDL-Lite metadata into a list of track dicts."""
    if not text or text == 'NOT_IMPLEMENTED':
        return []
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        logger.debug(f"Ignoring unparsable DIDL-Lite metadata: {e}")
        return []

    tracks = []
    for item in root.iter():
        if item.tag.split('}')[-1] != 'item':
            continue
        artist = get_xml_text(item, '{*}creator') or get_xml_text(item, '{*}artist')
        tracks.append({
            'title': get_xml_text(item, '{*}title'),
            'artist': artist,
            'album': get_xml_text(item, '{*}album'),
            'uri': get_xml_text(item, '{*}res'),
        })
    return tracks

def describe_track(track):
    """Joins title, artist and album the way the speaker's own apps show them."""
    parts = [track.get(key) for key in ('title', 'artist', 'album')]
    return " - ".join(part for part in parts if part) or track.get('uri') or 'Unknown'

def parse_time(value):
    """Converts an H:MM:SS string to seconds. Streams report NOT_IMPLEMENTED."""
    if not value or value == 'NOT_IMPLEMENTED':
        return None
    try:
        parts = [int(part) for part in value.split(':')]
    except ValueError:
        return None
    seconds = 0
    for part in parts:
        seconds = seconds * 60 + part
    return seconds

def format_time(seconds):
    hours, rest = divmod(max(0, int(seconds)), 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"

def play_mode_to_state(play_mode):
    """Splits a Sonos PlayMode into (shuffle, repeat)."""
    state = PLAY_MODES.get((play_mode or '').upper())
    if state is None:
        logger.warning(f"Unknown play mode {play_mode}, treating it as NORMAL")
        return PLAY_MODES['NORMAL']
    return state

def state_to_play_mode(shuffle, repeat):
    """Combines shuffle and repeat ('off', 'all', 'one') into a Sonos PlayMode."""
    for play_mode, state in PLAY_MODES.items():
        if state == (shuffle, repeat):
            return play_mode
    raise ValueError(f"Invalid repeat mode: {repeat}")
