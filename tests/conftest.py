"""Shared fixtures: fake aiohttp sessions and canned SOAP payloads."""

from unittest.mock import AsyncMock, MagicMock
from xml.sax.saxutils import escape

import pytest

ENVELOPE = (
    '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" '
    's:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/"><s:Body>{body}</s:Body></s:Envelope>'
)

FAULT = (
    '<s:Fault><faultcode>s:Client</faultcode><faultstring>UPnPError</faultstring>'
    '<detail><UPnPError xmlns="urn:schemas-upnp-org:control-1-0">'
    '<errorCode>{code}</errorCode></UPnPError></detail></s:Fault>'
)

DIDL_ITEM = (
    '<item id="Q:0/{index}" parentID="Q:0" restricted="true">'
    '<res protocolInfo="x-file-cifs:*:audio/mpeg:*">{uri}</res>'
    '<dc:title>{title}</dc:title>'
    '<upnp:class>object.item.audioItem.musicTrack</upnp:class>'
    '<dc:creator>{artist}</dc:creator>'
    '<upnp:album>{album}</upnp:album>'
    '</item>'
)

DIDL = (
    '<DIDL-Lite xmlns:dc="http://purl.org/dc/elements/1.1/" '
    'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/" '
    'xmlns:r="urn:schemas-rinconnetworks-com:metadata-1-0/" '
    'xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/">{items}</DIDL-Lite>'
)


def _response(text, status=200):
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


@pytest.fixture
def soap_envelope():
    """Builds a successful SOAP response for an action."""

    def build(action, service="AVTransport:1", **values):
        arguments = "".join(
            f"<{key}>{escape(str(value))}</{key}>" for key, value in values.items()
        )
        body = (
            f'<u:{action}Response xmlns:u="urn:schemas-upnp-org:service:{service}">'
            f"{arguments}</u:{action}Response>"
        )
        return ENVELOPE.format(body=body)

    return build


@pytest.fixture
def soap_fault():
    def build(code):
        return ENVELOPE.format(body=FAULT.format(code=code))

    return build


@pytest.fixture
def didl():
    """Builds DIDL-Lite metadata from (title, artist, album, uri) tuples."""

    def build(*tracks):
        items = "".join(
            DIDL_ITEM.format(
                index=index, title=title, artist=artist, album=album, uri=uri
            )
            for index, (title, artist, album, uri) in enumerate(tracks, start=1)
        )
        return DIDL.format(items=items)

    return build


@pytest.fixture
def fake_session():
    """Returns a factory for sessions whose post() answers with the given bodies in order.

    Each reply is either a body string (HTTP 200) or a (body, status) tuple.
    """

    def build(*replies):
        session = MagicMock()
        contexts = []
        for reply in replies:
            if isinstance(reply, tuple):
                contexts.append(_response(*reply))
            else:
                contexts.append(_response(reply))
        session.post = MagicMock(side_effect=contexts)
        return session

    return build


@pytest.fixture
def response_context():
    return _response


@pytest.fixture
def speaker():
    return {
        "name": "192.168.1.20 - Sonos One",
        "room": "Kitchen",
        "model": "Sonos One",
        "manufacturer": "Sonos, Inc.",
        "zone": None,
        "uuid": "RINCON_000E58A1B2C301400",
        "ip": "192.168.1.20",
        "location": "http://192.168.1.20:1400/xml/device_description.xml",
    }


@pytest.fixture
def sent_body():
    """Returns the SOAP body of a recorded post() call."""

    def body(session, call=-1):
        return session.post.call_args_list[call].kwargs["data"]

    return body
