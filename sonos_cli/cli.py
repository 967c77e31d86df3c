import argparse
import asyncio
import logging

import aiohttp

from . import commands
from .discovery import DISCOVERY_TIMEOUT, discover, match_room
from .errors import SonosError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10

def _bounded_int(low, high):
    def convert(value):
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{value!r} is not a number")
        if not low <= number <= high:
            raise argparse.ArgumentTypeError(f"{number} is not between {low} and {high}")
        return number
    return convert

def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number")
    if number < 1:
        raise argparse.ArgumentTypeError(f"{number} must be 1 or greater")
    return number

def on_off(value):
    if value.lower() == 'on':
        return True
    if value.lower() == 'off':
        return False
    raise argparse.ArgumentTypeError(f"expected 'on' or 'off', got {value!r}")

def _room_command(subparsers, name, handler, help_text):
    parser = subparsers.add_parser(name, help=help_text, description=help_text)
    parser.add_argument('room', help="Room name, e.g. 'Living Room'")
    parser.set_defaults(handler=handler, needs_speaker=True)
    return parser

def build_parser():
    parser = argparse.ArgumentParser(
        prog='sonos-cli',
        description="Control Sonos speakers on the local network"
    )
    parser.add_argument(
        '--timeout',
        type=positive_int,
        default=DISCOVERY_TIMEOUT,
        help=f"Seconds to wait for speakers to answer discovery (default: {DISCOVERY_TIMEOUT})"
    )
    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help="Log progress to stderr; repeat for debug output"
    )
    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    info = subparsers.add_parser('info', help="Displays info about all rooms")
    info.set_defaults(handler=commands.info, needs_speaker=False)

    _room_command(subparsers, 'stop', commands.stop, "Stops specified room")
    _room_command(subparsers, 'play', commands.play, "Plays specified room")
    _room_command(subparsers, 'pause', commands.pause, "Pauses a specified room")
    _room_command(subparsers, 'next', commands.next_track,
                  "Skips to the next track for a specified room")
    _room_command(subparsers, 'previous', commands.previous_track,
                  "Skips back to the previous track for a specified room")
    _room_command(subparsers, 'track', commands.track,
                  "Displays the current track for a specified room")
    _room_command(subparsers, 'volume', commands.volume,
                  "Displays the volume for a specified room")

    set_volume = _room_command(subparsers, 'set-volume', commands.set_volume,
                               "Sets the volume for a specified room")
    set_volume.add_argument('volume', type=_bounded_int(0, 100), help="Volume from 0 to 100")

    _room_command(subparsers, 'queue', commands.queue, "Lists the queue for a specified room")

    queue_next = _room_command(subparsers, 'queue-next', commands.queue_next,
                               "Adds a URI to the queue right after the current track")
    queue_next.add_argument('uri', help="URI of the track to add")

    queue_end = _room_command(subparsers, 'queue-end', commands.queue_end,
                              "Adds a URI to the end of the queue")
    queue_end.add_argument('uri', help="URI of the track to add")

    _room_command(subparsers, 'clear-queue', commands.clear_queue,
                  "Removes every track from the queue")

    remove_track = _room_command(subparsers, 'remove-track', commands.remove_track,
                                 "Removes a track from the queue")
    remove_track.add_argument('track', type=positive_int, help="Queue position, starting at 1")

    mute = _room_command(subparsers, 'mute', commands.mute,
                         "Mutes or unmutes a room; toggles when no state is given")
    mute.add_argument('state', nargs='?', type=on_off, help="'on' or 'off'")

    for name, handler in (('bass', commands.bass), ('treble', commands.treble)):
        eq = _room_command(subparsers, name, handler,
                           f"Displays or sets the {name} level for a specified room")
        eq.add_argument('level', nargs='?', type=_bounded_int(-10, 10), help="Level from -10 to 10")

    loudness = _room_command(subparsers, 'loudness', commands.loudness,
                             "Displays or sets loudness compensation")
    loudness.add_argument('state', nargs='?', type=on_off, help="'on' or 'off'")

    shuffle = _room_command(subparsers, 'shuffle', commands.shuffle,
                            "Displays or sets shuffle, keeping the repeat mode")
    shuffle.add_argument('state', nargs='?', type=on_off, help="'on' or 'off'")

    for mode in ('all', 'one', 'off'):
        repeat = _room_command(subparsers, f'repeat-{mode}', commands.repeat,
                               f"Sets repeat to {mode}, keeping the shuffle setting")
        repeat.set_defaults(repeat=mode)

    join = _room_command(subparsers, 'join', commands.join,
                         "Adds a room to the group of another room")
    join.add_argument('other', help="Room whose group to join")

    _room_command(subparsers, 'leave', commands.leave, "Removes a room from its group")

    skip = _room_command(subparsers, 'skip', commands.skip,
                         "Seeks forward (or back, if negative) within the current track")
    skip.add_argument('seconds', type=int, help="Seconds to skip, negative to go back")

    skip_to = _room_command(subparsers, 'skip-to', commands.skip_to,
                            "Jumps to a track in the queue")
    skip_to.add_argument('track', type=positive_int, help="Queue position, starting at 1")

    return parser

def configure_logging(verbosity):
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

async def run(args):
    """Resolves the target speaker and runs one command against it."""
    timeout = aiohttp.ClientTimeout(total=HTTP_TIMEOUT)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        if not args.needs_speaker:
            return await args.handler(session, args)

        # One discovery window per run; handlers that need another room read args.speakers
        args.speakers = await discover(session, args.timeout)
        speaker = match_room(args.speakers, args.room)
        if speaker is None:
            print(f"Speaker '{args.room}' not found")
            return 0

        try:
            return await args.handler(session, speaker, args) or 0
        except SonosError as e:
            logger.error(f"{args.command} failed on {speaker['room']}: {e}")
            print(f"Error: {e}")
            return 1

def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return asyncio.run(run(args))
