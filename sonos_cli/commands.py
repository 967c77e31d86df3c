"""
Command handlers.

Each handler receives the aiohttp session, the resolved speaker dict and the
parsed arguments, performs one operation and prints the outcome. ``SonosError``
is left to the dispatcher.
"""

import logging

from . import control
from .discovery import discover, get_group_coordinator, match_room
from .errors import SonosError
from .utils import describe_track, format_time

logger = logging.getLogger(__name__)

def _on_off(value):
    return 'on' if value else 'off'

def _print_track(track, room):
    if track is None:
        print(f"- No track currently playing on {room}")
        return
    line = f"- Currently playing '{describe_track(track)}' on '{room}'"
    if track['elapsed'] is not None and track['duration']:
        line += f" [{format_time(track['elapsed'])}/{format_time(track['duration'])}]"
    print(line)

async def info(session, args):
    """Prints volume and current track for every speaker on the network."""
    speakers = await discover(session, args.timeout)
    if not speakers:
        print("No Sonos speakers found")
        return 0

    failed = False
    for speaker in speakers:
        room = speaker['room']
        try:
            volume = await control.get_volume(session, speaker['ip'])
            print(f"The volume is currently at {volume} on {room}")
            _print_track(await control.get_track_info(session, speaker['ip']), room)
        except SonosError as e:
            logger.error(f"Could not read state of {room}: {e}")
            print(f"Error: {room}: {e}")
            failed = True
    return 1 if failed else 0

async def stop(session, speaker, args):
    await control.stop(session, speaker['ip'])
    print(f"Stopped {speaker['room']}")

async def play(session, speaker, args):
    await control.play(session, speaker['ip'])
    print(f"Playing on {speaker['room']}")

async def pause(session, speaker, args):
    await control.pause(session, speaker['ip'])
    print(f"Paused {speaker['room']}")

async def next_track(session, speaker, args):
    await control.next_track(session, speaker['ip'])
    print(f"Skipped to the next track on {speaker['room']}")

async def previous_track(session, speaker, args):
    await control.previous_track(session, speaker['ip'])
    print(f"Skipped back to the previous track on {speaker['room']}")

async def track(session, speaker, args):
    _print_track(await control.get_track_info(session, speaker['ip']), speaker['room'])

async def volume(session, speaker, args):
    current = await control.get_volume(session, speaker['ip'])
    print(f"The volume is currently at {current} on {speaker['room']}")

async def set_volume(session, speaker, args):
    new_volume = await control.set_volume(session, speaker['ip'], args.volume)
    print(f"Set the volume to {new_volume} on {speaker['room']}")

async def queue(session, speaker, args):
    tracks = await control.get_queue(session, speaker['ip'])
    if not tracks:
        print(f"The queue is empty on {speaker['room']}")
        return
    print(f"Queue on {speaker['room']}:")
    for queued in tracks:
        print(f"{queued['position']:>4}. {describe_track(queued)}")

async def queue_next(session, speaker, args):
    position = await control.add_to_queue(session, speaker['ip'], args.uri, as_next=True)
    print(f"Queued {args.uri} at position {position} on {speaker['room']}")

async def queue_end(session, speaker, args):
    position = await control.add_to_queue(session, speaker['ip'], args.uri)
    print(f"Queued {args.uri} at position {position} on {speaker['room']}")

async def clear_queue(session, speaker, args):
    await control.clear_queue(session, speaker['ip'])
    print(f"Cleared the queue on {speaker['room']}")

async def remove_track(session, speaker, args):
    await control.remove_track(session, speaker['ip'], args.track)
    print(f"Removed track {args.track} from the queue on {speaker['room']}")

async def mute(session, speaker, args):
    muted = args.state
    if muted is None:
        muted = not await control.get_mute(session, speaker['ip'])
    await control.set_mute(session, speaker['ip'], muted)
    print(f"{'Muted' if muted else 'Unmuted'} {speaker['room']}")

async def bass(session, speaker, args):
    if args.level is None:
        level = await control.get_bass(session, speaker['ip'])
        print(f"Bass is at {level} on {speaker['room']}")
    else:
        level = await control.set_bass(session, speaker['ip'], args.level)
        print(f"Set bass to {level} on {speaker['room']}")

async def treble(session, speaker, args):
    if args.level is None:
        level = await control.get_treble(session, speaker['ip'])
        print(f"Treble is at {level} on {speaker['room']}")
    else:
        level = await control.set_treble(session, speaker['ip'], args.level)
        print(f"Set treble to {level} on {speaker['room']}")

async def loudness(session, speaker, args):
    if args.state is None:
        enabled = await control.get_loudness(session, speaker['ip'])
    else:
        enabled = args.state
        await control.set_loudness(session, speaker['ip'], enabled)
    print(f"Loudness is {_on_off(enabled)} on {speaker['room']}")

async def shuffle(session, speaker, args):
    if args.state is None:
        enabled = await control.get_shuffle(session, speaker['ip'])
    else:
        enabled = args.state
        await control.set_shuffle(session, speaker['ip'], enabled)
    print(f"Shuffle is {_on_off(enabled)} on {speaker['room']}")

async def repeat(session, speaker, args):
    await control.set_repeat(session, speaker['ip'], args.repeat)
    print(f"Repeat is {args.repeat} on {speaker['room']}")

async def join(session, speaker, args):
    """Joins the speaker to the group the other room belongs to."""
    other = match_room(args.speakers, args.other)
    if other is None:
        print(f"Speaker '{args.other}' not found")
        return 0
    coordinator = await get_group_coordinator(session, other['ip'], other['uuid']) or other['uuid']
    logger.info(f"Joining {speaker['room']} to coordinator {coordinator}")
    await control.join(session, speaker['ip'], coordinator)
    print(f"{speaker['room']} joined {other['room']}")

async def leave(session, speaker, args):
    await control.leave(session, speaker['ip'])
    print(f"{speaker['room']} left its group")

async def skip(session, speaker, args):
    position = await control.skip_by(session, speaker['ip'], args.seconds)
    print(f"Skipped to {format_time(position)} on {speaker['room']}")

async def skip_to(session, speaker, args):
    await control.skip_to_track(session, speaker['ip'], args.track)
    print(f"Skipped to track {args.track} on {speaker['room']}")
