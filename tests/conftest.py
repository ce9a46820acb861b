import asyncio
import random
from typing import List

import pytest

from holdem.config import Config
from holdem.dictionary import DictionaryService
from holdem.managers.game import SessionManager
from holdem.schemas import TileRef
from holdem.tiles import MODIFIERS, make_tile

WORDS = ['CAT', 'CATS', 'CART', 'CARTS', 'RAT', 'TAR', 'ROD', 'CORD', 'DOT', 'QUIT', 'SEA']


class FakeSio:
    """Records everything the server would have sent over Socket.IO."""

    def __init__(self):
        self.emitted = []
        self.rooms = {}

    async def emit(self, event, data=None, room=None, to=None, **kwargs):
        self.emitted.append((event, data, room or to))

    async def enter_room(self, sid, room):
        self.rooms.setdefault(room, set()).add(sid)

    async def leave_room(self, sid, room):
        self.rooms.get(room, set()).discard(sid)

    def events(self, name: str) -> List:
        return [data for event, data, _ in self.emitted if event == name]

    def sent_to(self, target: str, name: str) -> List:
        return [data for event, data, dest in self.emitted if event == name and dest == target]


class FastConfig(Config):
    # Rounds are driven by hand in tests; only the grace periods run for real
    TICK_SECONDS = 3600
    START_DELAY_SEC = 3600
    HOST_MIGRATION_DELAY_SEC = 0.05
    PLAYER_REMOVAL_DELAY_SEC = 0.3
    SESSION_DELETION_DELAY_SEC = 0.6
    BOT_MIN_DELAY_SEC = 0
    BOT_MAX_DELAY_SEC = 0


class RealtimeConfig(FastConfig):
    # Real round clock, fifty times faster
    TICK_SECONDS = 0.02
    START_DELAY_SEC = 0.02


class GatedSio(FakeSio):
    """Parks the first emit of ``event`` until ``gate`` is set."""

    def __init__(self, event: str):
        super().__init__()
        self.gated_event = event
        self.gate = asyncio.Event()
        self.parked = asyncio.Event()

    async def emit(self, event, data=None, room=None, to=None, **kwargs):
        await super().emit(event, data, room=room, to=to, **kwargs)
        if event == self.gated_event and not self.gate.is_set():
            self.parked.set()
            await self.gate.wait()


async def wait_for(predicate, timeout: float = 5.0, step: float = 0.002):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError('condition not reached in time')
        await asyncio.sleep(step)


def modifier(name: str, die_index: int = 0):
    template = next(m for m in MODIFIERS if m.name == name)
    return template.model_copy(update={'dieIndex': die_index})


def tiles(*letters):
    return [make_tile(letter) for letter in letters]


def ref(key: str) -> TileRef:
    """``c0`` -> community slot 0, ``p2`` -> private slot 2."""
    origin = 'community' if key[0] == 'c' else 'private'
    return TileRef(origin=origin, index=int(key[1:]))


def refs(*keys):
    return [ref(k) for k in keys]


# C A R T spelled from community C, A, T and private R
CART_TILES = ('c0', 'c1', 'p0', 'c2')


def set_round(session, mod_name: str = 'Double Letter', die_index: int = 4):
    """Replace the random deal with a fixed one: community CATSE, every player RODs."""
    session.community_dice = tiles('C', 'A', 'T', 'S', 'E')
    session.modifier = modifier(mod_name, die_index)
    for player in session.players.values():
        player.dice = tiles('R', 'O', 'D')


@pytest.fixture
def dictionary():
    return DictionaryService(WORDS)


@pytest.fixture
def sio():
    return FakeSio()


@pytest.fixture
async def manager(sio, dictionary):
    mgr = SessionManager(sio, config=FastConfig, dictionary=dictionary, rng=random.Random(7))
    yield mgr
    for session in list(mgr.sessions.values()):
        session.timers.cancel_all()


@pytest.fixture
async def realtime_manager(sio, dictionary):
    mgr = SessionManager(sio, config=RealtimeConfig, dictionary=dictionary, rng=random.Random(7))
    yield mgr
    for session in list(mgr.sessions.values()):
        session.timers.cancel_all()
