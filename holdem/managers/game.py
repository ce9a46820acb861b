from __future__ import annotations
import asyncio
import logging
import random
import time
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from ..bots import BotNegotiator
from ..config import Config
from ..dictionary import DictionaryService, service as dict_service
from ..illustration import IllustrationService
from ..llm import FunFactWriter, ImagePromptWriter
from ..placement import final_standings, rank_round
from ..schemas import (
    AddBotPayload,
    JoinLobbyPayload,
    LobbySettings,
    Modifier,
    PlacementResult,
    PlayerState,
    PlayerView,
    Proposal,
    RoundPlayerSummary,
    RoundSummary,
    ScoreResult,
    SessionView,
    SettingsPayload,
    Submission,
    Tile,
    TileRef,
)
from ..scoring import find_best_word, validate_submission
from ..tiles import TileDeck, roll_modifier
from .timer import TimerRegistry

logger = logging.getLogger(__name__)

CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_LENGTH = 4

def _clamp(value: int, low: int, high: int) -> int:
    return min(high, max(low, value))

class Session:
    """One lobby: its players, the round in progress, and its timers.

    Every handler runs its checks and state changes before its first
    ``await``, so on the single event loop no two handlers interleave
    their mutations.
    """

    def __init__(self, code: str, manager: 'SessionManager'):
        self.code = code
        self.manager = manager
        self.sio = manager.sio
        self.config = manager.config
        self.status: str = 'waiting'
        self.settings = LobbySettings(
            roundCount=self.config.DEFAULT_ROUND_COUNT,
            roundDurationSeconds=self.config.DEFAULT_ROUND_DURATION_SEC,
        )
        self.players: Dict[str, PlayerState] = {}
        # player id -> current socket id; bots never appear here
        self.connections: Dict[str, str] = {}
        self.round_number: int = 0
        self.community_dice: List[Tile] = []
        self.modifier: Optional[Modifier] = None
        self.submissions: Dict[str, Submission] = {}
        self.timer_remaining: int = 0
        self.timer_halved: bool = False
        self.revealed: bool = False
        self.round_history: List[RoundSummary] = []
        self.last_results: List[PlacementResult] = []
        self.current_fun_fact: Optional[str] = None
        self.current_fun_fact_words: List[str] = []
        self.current_fun_fact_image: Optional[str] = None
        self.deck = TileDeck(manager.rng)
        self.timers = TimerRegistry(code)

    # -- queries ---------------------------------------------------------

    @property
    def host(self) -> Optional[PlayerState]:
        return next((p for p in self.players.values() if p.isHost), None)

    @property
    def is_last_round(self) -> bool:
        return self.round_number >= self.settings.roundCount

    def is_host(self, player_id: str) -> bool:
        player = self.players.get(player_id)
        return bool(player and player.isHost)

    def is_connected(self, player_id: str) -> bool:
        player = self.players.get(player_id)
        if not player:
            return False
        return player.isBot or player_id in self.connections

    def connected_human_count(self) -> int:
        return len(self.connections)

    def all_submitted(self) -> bool:
        return bool(self.players) and all(pid in self.submissions for pid in self.players)

    def player_views(self) -> List[PlayerView]:
        now = time.time()
        window = self.config.RECONNECTING_WINDOW_SEC
        views = []
        for p in self.players.values():
            connected = self.is_connected(p.id)
            reconnecting = (
                not p.isBot and not connected and p.disconnectedAt is not None
                and now - p.disconnectedAt < window
            )
            views.append(PlayerView(
                id=p.id,
                name=p.name,
                totalPoints=p.totalPoints,
                isHost=p.isHost,
                hasSubmitted=p.id in self.submissions,
                isConnected=connected,
                isReconnecting=reconnecting,
                isBot=p.isBot,
            ))
        return views

    def state_for(self, player_id: str) -> SessionView:
        player = self.players.get(player_id)
        return SessionView(
            lobbyCode=self.code,
            status=self.status,
            settings=self.settings,
            roundNumber=self.round_number,
            communityDice=self.community_dice,
            modifier=self.modifier,
            player=player,
            players=self.player_views(),
            timerRemaining=self.timer_remaining,
            revealed=self.revealed,
            isHost=bool(player and player.isHost),
        )

    def results_payload(self) -> Optional[dict]:
        if not self.revealed or not self.round_history:
            return None
        last = self.round_history[-1]
        return {
            'roundNumber': last.roundNumber,
            'totalRounds': self.settings.roundCount,
            'results': [r.model_dump(by_alias=True) for r in self.last_results],
            'standings': [s.model_dump(by_alias=True) for s in last.standings],
            'isLastRound': self.is_last_round,
            'funFact': self.current_fun_fact,
            'funFactImage': self.current_fun_fact_image,
        }

    # -- outbound --------------------------------------------------------

    async def _emit(self, event: str, data=None, **kwargs):
        try:
            await self.sio.emit(event, data, **kwargs)
        except (TypeError, ValueError):
            logger.exception("[emit-failed] session=%s event=%s", self.code, event)
            raise

    async def broadcast(self, event: str, data=None):
        await self._emit(event, data, room=self.code)

    async def send(self, player_id: str, event: str, data=None):
        sid = self.connections.get(player_id)
        if sid:
            await self._emit(event, data, to=sid)

    async def broadcast_players(self):
        await self.broadcast('lobby:playersUpdated', {
            'players': [v.model_dump(by_alias=True) for v in self.player_views()],
            'settings': self.settings.model_dump(by_alias=True),
            'status': self.status,
        })

    async def send_round_states(self):
        for pid in list(self.connections):
            await self.send(pid, 'game:newRound', self.state_for(pid).model_dump(by_alias=True))

    # -- membership ------------------------------------------------------

    def add_player(self, name: str, is_host: bool = False, is_bot: bool = False, retries: Optional[int] = None) -> PlayerState:
        prefix = 'bot_' if is_bot else 'player_'
        player = PlayerState(
            id=prefix + uuid.uuid4().hex[:9],
            name=name,
            isHost=is_host,
            isBot=is_bot,
            botRetries=retries or self.config.BOT_DEFAULT_RETRIES,
        )
        self.players[player.id] = player
        return player

    async def attach(self, player_id: str, sid: str):
        """Route this player's events to ``sid`` and cancel any pending expiry."""
        old_sid = self.connections.get(player_id)
        self.connections[player_id] = sid
        player = self.players[player_id]
        player.disconnectedAt = None
        self.timers.cancel(f'removal:{player_id}')
        self.timers.cancel(f'host:{player_id}')
        if self.timers.cancel('deletion'):
            logger.info("Lobby %s deletion cancelled - player joined", self.code)
        if old_sid and old_sid != sid:
            await self.sio.leave_room(old_sid, self.code)
        await self.sio.enter_room(sid, self.code)

    async def disconnect(self, player_id: str, sid: str):
        player = self.players.get(player_id)
        if not player or self.connections.get(player_id) != sid:
            # Unknown player or a socket that a rejoin already replaced
            return
        del self.connections[player_id]
        player.disconnectedAt = time.time()
        logger.info("Player disconnected from lobby %s: %s", self.code, player.name)

        code, manager = self.code, self.manager
        if player.isHost and self.status == 'waiting':
            logger.info("Host %s disconnected. Waiting %ss before reassigning...",
                        player.name, self.config.HOST_MIGRATION_DELAY_SEC)
            self.timers.schedule(f'host:{player_id}', self.config.HOST_MIGRATION_DELAY_SEC,
                                 lambda: manager.migrate_host(code, player_id))
        self.timers.schedule(f'removal:{player_id}', self.config.PLAYER_REMOVAL_DELAY_SEC,
                             lambda: manager.remove_player(code, player_id))
        if self.connected_human_count() == 0:
            logger.info("Lobby %s has no connected players. Will delete in %ss if no one rejoins.",
                        self.code, self.config.SESSION_DELETION_DELAY_SEC)
            self.timers.schedule('deletion', self.config.SESSION_DELETION_DELAY_SEC,
                                 lambda: manager.expire_session(code))
        await self.broadcast_players()

    def transfer_host(self, exclude: str) -> Optional[PlayerState]:
        """Hand host to the first connected human other than ``exclude``."""
        for pid, candidate in self.players.items():
            if pid != exclude and pid in self.connections:
                old = self.players.get(exclude)
                if old:
                    old.isHost = False
                candidate.isHost = True
                logger.info("New host for lobby %s: %s", self.code, candidate.name)
                return candidate
        return None

    async def remove_player(self, player_id: str):
        player = self.players.pop(player_id, None)
        if not player:
            return
        self.submissions.pop(player_id, None)
        self.timers.cancel(f'host:{player_id}')
        self.timers.cancel(f'bot:{player_id}')
        logger.info("Removing %s from lobby %s", player.name, self.code)
        if player.isHost:
            self.transfer_host(exclude=player_id)
        announcement = None
        if self.status == 'playing' and not self.revealed and self.modifier is not None and self.all_submitted():
            announcement = self._close_round()
        await self.broadcast_players()
        if announcement:
            await self._announce_results(announcement)

    async def update_settings(self, player_id: str, payload: SettingsPayload):
        if not self.is_host(player_id) or self.status != 'waiting':
            return
        if payload.roundCount:
            self.settings.roundCount = _clamp(payload.roundCount, 3, 20)
        if payload.roundDurationSeconds:
            self.settings.roundDurationSeconds = _clamp(payload.roundDurationSeconds, 30, 600)
        await self.broadcast('lobby:settingsUpdated', self.settings.model_dump(by_alias=True))

    async def add_bot(self, player_id: str, payload: AddBotPayload) -> Optional[PlayerState]:
        if not self.is_host(player_id):
            return None
        if self.status != 'waiting':
            await self.send(player_id, 'lobby:error', {'message': 'Cannot add AI during game'})
            return None
        number = sum(1 for p in self.players.values() if p.isBot) + 1
        bot = self.add_player(payload.name or f'AI {number}', is_bot=True, retries=payload.retries)
        logger.info("[AI] Added AI player %s to lobby %s", bot.id, self.code)
        await self.broadcast_players()
        return bot

    async def remove_bot(self, player_id: str, bot_id: str) -> bool:
        if not self.is_host(player_id):
            return False
        bot = self.players.get(bot_id)
        if not bot or not bot.isBot:
            return False
        if self.status != 'waiting':
            await self.send(player_id, 'lobby:error', {'message': 'Cannot remove AI during game'})
            return False
        del self.players[bot_id]
        logger.info("[AI] Removed AI player %s from lobby %s", bot_id, self.code)
        await self.broadcast_players()
        return True

    # -- game flow -------------------------------------------------------

    async def start_game(self, player_id: str) -> bool:
        if not self.is_host(player_id):
            await self.send(player_id, 'game:error', {'message': 'Only the host can start the game'})
            return False
        if self.status != 'waiting':
            return False
        if not self.players:
            await self.send(player_id, 'game:error', {'message': 'Need at least 1 player to start'})
            return False

        self.status = 'playing'
        self.round_number = 0
        self.round_history = []
        for p in self.players.values():
            p.totalPoints = 0
        code, manager = self.code, self.manager
        self.timers.schedule('start', self.config.START_DELAY_SEC, lambda: manager.begin_first_round(code))
        logger.info("Game starting in lobby %s with %d players", self.code, len(self.players))
        await self.broadcast('game:starting', {'totalRounds': self.settings.roundCount})
        return True

    async def start_new_round(self):
        self.round_number += 1
        self.community_dice = self.deck.draw_community_set()
        self.modifier = roll_modifier(self.manager.rng)
        self.submissions.clear()
        self.revealed = False
        self.last_results = []
        self.current_fun_fact = None
        self.current_fun_fact_words = []
        self.current_fun_fact_image = None
        self.timer_remaining = self.settings.roundDurationSeconds
        self.timer_halved = False
        for p in self.players.values():
            p.dice = self.deck.draw_private_set()

        code, manager, round_number = self.code, self.manager, self.round_number
        self.timers.start_interval('round', self.config.TICK_SECONDS, lambda: manager.tick(code))
        for p in self.players.values():
            if p.isBot:
                self.timers.run(f'bot:{p.id}', manager.run_bot(code, p.id, round_number))

        logger.info("Round %d started in lobby %s (modifier %s on die %d)",
                    self.round_number, self.code, self.modifier.name, self.modifier.dieIndex)
        await self.send_round_states()

    async def tick(self) -> bool:
        """Advance the round clock one step. Returns False once the clock stops."""
        if self.status != 'playing' or self.revealed or self.modifier is None:
            return False
        self.timer_remaining = max(0, self.timer_remaining - 1)
        remaining = self.timer_remaining
        announcement = self._close_round() if remaining <= 0 else None
        await self.broadcast('game:timerUpdate', {
            'remaining': remaining,
            'total': self.settings.roundDurationSeconds,
        })
        if announcement:
            await self._announce_results(announcement)
            return False
        return True

    async def submit(self, player_id: str, word: str, tiles: Sequence[TileRef]) -> Optional[ScoreResult]:
        player = self.players.get(player_id)
        if not player or self.status != 'playing' or self.modifier is None:
            return None
        if self.revealed:
            await self.send(player_id, 'player:submitError', {'message': 'Round already ended!'})
            return None

        result = validate_submission(word, tiles, self.community_dice, player.dice, self.modifier, self.manager.dictionary)
        is_new = player_id not in self.submissions
        self.submissions[player_id] = Submission(
            word=result.word or (word or '').upper(),
            tiles=list(tiles),
            isValid=result.isValid,
            score=result.score,
            breakdown=result.breakdown,
            reason=result.reason,
            playerLetters=''.join(d.letter for d in player.dice),
            timestamp=time.time(),
        )
        all_submitted = self.all_submitted()

        halved = False
        floor = self.config.HALVING_FLOOR_SEC
        if is_new and not self.timer_halved and not all_submitted and self.timer_remaining > floor:
            new_time = max(floor, self.timer_remaining // 2)
            logger.info("%s submitted! Timer halved: %ss -> %ss", player.name, self.timer_remaining, new_time)
            self.timer_remaining = new_time
            self.timer_halved = True
            halved = True

        announcement = self._close_round() if all_submitted else None

        logger.info("%s %s: %r (%d pts, valid: %s)", player.name, 'submitted' if is_new else 'resubmitted',
                    result.word or word, result.score, result.isValid)
        if halved:
            await self.broadcast('game:timerHalved', {'remaining': self.timer_remaining, 'playerName': player.name})
        await self.send(player_id, 'player:submitConfirmed', {
            'word': result.word or word,
            'score': result.score,
            'breakdown': result.breakdown,
            'isValid': result.isValid,
            'reason': result.reason,
        })
        await self.broadcast_players()
        if announcement:
            logger.info("All players submitted in lobby %s. Ending round early.", self.code)
            await self._announce_results(announcement)
        return result

    async def reveal(self) -> bool:
        announcement = self._close_round()
        if not announcement:
            return False
        await self._announce_results(announcement)
        return True

    def _close_round(self) -> Optional[dict]:
        """End the active round: stop timers, rank, award, record history.

        Synchronous so nothing can interleave; a second call is a no-op
        and returns None. Otherwise returns everything ``_announce_results``
        sends, captured before any later handler can start a new round.
        """
        if self.status != 'playing' or self.revealed or self.modifier is None:
            return None
        self.revealed = True
        self.timers.cancel('round')
        self.timers.cancel_prefix('bot:')

        results = rank_round(self.players, self.submissions)
        for r in results:
            if r.pointsEarned:
                self.players[r.playerId].totalPoints += r.pointsEarned
        self.last_results = results

        summaries = []
        for r in results:
            player = self.players[r.playerId]
            sub = self.submissions.get(r.playerId)
            best = find_best_word(self.community_dice, player.dice, self.modifier, self.manager.dictionary)
            summaries.append(RoundPlayerSummary(
                playerId=r.playerId,
                name=r.name,
                word=r.word or '—',
                score=r.score,
                place=r.place,
                pointsEarned=r.pointsEarned,
                isInvalid=r.isInvalid,
                noSubmission=r.noSubmission,
                playerLetters=sub.playerLetters if sub else ''.join(d.letter for d in player.dice),
                bestWord=best.word if best else None,
                bestScore=best.score if best else None,
            ))
        self.round_history.append(RoundSummary(
            roundNumber=self.round_number,
            results=summaries,
            standings=final_standings(self.players),
            communityDice=[d.letter for d in self.community_dice],
            modifier=self.modifier,
        ))
        logger.info("Round %d results for lobby %s: %s", self.round_number, self.code, ', '.join(
            f"{r.name}: {r.word} ({r.score}pts, valid={not r.isInvalid}, noSub={r.noSubmission})" for r in results
        ))
        words = [r.word for r in results if r.place is not None]
        self.current_fun_fact_words = words
        return {
            'roundNumber': self.round_number,
            'words': words,
            'payload': self.results_payload(),
        }

    async def _announce_results(self, announcement: dict):
        round_number = announcement['roundNumber']
        words = announcement['words']
        await self.broadcast('game:roundResults', announcement['payload'])
        await self.broadcast_players()
        if words:
            code, manager = self.code, self.manager
            self.timers.run('funfact', manager.generate_fun_fact(code, round_number, words))
        else:
            logger.info("No valid words for fun fact in round %d", round_number)
            await self.broadcast('game:funFact', {'funFact': None, 'failed': True})

    async def next_round(self, player_id: str) -> bool:
        if not self.is_host(player_id) or self.status != 'playing':
            return False
        if not self.revealed or self.is_last_round:
            return False
        await self.start_new_round()
        return True

    async def view_final_results(self, player_id: str) -> bool:
        if not self.is_host(player_id) or self.status != 'playing':
            return False
        if not self.is_last_round or not self.revealed:
            return False
        self.status = 'finished'
        standings = final_standings(self.players)
        logger.info("Game finished in lobby %s. Winner: %s", self.code, standings[0].name if standings else None)
        await self.broadcast('game:finalResults', {
            'winner': standings[0].model_dump(by_alias=True) if standings else None,
            'standings': [s.model_dump(by_alias=True) for s in standings],
            'roundHistory': [r.model_dump(by_alias=True) for r in self.round_history],
            'totalRounds': self.settings.roundCount,
        })
        return True

    async def end_early(self, player_id: str) -> bool:
        if not self.is_host(player_id) or self.status != 'playing':
            return False
        logger.info("Host ending game early in lobby %s", self.code)
        await self._return_to_lobby()
        return True

    async def play_again(self, player_id: str) -> bool:
        if not self.is_host(player_id) or self.status != 'finished':
            return False
        logger.info("Lobby %s reset for new game", self.code)
        await self._return_to_lobby()
        return True

    def reset(self):
        for key in ('round', 'start', 'funfact'):
            self.timers.cancel(key)
        self.timers.cancel_prefix('bot:')
        self.status = 'waiting'
        self.round_number = 0
        self.community_dice = []
        self.modifier = None
        self.submissions.clear()
        self.revealed = False
        self.timer_remaining = 0
        self.timer_halved = False
        self.round_history = []
        self.last_results = []
        self.current_fun_fact = None
        self.current_fun_fact_words = []
        self.current_fun_fact_image = None
        self.deck.reset()
        for p in self.players.values():
            p.totalPoints = 0
            p.dice = []

    async def _return_to_lobby(self):
        self.reset()
        await self.broadcast('game:returnToLobby', {'lobbyCode': self.code})
        await self.broadcast_players()

class SessionManager:
    """Owns every live session, keyed by lobby code.

    Timer and background callbacks go through here by code, so work
    scheduled for a session that has since been deleted does nothing.
    """

    def __init__(
        self,
        sio,
        config=Config,
        dictionary: Optional[DictionaryService] = None,
        negotiator: Optional[BotNegotiator] = None,
        fun_facts: Optional[FunFactWriter] = None,
        image_prompts: Optional[ImagePromptWriter] = None,
        illustrator: Optional[IllustrationService] = None,
        rng: Optional[random.Random] = None,
    ):
        self.sio = sio
        self.config = config
        self.dictionary = dictionary if dictionary is not None else dict_service
        self.negotiator = negotiator
        self.fun_facts = fun_facts
        self.image_prompts = image_prompts
        self.illustrator = illustrator
        self.rng = rng or random.Random()
        self.sessions: Dict[str, Session] = {}

    def get(self, code: Optional[str]) -> Optional[Session]:
        if not code:
            return None
        return self.sessions.get(code.upper())

    def _new_code(self) -> str:
        while True:
            code = ''.join(self.rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self.sessions:
                return code

    async def create_session(self, sid: str, name: str) -> Tuple[Session, PlayerState]:
        session = Session(self._new_code(), self)
        host = session.add_player(name or 'Host', is_host=True)
        self.sessions[session.code] = session
        await session.attach(host.id, sid)
        logger.info("Lobby %s created by %s (%s)", session.code, host.name, host.id)
        await session.send(host.id, 'lobby:created', {
            'lobbyCode': session.code,
            'playerId': host.id,
            'state': session.state_for(host.id).model_dump(by_alias=True),
        })
        return session, host

    async def join(self, sid: str, payload: JoinLobbyPayload) -> Optional[Tuple[Session, PlayerState]]:
        session = self.get(payload.code)
        if not session:
            logger.info("Lobby join failed: %s not found. Active lobbies: %s",
                        payload.code, ', '.join(self.sessions) or 'none')
            await self.sio.emit('lobby:error', {
                'message': f'Lobby "{payload.code}" not found. The host may need to create a new lobby.',
                'hint': 'No active lobbies on server - it may have restarted.' if not self.sessions else None,
            }, to=sid)
            return None

        existing = session.players.get(payload.existingId) if payload.existingId else None
        returning = existing is not None and not existing.isBot
        if returning:
            player = existing
            logger.info("Player returning to lobby %s: %s (game status: %s)", session.code, player.name, session.status)
        else:
            if session.status != 'waiting':
                await self.sio.emit('lobby:error', {'message': 'Game already in progress. You cannot join mid-game.'}, to=sid)
                return None
            player = session.add_player(payload.name or f'Player {len(session.players) + 1}')
            logger.info("New player joined lobby %s: %s", session.code, player.name)

        await session.attach(player.id, sid)
        data = {
            'lobbyCode': session.code,
            'playerId': player.id,
            'state': session.state_for(player.id).model_dump(by_alias=True),
        }
        if returning and session.status == 'playing':
            data['gameInProgress'] = True
            results = session.results_payload()
            if results:
                data['roundResults'] = results
            await session.send(player.id, 'lobby:rejoined', data)
        else:
            await session.send(player.id, 'lobby:joined', data)
        await session.broadcast_players()
        return session, player

    async def release_previous(self, sid: str, previous: dict, session: Session, player: PlayerState):
        """Drop the binding a socket had before it created or joined ``session``.

        The old lobby treats it as a disconnect, so its removal and
        deletion timers still run.
        """
        old_code, old_player = previous.get('code'), previous.get('player_id')
        if not old_code or not old_player:
            return
        if old_code == session.code and old_player == player.id:
            return
        old = self.get(old_code)
        if old is None:
            return
        logger.info("Socket %s moved from lobby %s to %s", sid, old.code, session.code)
        await old.disconnect(old_player, sid)
        if sid not in old.connections.values():
            await self.sio.leave_room(sid, old.code)

    def delete_session(self, code: str, reason: str = ''):
        session = self.sessions.pop(code, None)
        if session is None:
            return
        session.timers.cancel_all()
        logger.info("Lobby %s deleted %s", code, reason)

    # -- timer callbacks (look the session up again every time) ------------

    async def tick(self, code: str) -> bool:
        session = self.sessions.get(code)
        if session is None:
            return False
        return await session.tick()

    async def begin_first_round(self, code: str):
        session = self.sessions.get(code)
        if session and session.status == 'playing' and session.round_number == 0:
            await session.start_new_round()

    async def migrate_host(self, code: str, player_id: str):
        session = self.sessions.get(code)
        if session is None:
            return
        player = session.players.get(player_id)
        if not player or not player.isHost or player_id in session.connections:
            return
        if session.transfer_host(exclude=player_id):
            await session.broadcast_players()

    async def remove_player(self, code: str, player_id: str):
        session = self.sessions.get(code)
        if session is None or player_id in session.connections:
            return
        await session.remove_player(player_id)
        if not session.players:
            self.delete_session(code, '(no players)')

    async def expire_session(self, code: str):
        session = self.sessions.get(code)
        if session is not None and session.connected_human_count() == 0:
            self.delete_session(code, '(empty for grace period)')

    # -- background work -------------------------------------------------

    async def run_bot(self, code: str, player_id: str, round_number: int):
        delay = self.rng.uniform(self.config.BOT_MIN_DELAY_SEC, self.config.BOT_MAX_DELAY_SEC)
        await asyncio.sleep(delay)
        session = self.sessions.get(code)
        if session is None or self.negotiator is None:
            return
        bot = session.players.get(player_id)
        if not bot or session.modifier is None:
            return

        def is_open() -> bool:
            s = self.sessions.get(code)
            return (
                s is not None and s.status == 'playing' and s.round_number == round_number
                and not s.revealed and player_id in s.players
            )

        async def submit(proposal: Proposal, result: ScoreResult) -> bool:
            s = self.sessions.get(code)
            if s is None or not is_open():
                return False
            submitted = await s.submit(player_id, proposal.word, proposal.tiles)
            return bool(submitted and submitted.isValid)

        await self.negotiator.negotiate(
            player_id,
            list(session.community_dice),
            list(bot.dice),
            session.modifier,
            bot.botRetries,
            is_open,
            submit,
        )

    async def generate_fun_fact(self, code: str, round_number: int, words: List[str]):
        fact = await self.fun_facts.write(words) if self.fun_facts else None
        session = self.sessions.get(code)
        if session is None or session.round_number != round_number or not session.revealed:
            return
        if fact:
            session.current_fun_fact = fact
            for summary in session.round_history:
                if summary.roundNumber == round_number:
                    summary.funFact = fact
            await session.broadcast('game:funFact', {'funFact': fact})
        else:
            logger.info("Fun fact generation failed for [%s]", ', '.join(words))
            await session.broadcast('game:funFact', {'funFact': None, 'failed': True})

    async def request_illustration(self, code: str, player_id: str, fun_fact: str):
        session = self.sessions.get(code)
        if session is None or not session.is_host(player_id):
            return
        round_number = session.round_number
        words = list(session.current_fun_fact_words)
        await session.broadcast('game:funFactImageGenerating', {})
        if self.illustrator is None or not self.illustrator.configured or self.image_prompts is None:
            await session.broadcast('game:funFactImage', {'imageUrl': None, 'error': 'API not configured'})
            return

        prompt = await self.image_prompts.write(fun_fact, words)
        if not prompt:
            await self._image_failed(code, 'Prompt generation failed')
            return
        image = await self.illustrator.generate(prompt)
        if not image:
            await self._image_failed(code, 'Generation failed')
            return

        session = self.sessions.get(code)
        if session is None:
            return
        if session.round_number == round_number:
            session.current_fun_fact_image = image
            for summary in session.round_history:
                if summary.roundNumber == round_number:
                    summary.funFactImage = image
                    summary.funFactImagePrompt = prompt
        await session.broadcast('game:funFactImage', {'imageUrl': image, 'prompt': prompt})

    async def _image_failed(self, code: str, error: str):
        session = self.sessions.get(code)
        if session is not None:
            await session.broadcast('game:funFactImage', {'imageUrl': None, 'error': error})
