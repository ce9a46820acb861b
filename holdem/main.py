from __future__ import annotations
import logging
from typing import Optional

import socketio
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .bots import BotNegotiator
from .config import Config
from .dictionary import service as dict_service
from .illustration import IllustrationService
from .llm import FunFactWriter, ImagePromptWriter, LLMClient, WordProposer
from .managers.game import Session, SessionManager
from .schemas import (
    AddBotPayload,
    CreateLobbyPayload,
    IllustrationPayload,
    JoinLobbyPayload,
    RemoveBotPayload,
    SettingsPayload,
    SubmitWordPayload,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

_origins = [o.strip() for o in Config.CORS_ORIGINS.split(',')] if Config.CORS_ORIGINS != '*' else '*'

# Socket.IO server (ASGI)
sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=_origins)
app = FastAPI(title="Word Hold'em Server", version="0.1.0")

# Mount Socket.IO ASGI application
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)

# CORS for REST
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'] if _origins == '*' else _origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

llm_client = LLMClient(model=Config.LLM_MODEL, timeout=Config.LLM_TIMEOUT_SEC, api_key=Config.OPENROUTER_API_KEY)
sessions = SessionManager(
    sio,
    config=Config,
    dictionary=dict_service,
    negotiator=BotNegotiator(WordProposer(llm_client), dict_service),
    fun_facts=FunFactWriter(llm_client),
    image_prompts=ImagePromptWriter(llm_client),
    illustrator=IllustrationService(Config.CLOUDFLARE_API_TOKEN, Config.CLOUDFLARE_ACCOUNT_ID),
)

# REST Endpoints
@app.get('/health')
async def health():
    return {'status': 'ok', 'lobbies': len(sessions.sessions), 'dictionaryWords': len(dict_service)}

@app.get('/api/lobby/{code}')
async def lobby_info(code: str):
    session = sessions.get(code)
    if not session:
        raise HTTPException(status_code=404, detail='Lobby not found')
    return {
        'lobbyCode': session.code,
        'status': session.status,
        'playerCount': len(session.players),
        'settings': session.settings.model_dump(by_alias=True),
    }

@app.get('/api/dictionary')
async def dictionary_words():
    return {'words': dict_service.words()}

# Dictionary validation REST endpoint
@app.get('/dict/validate')
async def validate_word(word: str):
    return {'word': word.upper(), 'valid': dict_service.is_valid(word)}

# Socket.IO helpers
async def _current(sid) -> tuple[Optional[Session], Optional[str]]:
    sess = await sio.get_session(sid) or {}
    session = sessions.get(sess.get('code'))
    player_id = sess.get('player_id')
    if not session or player_id not in session.players:
        return None, None
    return session, player_id

async def _bind(sid, session: Session, player):
    previous = await sio.get_session(sid) or {}
    await sessions.release_previous(sid, previous, session, player)
    await sio.save_session(sid, {'code': session.code, 'player_id': player.id})

async def _bad_payload(sid, event: str, scope: str, exc: ValidationError):
    logger.info("Rejected %s payload from %s: %s", event, sid, exc.errors()[:1])
    await sio.emit(f'{scope}:error', {'message': 'Invalid request'}, to=sid)

# Socket.IO Events
@sio.event
async def connect(sid, environ, auth=None):
    await sio.save_session(sid, {})

@sio.event
async def disconnect(sid, reason=None):
    sess = await sio.get_session(sid) or {}
    session = sessions.get(sess.get('code'))
    if session and sess.get('player_id'):
        await session.disconnect(sess['player_id'], sid)

@sio.on('lobby:create')
async def lobby_create(sid, payload=None):
    try:
        data = CreateLobbyPayload.model_validate(payload or {})
    except ValidationError as exc:
        await _bad_payload(sid, 'lobby:create', 'lobby', exc)
        return
    session, host = await sessions.create_session(sid, data.name)
    await _bind(sid, session, host)

@sio.on('lobby:join')
async def lobby_join(sid, payload):
    try:
        data = JoinLobbyPayload.model_validate(payload)
    except ValidationError as exc:
        await _bad_payload(sid, 'lobby:join', 'lobby', exc)
        return
    joined = await sessions.join(sid, data)
    if joined:
        session, player = joined
        await _bind(sid, session, player)

@sio.on('lobby:updateSettings')
async def lobby_update_settings(sid, payload):
    session, player_id = await _current(sid)
    if not session:
        return
    try:
        data = SettingsPayload.model_validate(payload)
    except ValidationError as exc:
        await _bad_payload(sid, 'lobby:updateSettings', 'lobby', exc)
        return
    await session.update_settings(player_id, data)

@sio.on('lobby:addBot')
async def lobby_add_bot(sid, payload=None):
    session, player_id = await _current(sid)
    if not session:
        return
    try:
        data = AddBotPayload.model_validate(payload or {})
    except ValidationError as exc:
        await _bad_payload(sid, 'lobby:addBot', 'lobby', exc)
        return
    await session.add_bot(player_id, data)

@sio.on('lobby:removeBot')
async def lobby_remove_bot(sid, payload):
    session, player_id = await _current(sid)
    if not session:
        return
    try:
        data = RemoveBotPayload.model_validate(payload)
    except ValidationError as exc:
        await _bad_payload(sid, 'lobby:removeBot', 'lobby', exc)
        return
    await session.remove_bot(player_id, data.botId)

@sio.on('game:start')
async def game_start(sid):
    session, player_id = await _current(sid)
    if session:
        await session.start_game(player_id)

@sio.on('game:nextRound')
async def game_next_round(sid):
    session, player_id = await _current(sid)
    if session:
        await session.next_round(player_id)

@sio.on('player:submitWord')
async def player_submit_word(sid, payload):
    session, player_id = await _current(sid)
    if not session:
        return
    try:
        data = SubmitWordPayload.model_validate(payload)
    except ValidationError as exc:
        logger.info("Rejected player:submitWord payload from %s: %s", sid, exc.errors()[:1])
        await sio.emit('player:submitError', {'message': 'Invalid submission'}, to=sid)
        return
    await session.submit(player_id, data.word, data.tiles)

@sio.on('game:viewFinalResults')
async def game_view_final_results(sid):
    session, player_id = await _current(sid)
    if session:
        await session.view_final_results(player_id)

@sio.on('game:endEarly')
async def game_end_early(sid):
    session, player_id = await _current(sid)
    if session:
        await session.end_early(player_id)

@sio.on('game:playAgain')
async def game_play_again(sid):
    session, player_id = await _current(sid)
    if session:
        await session.play_again(player_id)

@sio.on('game:generateFunFactImage')
async def game_generate_fun_fact_image(sid, payload):
    session, player_id = await _current(sid)
    if not session:
        return
    try:
        data = IllustrationPayload.model_validate(payload)
    except ValidationError as exc:
        await _bad_payload(sid, 'game:generateFunFactImage', 'game', exc)
        return
    await sessions.request_illustration(session.code, player_id, data.funFact)

# Export ASGI app for uvicorn
application = asgi_app

# For local running: uvicorn holdem.main:application --reload --host 0.0.0.0 --port 8000
