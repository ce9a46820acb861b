from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional

Origin = Literal['community', 'private']
SessionStatus = Literal['waiting', 'playing', 'finished']
ModifierType = Literal['multiply', 'position', 'length', 'parity', 'neighbor', 'composition', 'bonus']
ReasonCode = Literal['not_in_dictionary', 'duplicate_tile', 'word_mismatch', 'no_private_tile', 'invalid_tile']

class Tile(BaseModel):
    letter: str = Field(..., min_length=1, max_length=2)
    points: int = Field(..., ge=1, le=4)

class TileRef(BaseModel):
    origin: Origin
    index: int = Field(..., ge=0)

    @property
    def key(self) -> str:
        return f"{self.origin}-{self.index}"

class Modifier(BaseModel):
    name: str
    shortName: str
    type: ModifierType
    desc: str = ''
    color: Optional[str] = None
    multiplier: int = 1
    bonus: int = 0
    position: Optional[Literal['start', 'end', 'middle', 'second', 'penultimate', 'center', 'centerAny']] = None
    minLength: Optional[int] = None
    exactLength: Optional[int] = None
    maxLength: Optional[int] = None
    parity: Optional[Literal['odd', 'even']] = None
    neighborType: Optional[Literal['vowel']] = None
    compositionType: Optional[Literal['balanced', 'vowelRich', 'vowelCount', 'consonantCount']] = None
    minVowels: Optional[int] = None
    minConsonants: Optional[int] = None
    dieIndex: int = Field(0, ge=0, le=4)

class LobbySettings(BaseModel):
    roundCount: int = Field(10, ge=3, le=20)
    roundDurationSeconds: int = Field(75, ge=30, le=600)

class PlayerState(BaseModel):
    id: str
    name: str
    dice: List[Tile] = []
    totalPoints: int = 0
    isHost: bool = False
    isBot: bool = False
    botRetries: int = 3
    disconnectedAt: Optional[float] = None

class ScoreResult(BaseModel):
    isValid: bool
    word: str = ''
    score: int = 0
    breakdown: str = ''
    modifierApplied: bool = False
    reasonCode: Optional[ReasonCode] = None
    reason: Optional[str] = None

class BestWord(BaseModel):
    word: str
    score: int
    tiles: List[TileRef]
    breakdown: str = ''

class Submission(BaseModel):
    word: str
    tiles: List[TileRef] = []
    isValid: bool = False
    score: int = 0
    breakdown: str = ''
    reason: Optional[str] = None
    playerLetters: str = ''
    timestamp: float = 0.0

class PlacementResult(BaseModel):
    playerId: str
    name: str
    word: str = '—'
    score: int = 0
    breakdown: str = ''
    place: Optional[int] = None
    pointsEarned: int = 0
    isInvalid: bool = False
    noSubmission: bool = False

class Standing(BaseModel):
    playerId: str
    name: str
    totalPoints: int
    isHost: bool = False

class RoundPlayerSummary(BaseModel):
    playerId: str
    name: str
    word: str = '—'
    score: int = 0
    place: Optional[int] = None
    pointsEarned: int = 0
    isInvalid: bool = False
    noSubmission: bool = False
    playerLetters: str = ''
    bestWord: Optional[str] = None
    bestScore: Optional[int] = None

class RoundSummary(BaseModel):
    roundNumber: int
    results: List[RoundPlayerSummary]
    standings: List[Standing]
    communityDice: List[str]
    modifier: Modifier
    funFact: Optional[str] = None
    funFactImage: Optional[str] = None
    funFactImagePrompt: Optional[str] = None

class PlayerView(BaseModel):
    id: str
    name: str
    totalPoints: int
    isHost: bool
    hasSubmitted: bool
    isConnected: bool
    isReconnecting: bool
    isBot: bool

class SessionView(BaseModel):
    lobbyCode: str
    status: SessionStatus
    settings: LobbySettings
    roundNumber: int
    communityDice: List[Tile]
    modifier: Optional[Modifier] = None
    player: Optional[PlayerState] = None
    players: List[PlayerView]
    timerRemaining: int
    revealed: bool
    isHost: bool

# Inbound payloads

class CreateLobbyPayload(BaseModel):
    name: str = 'Host'

class JoinLobbyPayload(BaseModel):
    code: str
    name: Optional[str] = None
    existingId: Optional[str] = None

    @field_validator('code')
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

class SettingsPayload(BaseModel):
    roundCount: Optional[int] = None
    roundDurationSeconds: Optional[int] = None

class AddBotPayload(BaseModel):
    name: Optional[str] = None
    retries: Optional[int] = Field(None, ge=1, le=10)

class RemoveBotPayload(BaseModel):
    botId: str

class SubmitWordPayload(BaseModel):
    word: str
    tiles: List[TileRef]

class IllustrationPayload(BaseModel):
    funFact: str = Field(..., min_length=1)

# Bot negotiation

class ProposalTile(BaseModel):
    ref: TileRef
    letter: str
    points: int

class FailedAttempt(BaseModel):
    word: Optional[str] = None
    tiles: List[str] = []
    reason: str

class ProposalRequest(BaseModel):
    community: List[ProposalTile]
    private: List[ProposalTile]
    modifier: Modifier
    previousAttempts: List[FailedAttempt] = []

class Proposal(BaseModel):
    word: str
    tiles: List[TileRef]
    rawTiles: List[str] = []

class NegotiationOutcome(BaseModel):
    playerId: str
    accepted: bool
    attempts: int
    result: Optional[ScoreResult] = None
    failures: List[FailedAttempt] = []

