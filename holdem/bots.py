"""Bounded-retry word negotiation for bot players.

A bot asks a proposal oracle for a word, checks it with the scoring
engine exactly like a human submission, and feeds every rejection back
into the next request. The loop stops at the first accepted word, when
the retry bound is spent, or as soon as the round closes.
"""

from __future__ import annotations
import logging
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from .dictionary import DictionaryService
from .schemas import (
    FailedAttempt,
    Modifier,
    NegotiationOutcome,
    Proposal,
    ProposalRequest,
    ProposalTile,
    ScoreResult,
    Tile,
    TileRef,
)
from .scoring import validate_submission

logger = logging.getLogger(__name__)

UNPARSEABLE = 'unparseable'


class ProposalOracle(Protocol):
    async def propose(self, request: ProposalRequest) -> Optional[Proposal]:
        ...


def build_request(
    community: Sequence[Tile],
    private: Sequence[Tile],
    modifier: Modifier,
    failures: Sequence[FailedAttempt] = (),
) -> ProposalRequest:
    return ProposalRequest(
        community=[
            ProposalTile(ref=TileRef(origin='community', index=i), letter=t.letter, points=t.points)
            for i, t in enumerate(community)
        ],
        private=[
            ProposalTile(ref=TileRef(origin='private', index=i), letter=t.letter, points=t.points)
            for i, t in enumerate(private)
        ],
        modifier=modifier,
        previousAttempts=list(failures),
    )


class BotNegotiator:
    def __init__(self, proposer: ProposalOracle, dictionary: DictionaryService):
        self.proposer = proposer
        self.dictionary = dictionary

    async def _ask(self, request: ProposalRequest) -> Optional[Proposal]:
        try:
            return await self.proposer.propose(request)
        except Exception as exc:
            # The oracle is unreliable by contract; any failure is just a lost attempt
            logger.warning("[AI] proposal oracle failed: %s", exc)
            return None

    async def negotiate(
        self,
        player_id: str,
        community: Sequence[Tile],
        private: Sequence[Tile],
        modifier: Modifier,
        max_attempts: int,
        is_open: Callable[[], bool],
        submit: Callable[[Proposal, ScoreResult], Awaitable[bool]],
    ) -> NegotiationOutcome:
        failures: List[FailedAttempt] = []
        attempts = 0
        while attempts < max_attempts:
            if not is_open():
                logger.info("[AI] %s stopped: round closed", player_id)
                break
            attempts += 1
            proposal = await self._ask(build_request(community, private, modifier, failures))
            if proposal is None:
                logger.info("[AI] %s attempt %d: no parseable proposal", player_id, attempts)
                failures.append(FailedAttempt(reason=UNPARSEABLE))
                continue

            result = validate_submission(proposal.word, proposal.tiles, community, private, modifier, self.dictionary)
            if not result.isValid:
                logger.info("[AI] %s attempt %d: %s rejected (%s)", player_id, attempts, proposal.word, result.reason)
                failures.append(FailedAttempt(
                    word=proposal.word,
                    tiles=proposal.rawTiles or [ref.key for ref in proposal.tiles],
                    reason=result.reason or 'rejected',
                ))
                continue

            if not is_open():
                break
            accepted = await submit(proposal, result)
            logger.info("[AI] %s submitted %s (%d pts) after %d attempt(s)", player_id, result.word, result.score, attempts)
            return NegotiationOutcome(playerId=player_id, accepted=accepted, attempts=attempts, result=result, failures=failures)

        logger.info("[AI] %s found no valid word after %d attempt(s)", player_id, attempts)
        return NegotiationOutcome(playerId=player_id, accepted=False, attempts=attempts, failures=failures)
