"""Tests for the bot negotiation loop."""

from holdem.bots import UNPARSEABLE, BotNegotiator, build_request
from holdem.schemas import Proposal

from conftest import CART_TILES, modifier, refs, tiles

COMMUNITY = tiles('C', 'A', 'T', 'S', 'E')
PRIVATE = tiles('R', 'O', 'D')


class ScriptedProposer:
    """Returns queued proposals in order and records every request."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    async def propose(self, request):
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else None
        if isinstance(reply, Exception):
            raise reply
        return reply


class Recorder:
    def __init__(self, accept=True):
        self.accept = accept
        self.submitted = []

    async def __call__(self, proposal, result):
        self.submitted.append((proposal, result))
        return self.accept


def always_open():
    return True


async def negotiate(proposer, dictionary, submit, attempts=3, is_open=always_open):
    negotiator = BotNegotiator(proposer, dictionary)
    return await negotiator.negotiate('bot_1', COMMUNITY, PRIVATE, modifier('Double Letter', 0), attempts, is_open, submit)


class TestBuildRequest:
    def test_tiles_and_feedback(self):
        request = build_request(COMMUNITY, PRIVATE, modifier('Double Letter', 2))
        assert [t.letter for t in request.community] == ['C', 'A', 'T', 'S', 'E']
        assert [t.ref.key for t in request.private] == ['private-0', 'private-1', 'private-2']
        assert request.modifier.dieIndex == 2
        assert request.previousAttempts == []


class TestNegotiation:
    """Bounded retries with feedback."""

    async def test_first_valid_word_submitted(self, dictionary):
        proposer = ScriptedProposer(Proposal(word='CART', tiles=refs(*CART_TILES)))
        submit = Recorder()
        outcome = await negotiate(proposer, dictionary, submit)

        assert outcome.accepted is True
        assert outcome.attempts == 1
        assert outcome.result.score == 7
        assert len(submit.submitted) == 1

    async def test_rejections_fed_back(self, dictionary):
        proposer = ScriptedProposer(
            Proposal(word='CAT', tiles=refs('c0', 'c1', 'c2'), rawTiles=['community-0', 'community-1', 'community-2']),
            None,
            Proposal(word='CART', tiles=refs(*CART_TILES)),
        )
        submit = Recorder()
        outcome = await negotiate(proposer, dictionary, submit)

        assert outcome.accepted is True
        assert outcome.attempts == 3
        third = proposer.requests[2].previousAttempts
        assert third[0].word == 'CAT'
        assert third[0].tiles == ['community-0', 'community-1', 'community-2']
        assert 'own tiles' in third[0].reason
        assert third[1].word is None
        assert third[1].reason == UNPARSEABLE

    async def test_exhausted_retries(self, dictionary):
        bad = Proposal(word='TRAC', tiles=refs('c2', 'p0', 'c1', 'c0'))
        proposer = ScriptedProposer(bad, bad, bad, bad)
        submit = Recorder()
        outcome = await negotiate(proposer, dictionary, submit, attempts=2)

        assert outcome.accepted is False
        assert outcome.attempts == 2
        assert len(outcome.failures) == 2
        assert submit.submitted == []

    async def test_oracle_errors_count_as_attempts(self, dictionary):
        proposer = ScriptedProposer(RuntimeError('timeout'), Proposal(word='CART', tiles=refs(*CART_TILES)))
        outcome = await negotiate(proposer, dictionary, Recorder())
        assert outcome.accepted is True
        assert outcome.attempts == 2
        assert outcome.failures[0].reason == UNPARSEABLE

    async def test_stops_when_round_closes(self, dictionary):
        proposer = ScriptedProposer(None, None, None)
        state = {'open': True}

        async def close_after_first(request):
            proposer.requests.append(request)
            state['open'] = False
            return None

        proposer.propose = close_after_first
        submit = Recorder()
        outcome = await negotiate(proposer, dictionary, submit, attempts=3, is_open=lambda: state['open'])

        assert outcome.attempts == 1
        assert outcome.accepted is False
        assert submit.submitted == []

    async def test_valid_word_not_submitted_after_close(self, dictionary):
        state = {'calls': 0}

        def is_open():
            state['calls'] += 1
            return state['calls'] == 1

        proposer = ScriptedProposer(Proposal(word='CART', tiles=refs(*CART_TILES)))
        submit = Recorder()
        outcome = await negotiate(proposer, dictionary, submit, is_open=is_open)
        assert outcome.accepted is False
        assert submit.submitted == []
