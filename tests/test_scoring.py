"""Tests for modifier evaluation, submission validation and best-word search."""

from holdem.dictionary import DictionaryService
from holdem.scoring import evaluate_modifier, find_best_word, score_sequence, validate_submission
from holdem.tiles import make_tile

from conftest import CART_TILES, modifier, ref, refs, tiles

COMMUNITY = tiles('C', 'A', 'T', 'S', 'E')
PRIVATE = tiles('R', 'O', 'D')


def placed(*keys):
    out = []
    for key in keys:
        r = ref(key)
        pool = COMMUNITY if r.origin == 'community' else PRIVATE
        out.append((r, pool[r.index]))
    return out


class TestScoreSequence:
    """Scoring a run of tiles against the round modifier."""

    def test_multiplier_applies_only_to_modifier_tile(self):
        score, breakdown, applied = score_sequence(placed(*CART_TILES), modifier('Double Letter', 0))
        assert applied is True
        assert score == 7
        assert breakdown == 'C(4) + A(1) + R(1) + T(1) = 7'

    def test_modifier_tile_not_used(self):
        score, breakdown, applied = score_sequence(placed(*CART_TILES), modifier('Triple Letter', 4))
        assert applied is False
        assert score == 5
        assert breakdown == 'C(2) + A(1) + R(1) + T(1) = 5'

    def test_deterministic(self):
        mod = modifier('Middle Power', 1)
        first = score_sequence(placed(*CART_TILES), mod)
        second = score_sequence(placed(*CART_TILES), mod)
        assert first == second

    def test_exact_length_multiplier(self):
        """Four letters triples the modifier tile; five letters gets nothing."""
        mod = modifier('Short & Sweet', 0)
        score, _, applied = score_sequence(placed(*CART_TILES), mod)
        assert applied is True
        assert score == 9

        score, _, applied = score_sequence(placed('c0', 'c1', 'p0', 'c2', 'c3'), mod)
        assert applied is False
        assert score == 6

    def test_flat_bonus_in_breakdown(self):
        score, breakdown, _ = score_sequence(placed(*CART_TILES), modifier('Bonus +10', 0))
        assert score == 15
        assert breakdown.endswith('+ 10 = 15')

    def test_bonus_requires_modifier_tile(self):
        score, _, applied = score_sequence(placed(*CART_TILES), modifier('Bonus +10', 4))
        assert applied is False
        assert score == 5

    def test_position_modifier_adds_no_flat_bonus(self):
        mod = modifier('Start Bonus', 0).model_copy(update={'bonus': 7})
        score, breakdown, applied = score_sequence(placed(*CART_TILES), mod)
        assert applied is True
        assert score == 7
        assert breakdown == 'C(4) + A(1) + R(1) + T(1) = 7'

    def test_parity(self):
        # CART has four letters
        assert score_sequence(placed(*CART_TILES), modifier('Even Word', 0))[0] == 13
        assert score_sequence(placed(*CART_TILES), modifier('Odd Word', 0))[0] == 5

    def test_vowel_neighbor(self):
        # T sits after R: no vowel neighbour
        assert score_sequence(placed(*CART_TILES), modifier('Vowel Buddy', 2))[2] is False
        # C is followed by A
        assert score_sequence(placed(*CART_TILES), modifier('Vowel Buddy', 0))[0] == 7


class TestDigraphPositions:
    """A two-letter tile counts as two letters for every positional rule."""

    community = tiles('Qu', 'I', 'N', 'E', 'A')
    private = tiles('T', 'S', 'O')

    def quit(self):
        return [
            (ref('c0'), self.community[0]),
            (ref('c1'), self.community[1]),
            (ref('p0'), self.private[0]),
        ]

    def test_second_letter_is_inside_digraph(self):
        applies, _, _ = evaluate_modifier(self.quit(), modifier('Second Letter', 1))
        assert applies is False
        applies, _, _ = evaluate_modifier(self.quit(), modifier('Second Letter', 0))
        assert applies is True

    def test_penultimate_after_digraph(self):
        score, _, applied = score_sequence(self.quit(), modifier('Penultimate', 1))
        assert applied is True
        assert score == 4 + 2 + 1

    def test_length_counts_letters(self):
        applies, multiplier, _ = evaluate_modifier(self.quit(), modifier('Short & Sweet', 0))
        assert applies is True
        assert multiplier == 3


class TestValidateSubmission:
    """Validation order and reason codes for claimed words."""

    def test_valid_word(self, dictionary):
        result = validate_submission('cart', refs(*CART_TILES), COMMUNITY, PRIVATE, modifier('Double Letter', 4), dictionary)
        assert result.isValid is True
        assert result.word == 'CART'
        assert result.score == 5
        assert result.reasonCode is None

    def test_not_in_dictionary(self, dictionary):
        result = validate_submission('TRAC', refs('c2', 'p0', 'c1', 'c0'), COMMUNITY, PRIVATE, modifier('Double Letter'), dictionary)
        assert result.isValid is False
        assert result.reasonCode == 'not_in_dictionary'
        assert result.score == 0

    def test_duplicate_tile(self, dictionary):
        result = validate_submission('CATS', refs('c0', 'c1', 'c1', 'p0'), COMMUNITY, PRIVATE, modifier('Double Letter'), dictionary)
        assert result.reasonCode == 'duplicate_tile'

    def test_invalid_tile(self, dictionary):
        result = validate_submission('CART', refs('c0', 'c1', 'p9', 'c2'), COMMUNITY, PRIVATE, modifier('Double Letter'), dictionary)
        assert result.reasonCode == 'invalid_tile'

    def test_word_mismatch(self, dictionary):
        result = validate_submission('CART', refs('c0', 'c1', 'c2', 'p0'), COMMUNITY, PRIVATE, modifier('Double Letter'), dictionary)
        assert result.reasonCode == 'word_mismatch'

    def test_requires_private_tile(self, dictionary):
        result = validate_submission('CAT', refs('c0', 'c1', 'c2'), COMMUNITY, PRIVATE, modifier('Double Letter'), dictionary)
        assert result.isValid is False
        assert result.reasonCode == 'no_private_tile'

    def test_empty_dictionary_rejects_everything(self):
        result = validate_submission('CART', refs(*CART_TILES), COMMUNITY, PRIVATE, modifier('Double Letter'), DictionaryService())
        assert result.reasonCode == 'not_in_dictionary'


class TestFindBestWord:
    """Exhaustive best-word search."""

    def test_best_word_uses_private_tile(self):
        dictionary = DictionaryService(['CAT', 'CART'])
        best = find_best_word(COMMUNITY, PRIVATE, modifier('Double Letter', 4), dictionary)
        assert best is not None
        assert best.word == 'CART'
        assert best.score == 5
        assert any(r.origin == 'private' for r in best.tiles)

    def test_community_only_words_never_count(self):
        dictionary = DictionaryService(['CAT', 'SEA'])
        assert find_best_word(COMMUNITY, PRIVATE, modifier('Double Letter'), dictionary) is None

    def test_tie_prefers_alphabetical(self):
        dictionary = DictionaryService(['TAR', 'RAT'])
        best = find_best_word(COMMUNITY, PRIVATE, modifier('Double Letter', 4), dictionary)
        assert best.word == 'RAT'

    def test_matches_validation_score(self, dictionary):
        mod = modifier('Short & Sweet', 0)
        best = find_best_word(COMMUNITY, PRIVATE, mod, dictionary)
        assert best is not None
        check = validate_submission(best.word, best.tiles, COMMUNITY, PRIVATE, mod, dictionary)
        assert check.isValid is True
        assert check.score == best.score

    def test_modifier_can_change_best_word(self):
        dictionary = DictionaryService(['CART', 'CARTS'])
        plain = find_best_word(COMMUNITY, PRIVATE, modifier('Double Letter', 4), dictionary)
        short = find_best_word(COMMUNITY, PRIVATE, modifier('Short & Sweet', 0), dictionary)
        assert plain.word == 'CARTS'
        assert short.word == 'CART'
        assert short.score == 9

    def test_digraph_tile(self):
        dictionary = DictionaryService(['QUIT'])
        best = find_best_word(tiles('Qu', 'I', 'N', 'E', 'A'), [make_tile('T')], modifier('Double Letter', 4), dictionary)
        assert best.word == 'QUIT'
        assert best.score == 6
