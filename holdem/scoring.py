"""Tile scoring engine.

Scores an ordered run of tiles against the round's modifier, validates
submitted words, and searches for the best achievable word. Everything
here is pure: the same tiles and modifier always produce the same score
and breakdown, and nothing mutates session state.
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

from .dictionary import DictionaryService
from .schemas import BestWord, Modifier, ReasonCode, ScoreResult, Tile, TileRef
from .tiles import is_vowel

PlacedTile = Tuple[TileRef, Tile]


def _is_modifier_tile(ref: TileRef, modifier: Modifier) -> bool:
    return ref.origin == 'community' and ref.index == modifier.dieIndex


def evaluate_modifier(placed: Sequence[PlacedTile], modifier: Modifier) -> Tuple[bool, int, int]:
    """Return ``(applies, multiplier, bonus)`` for the modifier on this run.

    Positions are letter positions, so a two-letter tile such as ``Qu``
    occupies two slots. The modifier tile must be part of the run.
    """
    mod_idx = next((i for i, (ref, _) in enumerate(placed) if _is_modifier_tile(ref, modifier)), -1)
    if mod_idx < 0:
        return False, 1, 0

    letters = [tile.letter.upper() for _, tile in placed]
    letter_count = sum(len(l) for l in letters)
    start = sum(len(l) for l in letters[:mod_idx])
    span = len(letters[mod_idx])
    end = start + span

    def covers(pos: int) -> bool:
        return start <= pos < end

    kind = modifier.type
    if kind == 'multiply':
        return True, modifier.multiplier, 0

    if kind == 'position':
        where = modifier.position
        if where == 'start':
            applies = start == 0
        elif where == 'end':
            applies = end == letter_count
        elif where == 'middle':
            applies = start > 0 and end < letter_count
        elif where == 'second':
            applies = covers(1)
        elif where == 'penultimate':
            applies = letter_count >= 2 and covers(letter_count - 2)
        elif where == 'center':
            applies = letter_count % 2 == 1 and covers(letter_count // 2)
        elif where == 'centerAny':
            applies = covers((letter_count - 1) // 2) or covers(letter_count // 2)
        else:
            applies = False
        if applies:
            return True, modifier.multiplier, 0
        return False, 1, 0

    if kind == 'length':
        if modifier.minLength is not None and letter_count >= modifier.minLength:
            applies = True
        elif modifier.exactLength is not None and letter_count == modifier.exactLength:
            applies = True
        elif modifier.maxLength is not None and letter_count <= modifier.maxLength:
            applies = True
        else:
            applies = False
        if applies:
            return True, modifier.multiplier or 1, modifier.bonus
        return False, 1, 0

    if kind == 'parity':
        odd = letter_count % 2 == 1
        if (modifier.parity == 'odd') == odd:
            return True, 1, modifier.bonus
        return False, 1, 0

    if kind == 'neighbor':
        before = letters[mod_idx - 1][-1] if mod_idx > 0 else ''
        after = letters[mod_idx + 1][0] if mod_idx < len(letters) - 1 else ''
        if (before and is_vowel(before)) or (after and is_vowel(after)):
            return True, modifier.multiplier, 0
        return False, 1, 0

    if kind == 'composition':
        vowels = sum(1 for c in ''.join(letters) if is_vowel(c))
        consonants = letter_count - vowels
        comp = modifier.compositionType
        if comp == 'balanced':
            applies = vowels == consonants
        elif comp == 'vowelRich':
            applies = vowels > consonants
        elif comp == 'vowelCount':
            applies = vowels >= (modifier.minVowels or 0)
        elif comp == 'consonantCount':
            applies = consonants >= (modifier.minConsonants or 0)
        else:
            applies = False
        if applies:
            return True, 1, modifier.bonus
        return False, 1, 0

    if kind == 'bonus':
        return True, 1, modifier.bonus

    return False, 1, 0


def score_sequence(placed: Sequence[PlacedTile], modifier: Modifier) -> Tuple[int, str, bool]:
    """Score a run of tiles. Returns ``(score, breakdown, modifier_applied)``."""
    applies, multiplier, bonus = evaluate_modifier(placed, modifier)
    base = 0
    parts: List[str] = []
    for ref, tile in placed:
        points = tile.points
        if applies and multiplier > 1 and _is_modifier_tile(ref, modifier):
            points *= multiplier
        base += points
        parts.append(f"{tile.letter}({points})")
    total = base + bonus
    breakdown = ' + '.join(parts)
    if bonus > 0:
        breakdown += f" + {bonus}"
    breakdown += f" = {total}"
    return total, breakdown, applies


def _invalid(code: ReasonCode, reason: str, word: str = '') -> ScoreResult:
    return ScoreResult(isValid=False, word=word, reasonCode=code, reason=reason)


def validate_submission(
    word: str,
    refs: Sequence[TileRef],
    community: Sequence[Tile],
    private: Sequence[Tile],
    modifier: Modifier,
    dictionary: DictionaryService,
) -> ScoreResult:
    """Validate and score a claimed word against the tiles that spell it.

    Failures come back as a ``ScoreResult`` with ``isValid=False`` and a
    reason code; nothing is raised.
    """
    claimed = (word or '').strip().upper()
    if not dictionary.contains(claimed):
        return _invalid('not_in_dictionary', f'"{claimed}" is not in the dictionary', claimed)

    seen = set()
    placed: List[PlacedTile] = []
    uses_private = False
    for ref in refs:
        if ref.key in seen:
            return _invalid('duplicate_tile', f'tile {ref.key} used more than once', claimed)
        seen.add(ref.key)
        pool = community if ref.origin == 'community' else private
        if ref.index >= len(pool):
            return _invalid('invalid_tile', f'no such tile: {ref.key}', claimed)
        placed.append((ref, pool[ref.index]))
        if ref.origin == 'private':
            uses_private = True

    built = ''.join(tile.letter for _, tile in placed).upper()
    if built != claimed:
        return _invalid('word_mismatch', f'tiles "{built}" do not match word "{claimed}"', claimed)
    if not uses_private:
        return _invalid('no_private_tile', 'must use at least one of your own tiles', claimed)

    score, breakdown, applied = score_sequence(placed, modifier)
    return ScoreResult(isValid=True, word=built, score=score, breakdown=breakdown, modifierApplied=applied)


def find_best_word(
    community: Sequence[Tile],
    private: Sequence[Tile],
    modifier: Modifier,
    dictionary: DictionaryService,
) -> Optional[BestWord]:
    """Exhaustive search for the highest scoring word the tiles can spell.

    Depth-first over orderings of tile subsets, pruning any prefix the
    dictionary cannot extend. Only words using at least one private tile
    count. Ties go to the longer word, then the alphabetically smaller one.
    """
    pool: List[PlacedTile] = [(TileRef(origin='community', index=i), t) for i, t in enumerate(community)]
    pool += [(TileRef(origin='private', index=i), t) for i, t in enumerate(private)]

    best: Optional[BestWord] = None
    sequence: List[PlacedTile] = []

    def better(score: int, word: str) -> bool:
        if best is None:
            return True
        if score != best.score:
            return score > best.score
        if len(word) != len(best.word):
            return len(word) > len(best.word)
        return word < best.word

    def dfs(used: int, prefix: str, has_private: bool):
        nonlocal best
        for i, (ref, tile) in enumerate(pool):
            if used & (1 << i):
                continue
            word = prefix + tile.letter.upper()
            if not dictionary.has_prefix(word):
                continue
            sequence.append((ref, tile))
            uses_private = has_private or ref.origin == 'private'
            if uses_private and dictionary.contains(word):
                score, breakdown, _ = score_sequence(sequence, modifier)
                if better(score, word):
                    best = BestWord(word=word, score=score, tiles=[r for r, _ in sequence], breakdown=breakdown)
            dfs(used | (1 << i), word, uses_private)
            sequence.pop()

    dfs(0, '', False)
    return best
