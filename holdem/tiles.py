from __future__ import annotations
import random
from typing import Dict, List, Optional

from .schemas import Modifier, Tile

# Letter point values, compressed to 1-4 so short and long words stay competitive
LETTER_POINTS: Dict[str, int] = {
    'A': 1, 'E': 1, 'I': 1, 'O': 1, 'U': 1, 'L': 1, 'N': 1, 'R': 1, 'S': 1, 'T': 1,
    'D': 2, 'G': 2, 'B': 2, 'C': 2, 'M': 2, 'P': 2, 'H': 2,
    'F': 3, 'V': 3, 'W': 3, 'Y': 3, 'K': 3,
    'J': 4, 'X': 4, 'Qu': 4, 'Z': 4,
}

VOWELS = ('A', 'E', 'I', 'O', 'U')

VOWEL_COUNTS: Dict[str, int] = {'A': 4, 'E': 5, 'I': 4, 'O': 4, 'U': 3}
CONSONANT_COUNTS: Dict[str, int] = {
    'B': 2, 'C': 2, 'D': 3, 'F': 2, 'G': 2, 'H': 2,
    'J': 1, 'K': 1, 'L': 3, 'M': 2, 'N': 3, 'P': 2,
    'Qu': 1, 'R': 3, 'S': 3, 'T': 3, 'V': 2, 'W': 2,
    'X': 1, 'Y': 2, 'Z': 1,
}

PRIVATE_SET_SIZE = 3
COMMUNITY_SET_SIZE = 5
COMMUNITY_DIVERSITY_ATTEMPTS = 10
COMMUNITY_MAX_ATTEMPTS = 20

MODIFIERS: List[Modifier] = [
    Modifier(name='Double Letter', shortName='×2', type='multiply', multiplier=2, color='#3b82f6',
             desc='This letter scores ×2 points'),
    Modifier(name='Triple Letter', shortName='×3', type='multiply', multiplier=3, color='#8b5cf6',
             desc='This letter scores ×3 points'),
    Modifier(name='Quad Letter', shortName='×4', type='multiply', multiplier=4, color='#ec4899',
             desc='This letter scores ×4 points'),
    Modifier(name='Start Bonus', shortName='1st', type='position', position='start', multiplier=2, color='#f97316',
             desc='×2 if used as FIRST letter of your word'),
    Modifier(name='End Bonus', shortName='END', type='position', position='end', multiplier=2, color='#fb923c',
             desc='×2 if used as LAST letter of your word'),
    Modifier(name='Middle Power', shortName='MID', type='position', position='middle', multiplier=3, color='#fbbf24',
             desc='×3 if used in the MIDDLE (not first or last)'),
    Modifier(name='Second Letter', shortName='2nd', type='position', position='second', multiplier=2, color='#f59e0b',
             desc='×2 if used as the 2nd letter of your word'),
    Modifier(name='Penultimate', shortName='-2', type='position', position='penultimate', multiplier=2, color='#d97706',
             desc='×2 if used as second-to-last letter'),
    Modifier(name='Centerpiece', shortName='CTR', type='position', position='center', multiplier=3, color='#eab308',
             desc='×3 if exact middle of an odd-length word'),
    Modifier(name='Heart of It', shortName='MID2', type='position', position='centerAny', multiplier=2, color='#ca8a04',
             desc='×2 if this letter touches the middle of your word'),
    Modifier(name='Long Word', shortName='6+', type='length', minLength=6, bonus=12, color='#10b981',
             desc='+12 bonus if your word is 6+ letters'),
    Modifier(name='Short & Sweet', shortName='4', type='length', exactLength=4, multiplier=3, color='#14b8a6',
             desc='×3 if your word is exactly 4 letters'),
    Modifier(name='Five Alive', shortName='5', type='length', exactLength=5, multiplier=2, bonus=5, color='#0d9488',
             desc='×2 + 5 bonus if your word is exactly 5 letters'),
    Modifier(name='Compact', shortName='3', type='length', exactLength=3, bonus=10, color='#059669',
             desc='+10 bonus if your word is exactly 3 letters'),
    Modifier(name='Odd Word', shortName='ODD', type='parity', parity='odd', bonus=8, color='#8b5cf6',
             desc='+8 bonus if word has ODD number of letters'),
    Modifier(name='Even Word', shortName='EVEN', type='parity', parity='even', bonus=8, color='#a855f7',
             desc='+8 bonus if word has EVEN number of letters'),
    Modifier(name='Vowel Buddy', shortName='V+', type='neighbor', neighborType='vowel', multiplier=2, color='#06b6d4',
             desc='×2 if this letter is next to a VOWEL'),
    Modifier(name='Balanced', shortName='BAL', type='composition', compositionType='balanced', bonus=6, color='#0ea5e9',
             desc='+6 if word has equal vowels and consonants'),
    Modifier(name='Vowel Rich', shortName='V>C', type='composition', compositionType='vowelRich', bonus=10,
             color='#6366f1', desc='+10 if word has more vowels than consonants'),
    Modifier(name='Vowel Stack', shortName='3V', type='composition', compositionType='vowelCount', minVowels=3,
             bonus=8, color='#4f46e5', desc='+8 if word has 3 or more vowels'),
    Modifier(name='Consonant Crunch', shortName='4C', type='composition', compositionType='consonantCount',
             minConsonants=4, bonus=8, color='#4338ca', desc='+8 if word has 4 or more consonants'),
    Modifier(name='Bonus +5', shortName='+5', type='bonus', bonus=5, color='#22c55e',
             desc='+5 points if you use this letter'),
    Modifier(name='Bonus +10', shortName='+10', type='bonus', bonus=10, color='#16a34a',
             desc='+10 points if you use this letter'),
]


def is_vowel(letter: str) -> bool:
    return letter.upper() in VOWELS


def make_tile(letter: str) -> Tile:
    return Tile(letter=letter, points=LETTER_POINTS[letter])


def build_deck() -> List[Tile]:
    deck: List[Tile] = []
    for counts in (VOWEL_COUNTS, CONSONANT_COUNTS):
        for letter, count in counts.items():
            deck.extend(make_tile(letter) for _ in range(count))
    return deck


def roll_modifier(rng: Optional[random.Random] = None) -> Modifier:
    rng = rng or random.Random()
    template = rng.choice(MODIFIERS)
    return template.model_copy(update={'dieIndex': rng.randrange(COMMUNITY_SET_SIZE)})


class TileDeck:
    """A session's shuffled letter deck and its draw cursor.

    Only the owning session draws from it. When the cursor runs off the
    end the deck is reshuffled and drawing continues from the top.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.tiles: List[Tile] = []
        self.cursor: int = 0
        self.reset()

    def reset(self):
        self.tiles = build_deck()
        self.rng.shuffle(self.tiles)
        self.cursor = 0

    @property
    def remaining(self) -> int:
        return len(self.tiles) - self.cursor

    def draw_one(self) -> Tile:
        if self.cursor >= len(self.tiles):
            self.reset()
        tile = self.tiles[self.cursor]
        self.cursor += 1
        return tile.model_copy()

    def draw_private_set(self) -> List[Tile]:
        dice = [self.draw_one() for _ in range(PRIVATE_SET_SIZE)]
        return self._ensure_vowel(dice)

    def draw_community_set(self) -> List[Tile]:
        dice: List[Tile] = []
        used = set()
        attempts = 0
        while len(dice) < COMMUNITY_SET_SIZE and attempts < COMMUNITY_MAX_ATTEMPTS:
            tile = self.draw_one()
            # Prefer distinct letters; give up on diversity after enough misses
            if tile.letter not in used or attempts > COMMUNITY_DIVERSITY_ATTEMPTS:
                dice.append(tile)
                used.add(tile.letter)
            attempts += 1
        while len(dice) < COMMUNITY_SET_SIZE:
            dice.append(self.draw_one())
        return self._ensure_vowel(dice)

    def _ensure_vowel(self, dice: List[Tile]) -> List[Tile]:
        if not any(d.letter in VOWELS for d in dice):
            dice[self.rng.randrange(len(dice))] = make_tile(self.rng.choice(VOWELS))
        return dice
