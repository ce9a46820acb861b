from __future__ import annotations
from typing import Dict, List, Mapping

from .schemas import PlacementResult, PlayerState, Standing, Submission

# Points awarded for placement each round
PLACEMENT_POINTS: Dict[int, int] = {1: 3, 2: 2, 3: 1}


def rank_round(players: Mapping[str, PlayerState], submissions: Mapping[str, Submission]) -> List[PlacementResult]:
    """Rank a round's submissions with competition ranking.

    Tied scores share a place and the next distinct score continues at
    its index + 1 (scores 50, 50, 30 place 1, 1, 3). Players without a
    valid submission follow in join order with no place. Pure: awarding
    the points is left to the caller.
    """
    valid = [
        (pid, sub) for pid, sub in submissions.items()
        if pid in players and sub.isValid
    ]
    # sorted() is stable, so equal scores keep first-come order
    valid = sorted(valid, key=lambda item: item[1].score, reverse=True)

    results: List[PlacementResult] = []
    place = 0
    last_score = None
    for idx, (pid, sub) in enumerate(valid):
        if sub.score != last_score:
            place = idx + 1
            last_score = sub.score
        results.append(PlacementResult(
            playerId=pid,
            name=players[pid].name,
            word=sub.word,
            score=sub.score,
            breakdown=sub.breakdown,
            place=place,
            pointsEarned=PLACEMENT_POINTS.get(place, 0),
        ))

    ranked = {r.playerId for r in results}
    for pid, player in players.items():
        if pid in ranked:
            continue
        sub = submissions.get(pid)
        results.append(PlacementResult(
            playerId=pid,
            name=player.name,
            word=sub.word if sub and sub.word else '—',
            score=sub.score if sub else 0,
            breakdown=sub.breakdown if sub else '',
            isInvalid=sub is not None and not sub.isValid,
            noSubmission=sub is None,
        ))
    return results


def final_standings(players: Mapping[str, PlayerState]) -> List[Standing]:
    # Stable sort: equal totals keep join order
    ordered = sorted(players.values(), key=lambda p: p.totalPoints, reverse=True)
    return [Standing(playerId=p.id, name=p.name, totalPoints=p.totalPoints, isHost=p.isHost) for p in ordered]
