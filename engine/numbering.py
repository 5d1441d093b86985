"""Round/slot addressing shared by the bracket generator and result propagator."""

import math
from datetime import date, datetime, time, timedelta
from typing import Optional

DEFAULT_MATCH_DURATION_HOURS = 2

# Checked in order; first substring match wins.
SPORT_MATCH_DURATION_HOURS = (
    (('football', 'soccer'), 2),
    (('basketball',), 2),
    (('volleyball',), 1.5),
    (('table tennis', 'ping pong'), 1),
)


def knockout_rounds(team_count: int) -> int:
    return math.ceil(math.log2(team_count))


def first_round_slots(team_count: int) -> int:
    return 2 ** (knockout_rounds(team_count) - 1)


def successor(round_number: int, match_number: int) -> tuple[int, int, str]:
    """Return (round, match_number, slot) the winner of a match moves into."""
    slot = 'team1_id' if match_number % 2 == 1 else 'team2_id'
    return round_number + 1, math.ceil(match_number / 2), slot


def find_match(matches, round_number: int, match_number: int):
    for match in matches:
        if match.round == round_number and match.match_number == match_number:
            return match
    return None


def knockout_stage_label(round_number: int, final_round: int) -> str:
    if round_number == final_round:
        return 'Final'
    if round_number == final_round - 1:
        return 'Semi-Final'
    if round_number == final_round - 2:
        return 'Quarter-Final'
    return 'Knockout Stage'


def group_letter(group_index: int) -> str:
    return chr(ord('A') + group_index)


def group_label(group_index: int) -> str:
    return f'Group {group_letter(group_index)}'


def match_duration_hours(sport_type: Optional[str]) -> float:
    sport = (sport_type or '').lower()
    for keywords, hours in SPORT_MATCH_DURATION_HOURS:
        if any(keyword in sport for keyword in keywords):
            return hours
    return DEFAULT_MATCH_DURATION_HOURS


def kickoff_at(start_date: date, slot_index: int, hours_per_slot: float) -> datetime:
    """Indicative start time of the ``slot_index``-th match (0-based)."""
    if isinstance(start_date, datetime):
        start = start_date
    else:
        start = datetime.combine(start_date, time.min)
    return start + timedelta(hours=slot_index * hours_per_slot)
