from typing import List

from kamistream.core.models import Episode, Range, ReconciledList, SortOrder
from kamistream.utils.helpers import format_number

ALL_LABEL = "All"


# ===========================
# Range Labels
# ===========================
def range_label(episodes: List[Episode]) -> str:
    first = format_number(episodes[0].number)
    last = format_number(episodes[-1].number)
    if first == last:
        return first
    return f"{first}-{last}"


# ===========================
# Partitioning
# ===========================
def partition(episode_list: ReconciledList, page_size: int, sort_order: SortOrder = SortOrder.asc) -> List[Range]:
    if page_size < 1:
        raise ValueError("page_size must be at least 1")

    ordered = episode_list.ordered(sort_order)
    if not ordered:
        return []

    if len(ordered) <= page_size:
        return [Range(label=ALL_LABEL, start=ordered[0].number, end=ordered[-1].number, episodes=ordered)]

    ranges = []
    for offset in range(0, len(ordered), page_size):
        chunk = ordered[offset:offset + page_size]
        ranges.append(Range(
            label=range_label(chunk),
            start=chunk[0].number,
            end=chunk[-1].number,
            episodes=chunk
        ))
    return ranges


def find_range_index(ranges: List[Range], number) -> int:
    for index, episode_range in enumerate(ranges):
        if any(episode.number == number for episode in episode_range.episodes):
            return index
    return 0
