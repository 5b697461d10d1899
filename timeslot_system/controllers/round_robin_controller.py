"""
Round-Robin Controller - Even Distribution Across Days

Candidates are visited day-interleaved: first slot of every working day,
then second slot of every working day, and so on. After a placement the
cursor moves one past the accepted slot, so consecutive lecture units land
on different days before any day is repeated.
"""

from timeslot_system.timeslot_grid import group_by_day

from .first_fit_controller import FirstFitController


def interleave_by_day(candidates):
    by_day = group_by_day(candidates)
    day_lists = list(by_day.values())
    longest = max((len(slots) for slots in day_lists), default=0)

    order = []
    for idx in range(longest):
        for slots in day_lists:
            if idx < len(slots):
                order.append(slots[idx])
    return order


class RoundRobinController(FirstFitController):
    def __init__(self, candidates):
        super().__init__(interleave_by_day(candidates))

    def accept(self, position):
        if self.order:
            self.cursor = (position + 1) % len(self.order)
