"""
First-Fit Controller - Chronological Slot Scan

Candidates are visited in chronological order (day by day, earliest slot
first). Each lecture unit scans forward from the cursor and the cursor stays
on the slot that was accepted, so the next unit starts from the same place.

Effect:
    - Packs lectures into the earliest days
    - Lectures with different faculty may share a slot
"""


class FirstFitController:
    def __init__(self, candidates):
        self.order = list(candidates)
        self.cursor = 0

    def candidates_from_cursor(self, max_attempts):
        """Yield (position, TimeSlot) for up to max_attempts distinct candidates."""
        n = len(self.order)
        for k in range(min(max_attempts, n)):
            pos = (self.cursor + k) % n
            yield pos, self.order[pos]

    def accept(self, position):
        self.cursor = position

    def reject(self, last_position):
        # Unplaced unit: the next one starts after the exhausted window
        if self.order:
            self.cursor = (last_position + 1) % len(self.order)
