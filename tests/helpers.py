"""Shared test doubles."""


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_records(tickets=None):
    """Corpus records: ticket number -> list of (options, correct index, image)."""
    tickets = tickets or {
        1: [(["A1", "B1", "C1"], 0, None), (["A2", "B2"], 1, None), (["A3", "B3", "C3", "D3"], 2, None)],
        2: [(["Yes", "No"], 1, "images/2/1.png")],
    }
    records = []
    for ticket, questions in tickets.items():
        for n, (options, correct, image) in enumerate(questions, start=1):
            rec = {
                "questionId": f"{ticket}_{n}",
                "ticketNumber": ticket,
                "text": f"Ticket {ticket} question {n}?",
                "options": options,
                "correctAnswerIndex": correct,
            }
            if image:
                rec["imageUrl"] = image
            records.append(rec)
    return records
