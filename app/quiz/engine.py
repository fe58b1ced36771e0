"""
Ticket progression and answer scoring.

A user is either without a session, or in progress on question ``i`` of a
ticket with ``N`` questions. Answering question ``N`` completes the ticket:
the summary is computed from the final counters and the session is deleted
in the same step, so no session is ever stored in a finished state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Hashable, Optional
import time

from app.obs.logger import log_event
from app.obs.metrics import inc_counter
from app.quiz.images import ImageService
from app.quiz.questions import Question, QuestionBank
from app.quiz.statistics import calculate_percentage
from app.session.store import Session, SessionStore


class SelectionStatus(Enum):
    STARTED = "started"
    TICKET_NOT_FOUND = "ticket_not_found"


class AnswerStatus(Enum):
    NEXT_QUESTION = "next_question"
    COMPLETED = "completed"
    SESSION_EXPIRED = "session_expired"
    QUESTION_NOT_FOUND = "question_not_found"


@dataclass(frozen=True)
class CompletionSummary:
    ticket: int
    correct: int
    incorrect: int
    started_at: float
    finished_at: float

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def percentage(self) -> int:
        return calculate_percentage(self.correct, self.total)


@dataclass(frozen=True)
class TicketSelection:
    status: SelectionStatus
    ticket: int
    session: Optional[Session] = None
    question: Optional[Question] = None
    total_questions: int = 0


@dataclass(frozen=True)
class AnswerResult:
    status: AnswerStatus
    is_correct: Optional[bool] = None
    correct_answer: Optional[str] = None
    session: Optional[Session] = None
    next_question: Optional[Question] = None
    total_questions: int = 0
    summary: Optional[CompletionSummary] = None


class QuizEngine:
    def __init__(self, sessions: SessionStore, questions: QuestionBank,
                 images: Optional[ImageService] = None,
                 clock: Callable[[], float] = time.time):
        self.sessions = sessions
        self.questions = questions
        self.images = images
        self._clock = clock

    def select_ticket(self, user_id: Hashable, ticket: int) -> TicketSelection:
        """Start ``ticket`` for the user, discarding any session in progress."""
        ticket_questions = self.questions.questions_for_ticket(ticket)
        if not ticket_questions:
            log_event("ticket_not_found", user_id=user_id, ticket=ticket)
            return TicketSelection(status=SelectionStatus.TICKET_NOT_FOUND, ticket=ticket)

        session = self.sessions.set(user_id, {
            "current_ticket": ticket,
            "current_question_index": 1,
            "correct_count": 0,
            "incorrect_count": 0,
            "started_at": self._clock(),
        })
        if self.images is not None:
            self.images.preload_ticket_images(ticket_questions)

        inc_counter("tickets_started_total")
        log_event("ticket_started", user_id=user_id, ticket=ticket, questions=len(ticket_questions))
        return TicketSelection(
            status=SelectionStatus.STARTED,
            ticket=ticket,
            session=session,
            question=ticket_questions[0],
            total_questions=len(ticket_questions),
        )

    def current_question(self, user_id: Hashable) -> Optional[Question]:
        session = self.sessions.get(user_id)
        if session is None:
            return None
        return self.questions.question_at(session.current_ticket, session.current_question_index)

    def submit_answer(self, user_id: Hashable, question_id: str, choice_index: int) -> AnswerResult:
        session = self.sessions.get(user_id)
        if session is None:
            inc_counter("answers_total", {"result": "session_expired"})
            return AnswerResult(status=AnswerStatus.SESSION_EXPIRED)

        check = self.questions.check_answer(question_id, choice_index)
        if check is None:
            inc_counter("answers_total", {"result": "question_not_found"})
            log_event("question_not_found", level="WARNING", user_id=user_id, question_id=question_id)
            return AnswerResult(status=AnswerStatus.QUESTION_NOT_FOUND, session=session)

        correct = session.correct_count + (1 if check.is_correct else 0)
        incorrect = session.incorrect_count + (0 if check.is_correct else 1)
        next_index = session.current_question_index + 1
        total = self.questions.ticket_length(session.current_ticket)
        inc_counter("answers_total", {"result": "correct" if check.is_correct else "incorrect"})

        if next_index > total:
            self.sessions.delete(user_id)
            summary = CompletionSummary(
                ticket=session.current_ticket,
                correct=correct,
                incorrect=incorrect,
                started_at=session.started_at,
                finished_at=self._clock(),
            )
            inc_counter("tickets_completed_total")
            log_event(
                "ticket_completed",
                user_id=user_id,
                ticket=summary.ticket,
                correct=summary.correct,
                incorrect=summary.incorrect,
            )
            return AnswerResult(
                status=AnswerStatus.COMPLETED,
                is_correct=check.is_correct,
                correct_answer=check.correct_answer,
                total_questions=total,
                summary=summary,
            )

        updated = self.sessions.update(
            user_id,
            current_question_index=next_index,
            correct_count=correct,
            incorrect_count=incorrect,
        )
        return AnswerResult(
            status=AnswerStatus.NEXT_QUESTION,
            is_correct=check.is_correct,
            correct_answer=check.correct_answer,
            session=updated,
            next_question=self.questions.question_at(session.current_ticket, next_index),
            total_questions=total,
        )

    def reset(self, user_id: Hashable) -> bool:
        """Drop the user's session, if any."""
        return self.sessions.delete(user_id)
