from typing import Dict, List, Optional, Any
import json
import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from app.errors import CorpusLoadError
from app.obs.logger import log_event


class Question(BaseModel):
    """One multiple-choice question. Keys follow the corpus JSON (camelCase)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question_id: str = Field(alias="questionId")
    ticket_number: int = Field(alias="ticketNumber")
    text: str
    options: List[str] = Field(min_length=2)
    correct_answer_index: int = Field(alias="correctAnswerIndex", ge=0)
    image_url: Optional[str] = Field(None, alias="imageUrl")
    explanation: Optional[str] = None

    @model_validator(mode="after")
    def _correct_index_in_range(self) -> "Question":
        if self.correct_answer_index >= len(self.options):
            raise ValueError(
                f"question {self.question_id}: correctAnswerIndex "
                f"{self.correct_answer_index} out of range for {len(self.options)} options"
            )
        return self

    @property
    def correct_answer(self) -> str:
        return self.options[self.correct_answer_index]


class AnswerCheck(BaseModel):
    is_correct: bool
    correct_index: int
    correct_answer: str


class QuestionBank:
    """Read-only question corpus indexed by ticket and by question id.

    Questions keep their corpus order inside a ticket; position ``n`` of a
    ticket (1-based) is ``questions_for_ticket(t)[n - 1]``.
    """

    def __init__(self, questions: Optional[List[Question]] = None):
        self.questions: List[Question] = []
        self.by_ticket: Dict[int, List[Question]] = {}
        self.by_id: Dict[str, Question] = {}
        if questions:
            self._index(questions)

    @classmethod
    def from_file(cls, path: str) -> "QuestionBank":
        if not os.path.exists(path):
            raise CorpusLoadError(f"question file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CorpusLoadError(f"cannot read {path}: {e}") from e
        bank = cls.from_records(raw)
        log_event(
            "questions_loaded",
            path=path,
            questions=len(bank.questions),
            tickets=bank.ticket_count,
        )
        return bank

    @classmethod
    def from_records(cls, records: Any) -> "QuestionBank":
        if not isinstance(records, list):
            raise CorpusLoadError("question corpus must be a JSON array")
        try:
            questions = [Question.model_validate(r) for r in records]
        except ValidationError as e:
            raise CorpusLoadError(f"invalid question record: {e}") from e
        return cls(questions)

    def _index(self, questions: List[Question]) -> None:
        self.questions = list(questions)
        self.by_ticket = {}
        self.by_id = {}
        for q in self.questions:
            if q.question_id in self.by_id:
                raise CorpusLoadError(f"duplicate questionId: {q.question_id}")
            self.by_ticket.setdefault(q.ticket_number, []).append(q)
            self.by_id[q.question_id] = q

    @property
    def is_loaded(self) -> bool:
        return bool(self.questions)

    @property
    def ticket_count(self) -> int:
        return len(self.by_ticket)

    def questions_for_ticket(self, ticket_number: int) -> List[Question]:
        return self.by_ticket.get(ticket_number, [])

    def ticket_exists(self, ticket_number: int) -> bool:
        return bool(self.by_ticket.get(ticket_number))

    def ticket_length(self, ticket_number: int) -> int:
        return len(self.questions_for_ticket(ticket_number))

    def get_question(self, question_id: str) -> Optional[Question]:
        return self.by_id.get(question_id)

    def question_at(self, ticket_number: int, position: int) -> Optional[Question]:
        """Question at 1-based ``position`` of a ticket, or None."""
        ticket = self.questions_for_ticket(ticket_number)
        if 1 <= position <= len(ticket):
            return ticket[position - 1]
        return None

    def check_answer(self, question_id: str, choice_index: int) -> Optional[AnswerCheck]:
        question = self.get_question(question_id)
        if question is None:
            return None
        return AnswerCheck(
            is_correct=choice_index == question.correct_answer_index,
            correct_index=question.correct_answer_index,
            correct_answer=question.correct_answer,
        )

    def stats(self) -> Dict[str, Any]:
        total = len(self.questions)
        return {
            "is_loaded": self.is_loaded,
            "total_questions": total,
            "total_tickets": self.ticket_count,
            "questions_per_ticket": round(total / self.ticket_count) if self.ticket_count else 0,
        }
