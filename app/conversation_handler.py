"""
Module for handling WhatsApp conversations with the ticket quiz.

Inbound text is parsed into a command, dispatched to the quiz engine, and
the engine's result is rendered into a reply. The handler owns no quiz
state itself; everything lives in the engine's session store, apart from the
small "last ticket" memory used by the repeat command.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Optional

from app.cache.lru import BoundedCache
from app.formatters import whatsapp as fmt
from app.obs.logger import log_event
from app.quiz.engine import AnswerStatus, QuizEngine, SelectionStatus
from app.quiz.images import ImageService
from app.quiz.questions import Question


class Command(Enum):
    """Commands a user can send."""
    MENU = "menu"
    HELP = "help"
    STATS = "stats"
    REPEAT = "repeat"
    SELECT_TICKET = "select_ticket"
    ANSWER = "answer"
    UNKNOWN = "unknown"


_MENU_WORDS = {"start", "/start", "menu", "/menu", "tickets", "choose"}
_HELP_WORDS = {"help", "/help", "?"}
_STATS_WORDS = {"stats", "/stats"}
_REPEAT_WORDS = {"repeat", "/repeat", "again", "retry"}

_TICKET_RE = re.compile(r"^(?:ticket|📋)?\s*#?\s*(\d{1,4})$")
_ANSWER_RE = re.compile(r"^([a-z])\)?$")


@dataclass(frozen=True)
class ParsedMessage:
    command: Command
    value: Optional[int] = None


@dataclass(frozen=True)
class BotReply:
    text: str
    image_path: Optional[str] = None


def parse_message(message: str) -> ParsedMessage:
    """
    Classify a raw WhatsApp message.

    Numbers select tickets, single letters answer the current question.

    Args:
        message: The user's input message.

    Returns:
        ParsedMessage: The command and its numeric argument, if any. For
        answers the argument is the 0-based option index.
    """
    text = (message or "").strip().lower()
    if text in _MENU_WORDS:
        return ParsedMessage(Command.MENU)
    if text in _HELP_WORDS:
        return ParsedMessage(Command.HELP)
    if text in _STATS_WORDS:
        return ParsedMessage(Command.STATS)
    if text in _REPEAT_WORDS:
        return ParsedMessage(Command.REPEAT)

    m = _TICKET_RE.match(text)
    if m:
        return ParsedMessage(Command.SELECT_TICKET, int(m.group(1)))
    m = _ANSWER_RE.match(text)
    if m:
        return ParsedMessage(Command.ANSWER, ord(m.group(1)) - ord("a"))
    return ParsedMessage(Command.UNKNOWN)


class ConversationHandler:
    """
    Routes user messages to the quiz engine and renders its results.
    """

    def __init__(
        self,
        engine: QuizEngine,
        last_tickets: BoundedCache,
        images: Optional[ImageService] = None,
        ticket_count: int = 40,
        stats_provider: Optional[Callable[[], Dict[str, Any]]] = None,
    ) -> None:
        """
        Initialize the handler with its collaborators.

        Args:
            engine: Quiz state machine holding the session store.
            last_tickets: Remembers the last ticket each user started.
            images: Used to decide whether a question image can be attached.
            ticket_count: Highest ticket number offered in the menu.
            stats_provider: Returns the dict rendered by the stats command.
        """
        self.engine = engine
        self.last_tickets = last_tickets
        self.images = images
        self.ticket_count = ticket_count
        self.stats_provider = stats_provider

    def handle_message(self, user_id: Hashable, message: str) -> BotReply:
        """
        Process one inbound message and build the reply.

        Args:
            user_id: Unique identifier for the user.
            message: The user's input message.

        Returns:
            BotReply: Text to send plus an optional image path.
        """
        parsed = parse_message(message)
        log_event("message_parsed", user_id=user_id, command=parsed.command.value)

        if parsed.command is Command.MENU:
            self.engine.reset(user_id)
            return BotReply(fmt.format_ticket_menu(self.ticket_count))
        if parsed.command is Command.HELP:
            return BotReply(fmt.format_help(self.ticket_count))
        if parsed.command is Command.STATS:
            stats = self.stats_provider() if self.stats_provider else {}
            return BotReply(fmt.format_bot_stats(stats))
        if parsed.command is Command.REPEAT:
            ticket = self.last_tickets.get(user_id)
            if ticket is None:
                return BotReply(fmt.format_ticket_menu(self.ticket_count))
            return self.start_ticket(user_id, ticket)
        if parsed.command is Command.SELECT_TICKET:
            return self.start_ticket(user_id, parsed.value)
        if parsed.command is Command.ANSWER:
            return self.answer(user_id, parsed.value)
        return self._reprompt(user_id)

    def start_ticket(self, user_id: Hashable, ticket: int) -> BotReply:
        if not 1 <= ticket <= self.ticket_count:
            return BotReply(fmt.format_ticket_out_of_range(self.ticket_count))

        selection = self.engine.select_ticket(user_id, ticket)
        if selection.status is SelectionStatus.TICKET_NOT_FOUND:
            text = fmt.format_ticket_not_found(ticket) + "\n\n" + fmt.format_ticket_menu(self.ticket_count)
            return BotReply(text)

        self.last_tickets.set(user_id, ticket)
        text = (
            fmt.format_ticket_started(ticket, selection.total_questions)
            + "\n\n"
            + fmt.format_question(selection.question, 1, selection.total_questions)
        )
        return BotReply(text, self._image_for(selection.question))

    def answer(self, user_id: Hashable, choice_index: int) -> BotReply:
        """
        Score ``choice_index`` against the user's current question.

        Args:
            user_id: Unique identifier for the user.
            choice_index: 0-based option index (A=0).

        Returns:
            BotReply: Feedback followed by the next question or the summary.
        """
        question = self.engine.current_question(user_id)
        if question is None:
            return BotReply(fmt.SESSION_EXPIRED)
        if choice_index >= len(question.options):
            return BotReply(fmt.format_invalid_option(question))

        result = self.engine.submit_answer(user_id, question.question_id, choice_index)

        if result.status is AnswerStatus.SESSION_EXPIRED:
            return BotReply(fmt.SESSION_EXPIRED)
        if result.status is AnswerStatus.QUESTION_NOT_FOUND:
            return BotReply(fmt.QUESTION_NOT_FOUND)

        feedback = fmt.format_answer_feedback(result.is_correct, result.correct_answer)
        if result.status is AnswerStatus.COMPLETED:
            return BotReply(feedback + "\n\n" + fmt.format_completion(result.summary))

        position = result.session.current_question_index
        text = feedback + "\n\n" + fmt.format_question(result.next_question, position, result.total_questions)
        return BotReply(text, self._image_for(result.next_question))

    def reset_user(self, user_id: Hashable) -> bool:
        return self.engine.reset(user_id)

    def _reprompt(self, user_id: Hashable) -> BotReply:
        session = self.engine.sessions.get(user_id)
        if session is None:
            return BotReply(fmt.format_ticket_menu(self.ticket_count))
        question = self.engine.questions.question_at(session.current_ticket, session.current_question_index)
        total = self.engine.questions.ticket_length(session.current_ticket)
        text = (
            fmt.format_progress_report(session.current_question_index, total, session.correct_count)
            + "\n\n"
            + fmt.format_question(question, session.current_question_index, total)
        )
        return BotReply(text, self._image_for(question))

    def _image_for(self, question: Optional[Question]) -> Optional[str]:
        if question is None or not question.image_url or self.images is None:
            return None
        if self.images.image_exists(question.image_url):
            return question.image_url
        return None
