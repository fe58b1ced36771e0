from typing import Any, Dict, Optional
import string

from app.quiz.engine import CompletionSummary
from app.quiz.questions import Question
from app.quiz.statistics import calculate_percentage, grade_emoji, grade_text, time_spent
from app.utils.rounding import round_half_up

OPTION_LETTERS = string.ascii_uppercase

SESSION_EXPIRED = "⚠️ Your session has expired. Send “start” to begin again."
QUESTION_NOT_FOUND = "❌ That question could not be found. Send “start” to begin again."
GENERIC_ERROR = "❌ Something went wrong. Please try again."


def option_letter(index: int) -> str:
    return OPTION_LETTERS[index]


def progress_bar(current: int, total: int, bar_length: int = 10) -> str:
    filled = round_half_up(current / total * bar_length) if total > 0 else 0
    return "🟩" * filled + "⬜" * (bar_length - filled) + f" {current}/{total}"


def progress_text(current: int, total: int) -> str:
    return f"📝 Question {current} of {total}"


def format_progress_report(current: int, total: int, correct: int) -> str:
    answered = current - 1
    incorrect = answered - correct
    pct = calculate_percentage(correct, answered)
    return f"📊 Progress: {answered}/{total} | ✅ {correct} | ❌ {incorrect} ({pct}%)"


def format_question(question: Question, position: int, total: int) -> str:
    lines = [
        progress_text(position, total),
        progress_bar(position, total),
        "",
        question.text,
        "",
    ]
    lines += [f"{option_letter(i)}) {opt}" for i, opt in enumerate(question.options)]
    last = option_letter(len(question.options) - 1)
    lines += ["", f"Reply with a letter A–{last}."]
    return "\n".join(lines)


def format_ticket_menu(ticket_count: int) -> str:
    return (
        "🚗 Welcome to the Ticket Trainer!\n\n"
        f"Send a ticket number from 1 to {ticket_count} to start practising, "
        "for example “ticket 5” or just “5”."
    )


def format_ticket_started(ticket: int, total: int) -> str:
    return f"📋 Ticket {ticket}\nQuestions: {total}\n\nLet’s go!"


def format_ticket_not_found(ticket: int) -> str:
    return f"❌ Ticket {ticket} was not found. Please choose another ticket."


def format_ticket_out_of_range(ticket_count: int) -> str:
    return f"❌ Please choose a ticket from 1 to {ticket_count}."


def format_invalid_option(question: Question) -> str:
    last = option_letter(len(question.options) - 1)
    return f"Please reply with a letter from A to {last}."


def format_answer_feedback(is_correct: bool, correct_answer: Optional[str]) -> str:
    if is_correct:
        return "✅ Correct!"
    return f"❌ Incorrect!\n\nCorrect answer:\n{correct_answer}"


def format_completion(summary: CompletionSummary) -> str:
    pct = summary.percentage
    parts = [
        f"{grade_emoji(pct)} Ticket {summary.ticket} completed!",
        "",
        f"✅ Correct: {summary.correct}",
        f"❌ Incorrect: {summary.incorrect}",
        f"📊 Score: {pct}%",
        "",
        grade_text(pct),
        "",
        f"⏱ Time: {time_spent(summary.started_at, summary.finished_at).formatted}",
        "",
        "Send “repeat” to retry this ticket or “menu” to choose another.",
    ]
    return "\n".join(parts)


def format_rate_limited(retry_after: int) -> str:
    return f"⏳ Too many requests. Please wait {retry_after} sec."


def format_help(ticket_count: int) -> str:
    return "\n".join([
        "📖 Ticket Trainer help",
        "",
        "Commands:",
        "start / menu – choose a ticket",
        "help – show this message",
        "repeat – retry your last ticket",
        "stats – bot statistics",
        "",
        "How it works:",
        f"1. Send a ticket number (1–{ticket_count})",
        "2. Answer each question with its letter",
        "3. You’ll see whether you were right after every answer",
        "4. Your score is shown at the end of the ticket",
        "",
        "Good luck on the exam! 🍀",
    ])


def format_bot_stats(stats: Dict[str, Any]) -> str:
    sessions = stats.get("sessions", {})
    questions = stats.get("questions", {})
    images = stats.get("images", {})
    image_cache = images.get("cache", {})
    rate = stats.get("rate_limit", {})

    lines = ["📊 Bot statistics", "", "Sessions:"]
    lines.append(f"👥 Active: {sessions.get('active_sessions', 0)}/{sessions.get('max_sessions', 0)}")
    lines.append(f"⏱ TTL: {sessions.get('ttl_minutes', 0):g} min")
    lines.append(f"📈 Utilization: {sessions.get('utilization_percent', 0)}%")
    lines += ["", "Questions:"]
    lines.append(f"📚 Total: {questions.get('total_questions', 0)}")
    lines.append(f"📋 Tickets: {questions.get('total_tickets', 0)}")
    lines += ["", "Image cache:"]
    lines.append(f"🖼 Files: {image_cache.get('item_count', 0)}")
    lines.append(f"💿 Size: {image_cache.get('current_size_mb', 0)}/{image_cache.get('max_size_mb', 0)} MB")
    lines.append(f"🎯 Hit rate: {images.get('hit_rate', '0.0%')}")
    if rate:
        lines += ["", "Rate limiter:"]
        lines.append(f"👤 Tracked users: {rate.get('tracked_users', 0)}")
        lines.append(f"⚡ Limit: {rate.get('max_requests', 0)}/{rate.get('window_seconds', 0)} sec")
        lines.append(f"🗄 Backend: {rate.get('backend', 'local')}")
    return "\n".join(lines)
