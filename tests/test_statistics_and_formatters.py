from app.formatters import whatsapp as fmt
from app.quiz.engine import CompletionSummary
from app.quiz.questions import QuestionBank
from app.quiz.statistics import (
    calculate_percentage,
    grade_emoji,
    grade_text,
    is_passed,
    time_spent,
)
from tests.helpers import make_records


def test_percentage():
    assert calculate_percentage(0, 0) == 0
    assert calculate_percentage(18, 20) == 90
    assert calculate_percentage(1, 3) == 33
    # halves round up
    assert calculate_percentage(1, 8) == 13
    assert calculate_percentage(3, 8) == 38


def test_grades():
    assert grade_emoji(95) == "🏆"
    assert grade_emoji(75) == "👍"
    assert grade_emoji(55) == "📚"
    assert grade_emoji(10) == "💪"
    assert grade_text(90) == "Excellent!"
    assert grade_text(49) == "Keep practising"


def test_time_spent():
    assert time_spent(100.0, 165.0).formatted == "1 min 5 sec"
    assert time_spent(100.0, 142.9).formatted == "42 sec"
    assert time_spent(200.0, 100.0).total_seconds == 0


def test_is_passed():
    assert is_passed(16, 20)
    assert not is_passed(15, 20)
    assert is_passed(15, 20, passing_percentage=75)


def test_progress_bar():
    assert fmt.progress_bar(1, 20) == "🟩" + "⬜" * 9 + " 1/20"
    assert fmt.progress_bar(10, 20) == "🟩" * 5 + "⬜" * 5 + " 10/20"
    assert fmt.progress_bar(20, 20) == "🟩" * 10 + " 20/20"


def test_format_question_letters_options():
    question = QuestionBank.from_records(make_records()).get_question("1_3")
    text = fmt.format_question(question, 3, 3)

    assert text.startswith("📝 Question 3 of 3")
    assert "A) A3" in text and "D) D3" in text
    assert text.endswith("Reply with a letter A–D.")


def test_format_completion():
    summary = CompletionSummary(ticket=4, correct=18, incorrect=2, started_at=0.0, finished_at=75.0)
    text = fmt.format_completion(summary)

    assert text.startswith("🏆 Ticket 4 completed!")
    assert "✅ Correct: 18" in text
    assert "❌ Incorrect: 2" in text
    assert "📊 Score: 90%" in text
    assert "⏱ Time: 1 min 15 sec" in text


def test_answer_feedback():
    assert fmt.format_answer_feedback(True, "x") == "✅ Correct!"
    assert "Correct answer:\nSlow down" in fmt.format_answer_feedback(False, "Slow down")


def test_progress_report():
    assert fmt.format_progress_report(4, 10, 2) == "📊 Progress: 3/10 | ✅ 2 | ❌ 1 (67%)"


def test_bot_stats_text():
    text = fmt.format_bot_stats({
        "sessions": {"active_sessions": 3, "max_sessions": 10, "ttl_minutes": 30.0, "utilization_percent": 30},
        "questions": {"total_questions": 800, "total_tickets": 40},
        "images": {"hit_rate": "75.0%", "cache": {"item_count": 2, "current_size_mb": 0.5, "max_size_mb": 50}},
        "rate_limit": {"tracked_users": 1, "max_requests": 10, "window_seconds": 60, "backend": "local"},
    })
    assert "👥 Active: 3/10" in text
    assert "⏱ TTL: 30 min" in text
    assert "📋 Tickets: 40" in text
    assert "🎯 Hit rate: 75.0%" in text
    assert "🗄 Backend: local" in text
