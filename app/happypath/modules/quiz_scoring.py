from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from ..models.db_models import Quiz, QuizAttempt, AttemptAnswer
from .rounding import round_half_up

DEFAULT_PASSING_SCORE = 60
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SubmittedAnswer(BaseModel):
    question_id: str
    selected_option_id: str
    time_taken_sec: float = 0


def grade_answers(quiz: Quiz, answers: Iterable[SubmittedAnswer]) -> Tuple[List[AttemptAnswer], int, int, int]:
    """
    Cevapları quiz'in anahtarıyla karşılaştırır ve (puanlanmış cevaplar, doğru, toplam, yüzde) döndürür.

    Toplam, gönderilen cevap sayısı değil quiz'in tüm soru sayısıdır; yarım bırakılan deneme
    tam payda üzerinden puanlanır. Bilinmeyen soru kimlikleri reddedilmez, yanlış sayılır.
    Aynı soruya verilen birden fazla cevaptan yalnızca ilki puana katkı yapar.
    """
    key = {q.question_id: q.correct_option_id for q in quiz.questions}
    graded: List[AttemptAnswer] = []
    counted = set()
    correct = 0
    for answer in answers:
        is_correct = key.get(answer.question_id) == answer.selected_option_id
        if is_correct and answer.question_id not in counted:
            correct += 1
        counted.add(answer.question_id)
        graded.append(AttemptAnswer(
            question_id=answer.question_id, selected_option_id=answer.selected_option_id,
            is_correct=is_correct, time_taken_sec=max(answer.time_taken_sec or 0, 0)
        ))
    total = len(quiz.questions)
    score_pct = round_half_up(100 * correct / total) if total else 0
    return graded, correct, total, score_pct


def sanitize_quiz(quiz: Quiz) -> Dict:
    """Öğrenciye gönderilecek görünüm: doğru cevap anahtarı yer almaz."""
    return {
        "quiz_id": quiz.quiz_id,
        "title": quiz.title,
        "lesson_id": quiz.lesson_id,
        "language": quiz.language,
        "settings": quiz.settings,
        "questions": [
            {
                "question_id": q.question_id,
                "type": q.type,
                "prompt_text": q.prompt_text,
                "prompt_image_url": q.prompt_image_url,
                "prompt_audio_url": q.prompt_audio_url,
                "order": q.order,
                "options": [o.model_dump() for o in q.options],
            }
            for q in sorted(quiz.questions, key=lambda q: q.order)
        ],
    }


def _attempt_time(attempt: QuizAttempt) -> Optional[datetime]:
    return attempt.created_at or attempt.completed_at


def summarize_learner_quizzes(attempts: Iterable[QuizAttempt], quizzes: Dict) -> List[Dict]:
    """Öğrencinin denediği her quiz için tek satır; en son denenen en üstte."""
    rows: Dict = {}
    for a in sorted(attempts, key=lambda a: _attempt_time(a) or _EPOCH):
        row = rows.get(a.quiz_id)
        if row is None:
            quiz = quizzes.get(a.quiz_id)
            row = rows[a.quiz_id] = {
                "quiz_id": a.quiz_id,
                "quiz_title": quiz.title if quiz else "Untitled quiz",
                "lesson_id": a.lesson_id,
                "attempts": 0,
                "completed_attempts": 0,
                "abandoned_attempts": 0,
                "best_score": 0,
                "total_score": 0,
                "last_score": 0,
                "first_attempt_at": _attempt_time(a),
                "last_attempt_at": _attempt_time(a),
                "passed_attempts": 0,
                "passing_score": quiz.settings.passing_score if quiz else DEFAULT_PASSING_SCORE,
            }
        row["attempts"] += 1
        if a.status == "completed":
            row["completed_attempts"] += 1
        else:
            row["abandoned_attempts"] += 1
        row["best_score"] = max(row["best_score"], a.score_pct)
        row["total_score"] += a.score_pct
        row["last_score"] = a.score_pct
        row["last_attempt_at"] = _attempt_time(a)
        if a.score_pct >= row["passing_score"]:
            row["passed_attempts"] += 1

    result = []
    for row in rows.values():
        total_score = row.pop("total_score")
        row["avg_score"] = round(total_score / row["attempts"], 1) if row["attempts"] else 0
        result.append(row)
    result.sort(key=lambda r: r["last_attempt_at"] or _EPOCH, reverse=True)
    return result


def build_child_history(attempts: Iterable[QuizAttempt], quizzes: Dict) -> List[Dict]:
    """Veli görünümü: her tamamlanmış deneme için soru metni, seçilen cevap ve doğruluk."""
    history = []
    for a in attempts:
        quiz = quizzes.get(a.quiz_id)
        questions = {q.question_id: q for q in quiz.questions} if quiz else {}

        details = []
        for ans in a.answers:
            question = questions.get(ans.question_id)
            option = next((o for o in question.options if o.id == ans.selected_option_id), None) if question else None
            details.append({
                "id": ans.question_id,
                "question": question.prompt_text if question and question.prompt_text else "Question",
                "answer": (option.label_text or option.image_url) if option else ans.selected_option_id,
                "correct": ans.is_correct,
            })

        total_time_sec = sum(ans.time_taken_sec for ans in a.answers if ans.time_taken_sec)
        history.append({
            "id": a.attempt_id,
            "module_id": a.lesson_id or (quiz.lesson_id if quiz else None),
            "module_name": quiz.title if quiz else "Quiz",
            "date": a.completed_at or a.created_at,
            "score": a.score_pct,
            "total_questions": a.total or len(a.answers),
            "correct_answers": a.correct,
            # Süre bilgisi varsa en az 1 dakika
            "time_spent": max(1, round_half_up(total_time_sec / 60)) if total_time_sec > 0 else None,
            "questions": details,
        })
    return history
