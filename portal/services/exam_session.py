"""Server-side online exam: the clock, stored answers and the final score.

An application moves ``not-started -> started -> submitted``. ``error`` is
terminal and covers papers that are not online, have no questions or could
not be loaded. The deadline is fixed when the exam starts, so reloading a
page never resets the timer, and submission is a conditional update so it
happens exactly once even when the deadline and a manual submit race.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from ..database import as_utc, utcnow
from .exam_papers import paper_questions
from .grading import score_online_answers

logger = logging.getLogger(__name__)

NOT_STARTED = "not-started"
STARTED = "started"
SUBMITTED = "submitted"
ERROR = "error"


class ExamSession:
    def __init__(
        self,
        application: dict,
        paper: Optional[dict],
        questions: List[dict],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.application = application
        self.paper = paper
        self.questions = questions
        self.clock = clock

    @property
    def error(self) -> Optional[str]:
        if self.paper is None:
            return "Exam paper could not be loaded"
        if (self.paper.get("paper_type") or "").lower() != "online":
            return "This exam is not an online paper"
        if self.application.get("status") == "cancelled":
            return "This exam application was cancelled"
        if not self.questions:
            return "No questions are available for this exam"
        return None

    @property
    def state(self) -> str:
        if self.application.get("status") == "completed":
            return SUBMITTED
        if self.error:
            return ERROR
        if self.application.get("start_time"):
            return STARTED
        return NOT_STARTED

    @property
    def deadline(self) -> Optional[datetime]:
        value = self.application.get("deadline")
        return as_utc(value) if value else None

    def remaining_seconds(self) -> Optional[int]:
        if self.state == NOT_STARTED:
            return int(self.paper["time"]) * 60
        if self.state != STARTED:
            return 0 if self.state == SUBMITTED else None
        left = (self.deadline - self.clock()).total_seconds()
        return max(int(left), 0)

    def tick(self) -> bool:
        """True when the clock has run out on a started, unsubmitted exam."""
        return self.state == STARTED and self.clock() >= self.deadline

    def accepts_answers(self) -> bool:
        return self.state == STARTED and not self.tick()

    def score(self) -> tuple[float, float, float]:
        paper = self.paper
        negative = (paper.get("negative_marks") or 0) if paper.get("is_negative_mark") else 0
        return score_online_answers(
            self.questions,
            self.application.get("answers") or {},
            float(paper.get("correct_marks_per_question") or 1),
            float(negative),
        )


def load_session(db: Database, application: dict, clock: Callable[[], datetime] = utcnow) -> ExamSession:
    paper = db["exam_papers"].find_one({"_id": application.get("exam_paper_id")})
    questions = paper_questions(db, paper) if paper else []
    return ExamSession(application, paper, questions, clock)


def start_session(db: Database, session: ExamSession) -> ExamSession:
    if session.state != NOT_STARTED:
        return session
    now = session.clock()
    deadline = now + timedelta(minutes=int(session.paper["time"]))
    updated = db["exam_applications"].find_one_and_update(
        {"_id": session.application["_id"], "start_time": None},
        {"$set": {"start_time": now, "deadline": deadline}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Someone else started it first; use their clock.
        updated = db["exam_applications"].find_one({"_id": session.application["_id"]})
    else:
        logger.info("Exam started for application %s, deadline %s", updated["_id"], deadline)
    session.application = updated
    return session


def save_answers(db: Database, session: ExamSession, answers: Dict[str, str]) -> ExamSession:
    valid_ids = {str(q["_id"]) for q in session.questions}
    merged = dict(session.application.get("answers") or {})
    merged.update({qid: option for qid, option in answers.items() if qid in valid_ids})
    updated = db["exam_applications"].find_one_and_update(
        {"_id": session.application["_id"], "status": {"$ne": "completed"}},
        {"$set": {"answers": merged}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is not None:
        session.application = updated
    return session


def submit_session(db: Database, session: ExamSession, auto: bool = False) -> ExamSession:
    """Score and close the exam; a second call is a no-op."""
    if session.state != STARTED:
        return session
    score, possible, percentage = session.score()
    updated = db["exam_applications"].find_one_and_update(
        {"_id": session.application["_id"], "status": {"$ne": "completed"}},
        {
            "$set": {
                "status": "completed",
                "score": score,
                "percentage": percentage,
                "end_time": session.clock(),
                "auto_submitted": auto,
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        updated = db["exam_applications"].find_one({"_id": session.application["_id"]})
    else:
        logger.info(
            "Exam %s for application %s: %s/%s (%.2f%%)",
            "auto-submitted" if auto else "submitted",
            updated["_id"],
            score,
            possible,
            percentage,
        )
    session.application = updated
    return session


def enforce_deadline(db: Database, session: ExamSession) -> ExamSession:
    if session.tick():
        return submit_session(db, session, auto=True)
    return session
