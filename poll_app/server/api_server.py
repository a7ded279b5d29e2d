"""FastAPI server that exposes the daily poll endpoints."""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from poll_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from poll_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from poll_app.core.clock import parse_civil_date
from poll_app.core.errors import (
    AlreadyAnsweredError,
    PollError,
    QuestionLockedError,
    QuestionNotFoundError,
    QuestionValidationError,
    StoreConflictError,
    StoreUnavailableError,
)
from poll_app.core.markdown_renderer import renderer
from poll_app.core.models import (
    AvailableResults,
    PollQuestion,
    QuestionStatus,
    UserStats,
    Voter,
    VoteRecord,
)
from poll_app.core.poll_manager import PollManager
from poll_app.server.auth import SessionVerifier, StaticTokenVerifier, bearer_token
from poll_app.server.cookies import ensure_client_id, load_cookie_votes, store_cookie_votes

logger = logging.getLogger(__name__)


class VotePayload(BaseModel):
    """Payload schema for a vote: the voter's own answer and their majority guess."""

    model_config = ConfigDict(populate_by_name=True)

    question_id: str | None = Field(default=None, alias="questionId")
    answer: str | None = None
    majority_guess: str | None = Field(default=None, alias="majorityGuess")


class AdminQuestionPayload(BaseModel):
    """Payload schema for creating or editing a question."""

    model_config = ConfigDict(populate_by_name=True)

    date: str | None = None
    question: str | None = None
    choices: list[str] | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")


class AdminPasswordPayload(BaseModel):
    password: str | None = None


def _to_http_error(exc: PollError) -> HTTPException:
    if isinstance(exc, QuestionNotFoundError):
        return HTTPException(status_code=404, detail="Question not found")
    if isinstance(exc, QuestionLockedError):
        return HTTPException(
            status_code=403,
            detail={
                "error": "Question is locked",
                "message": str(exc),
                "daysSincePublication": exc.days_since_publication,
            },
        )
    if isinstance(exc, AlreadyAnsweredError):
        return HTTPException(
            status_code=409,
            detail={"error": "Already answered", "message": str(exc)},
        )
    if isinstance(exc, QuestionValidationError):
        return HTTPException(status_code=400, detail={"error": "Invalid input", "message": str(exc)})
    if isinstance(exc, StoreConflictError):
        return HTTPException(
            status_code=409,
            detail={"error": "Conflict", "message": "The record already exists."},
        )
    if isinstance(exc, StoreUnavailableError):
        return HTTPException(
            status_code=503,
            detail={"error": "Storage unavailable", "message": "Please try again shortly.", "retryable": True},
        )
    return HTTPException(status_code=500, detail="Server error")


def _question_payload(question: PollQuestion, status: QuestionStatus) -> dict[str, object]:
    return {
        "id": question.id,
        "date": question.publish_date.isoformat(),
        "question": question.question_text,
        "questionHtml": renderer.render_fragment(question.question_text),
        "choices": list(question.choices),
        "choicesHtml": [renderer.render_inline(choice) for choice in question.choices],
        "imageUrl": question.image_url,
        "daysSincePublication": status.days_since_publication,
        "status": status.status,
        "phase": status.phase.value,
        "canAnswer": status.can_answer,
        "canViewResults": status.can_view_results,
        "daysUntilResults": status.days_until_results,
    }


def _vote_payload(record: VoteRecord | None) -> dict[str, object] | None:
    if record is None:
        return None
    return {"answer": record.answer, "prediction": record.prediction, "correct": record.correct}


def _stats_payload(stats: UserStats) -> dict[str, object]:
    return {
        "points": stats.points,
        "wins": stats.wins,
        "losses": stats.losses,
        "accuracy": round(stats.accuracy, 1),
        "currentWinStreak": stats.current_win_streak,
        "bestWinStreak": stats.best_win_streak,
        "dailyStreak": stats.daily_streak,
        "bestDailyStreak": stats.best_daily_streak,
        "lastAnsweredDate": stats.last_answered_date.isoformat() if stats.last_answered_date else None,
    }


def _get_poll_manager_dependency(poll_manager: PollManager):
    def dependency() -> PollManager:
        return poll_manager

    return dependency


def _parse_admin_question(payload: AdminQuestionPayload) -> PollQuestion:
    if not payload.date or not payload.question or not payload.choices:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid input", "message": "Must provide date, question, and 2-4 choices"},
        )
    try:
        publish_date = parse_civil_date(payload.date)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid input", "message": f"Invalid date: {payload.date}"},
        ) from exc
    return PollQuestion(
        id="",
        publish_date=publish_date,
        question_text=payload.question,
        choices=list(payload.choices),
        image_url=payload.image_url,
    )


def create_api_app(
    poll_manager: PollManager,
    admin_password: str,
    verifier: SessionVerifier | None = None,
    cookie_secret: str | None = None,
) -> FastAPI:
    """Create a FastAPI application wired to the provided poll manager.

    ``cookie_secret`` signs the ``guess_data`` cookie. Without one a random key is
    generated, and cookies written before a restart are ignored afterwards.
    """
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    poll_manager_dep = _get_poll_manager_dependency(poll_manager)
    session_verifier = verifier or StaticTokenVerifier()
    signing_secret = cookie_secret or secrets.token_hex(32)
    if not cookie_secret:
        logger.warning("No cookie secret configured; using a per-process key")

    def resolve_voter(request: Request, response: Response) -> Voter:
        client_id = ensure_client_id(request, response)
        token = bearer_token(request)
        if token is None:
            return Voter(client_id=client_id)
        user_id = session_verifier.verify(token)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Invalid or expired session")
        return Voter(client_id=client_id, user_id=user_id)

    def require_user(voter: Voter = Depends(resolve_voter)) -> Voter:
        if not voter.is_authenticated:
            raise HTTPException(status_code=401, detail="Sign in required")
        return voter

    def require_admin(x_admin_password: str | None = Header(default=None)) -> None:
        if not x_admin_password or not secrets.compare_digest(
            x_admin_password.encode(), admin_password.encode()
        ):
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.get("/health")
    def health(manager: PollManager = Depends(poll_manager_dep)) -> dict[str, object]:
        return {"status": "ok", "today": manager.today().isoformat()}

    @app.get("/today")
    def get_today(manager: PollManager = Depends(poll_manager_dep)) -> dict[str, object]:
        try:
            found = manager.get_today_question()
        except PollError as exc:
            raise _to_http_error(exc) from exc
        if found is None:
            raise HTTPException(status_code=404, detail="No question for today")
        question, status = found
        return _question_payload(question, status)

    @app.get("/question/{question_id}")
    def get_question(question_id: str, manager: PollManager = Depends(poll_manager_dep)) -> dict[str, object]:
        try:
            question, status = manager.get_question(question_id)
        except PollError as exc:
            raise _to_http_error(exc) from exc
        return _question_payload(question, status)

    @app.get("/past-questions")
    def get_past_questions(
        request: Request,
        voter: Voter = Depends(resolve_voter),
        manager: PollManager = Depends(poll_manager_dep),
    ) -> list[dict[str, object]]:
        try:
            past = manager.get_past_questions()
        except StoreUnavailableError:
            logger.warning("Store unavailable while listing past questions")
            return []
        cookie_votes = load_cookie_votes(request, voter.anonymous_id, signing_secret)
        payload = []
        for question, status in past:
            entry = _question_payload(question, status)
            entry["yourVote"] = _vote_payload(manager.lookup_vote(question.id, voter, cookie_votes))
            payload.append(entry)
        return payload

    @app.post("/vote", status_code=201)
    def submit_vote(
        payload: VotePayload,
        request: Request,
        response: Response,
        voter: Voter = Depends(resolve_voter),
        manager: PollManager = Depends(poll_manager_dep),
    ) -> dict[str, object]:
        if not payload.question_id or not payload.answer or not payload.majority_guess:
            raise HTTPException(status_code=400, detail={"error": "Missing required fields"})
        cookie_votes = load_cookie_votes(request, voter.anonymous_id, signing_secret)
        try:
            receipt = manager.submit_vote(
                payload.question_id,
                voter,
                payload.answer,
                payload.majority_guess,
                cookie_votes,
            )
        except PollError as exc:
            raise _to_http_error(exc) from exc
        store_cookie_votes(response, cookie_votes, signing_secret)
        return {
            "success": True,
            "questionId": receipt.record.question_id,
            "storage": receipt.storage,
        }

    @app.get("/results/{question_id}")
    def get_results(
        question_id: str,
        request: Request,
        response: Response,
        voter: Voter = Depends(resolve_voter),
        manager: PollManager = Depends(poll_manager_dep),
    ) -> dict[str, object]:
        cookie_votes = load_cookie_votes(request, voter.anonymous_id, signing_secret)
        try:
            report = manager.get_results(question_id, voter, cookie_votes)
        except PollError as exc:
            raise _to_http_error(exc) from exc
        store_cookie_votes(response, cookie_votes, signing_secret)

        body: dict[str, object] = {
            "question": report.question.question_text,
            "date": report.question.publish_date.isoformat(),
            "locked": report.results.locked,
            "yourVote": _vote_payload(report.your_vote),
        }
        if isinstance(report.results, AvailableResults):
            body["results"] = [
                {"choice": row.choice, "percentage": row.percentage} for row in report.results.rows
            ]
            body["totalVotes"] = report.results.total_votes
            body["majorityAnswer"] = report.majority_answer
        else:
            days = report.results.days_until_results
            body["daysUntilResults"] = days
            body["message"] = f"Results will unlock in {days} day{'' if days == 1 else 's'}"
        return body

    @app.post("/session/sync")
    def sync_session(
        request: Request,
        response: Response,
        voter: Voter = Depends(require_user),
        manager: PollManager = Depends(poll_manager_dep),
    ) -> dict[str, object]:
        cookie_votes = load_cookie_votes(request, voter.anonymous_id, signing_secret)
        try:
            report = manager.sync_identity(voter, cookie_votes)
        except PollError as exc:
            raise _to_http_error(exc) from exc
        store_cookie_votes(response, cookie_votes, signing_secret)
        return {
            "migrated": report.migrated,
            "pending": report.pending,
            "stats": _stats_payload(report.stats),
        }

    @app.get("/stats")
    def get_stats(
        voter: Voter = Depends(require_user),
        manager: PollManager = Depends(poll_manager_dep),
    ) -> dict[str, object]:
        try:
            stats = manager.get_user_stats(voter.user_id)
        except PollError as exc:
            raise _to_http_error(exc) from exc
        return _stats_payload(stats)

    # --- Admin ---

    @app.post("/admin/verify")
    def verify_admin(payload: AdminPasswordPayload) -> dict[str, object]:
        supplied = payload.password or ""
        if secrets.compare_digest(supplied.encode(), admin_password.encode()):
            return {"success": True}
        raise HTTPException(status_code=401, detail={"success": False, "error": "Invalid password"})

    @app.get("/admin/questions", dependencies=[Depends(require_admin)])
    def list_questions(manager: PollManager = Depends(poll_manager_dep)) -> list[dict[str, object]]:
        try:
            listed = manager.list_questions()
        except PollError as exc:
            raise _to_http_error(exc) from exc
        today = manager.today()
        payload = []
        for question, status in listed:
            entry = _question_payload(question, status)
            entry["resultsUnlockDate"] = (
                question.results_unlock_date.isoformat() if question.results_unlock_date else None
            )
            entry["isToday"] = question.publish_date == today
            entry["isFuture"] = question.publish_date > today
            entry["isPast"] = question.publish_date < today
            payload.append(entry)
        return payload

    @app.get("/admin/questions/export", dependencies=[Depends(require_admin)], response_class=PlainTextResponse)
    def export_questions(manager: PollManager = Depends(poll_manager_dep)) -> str:
        try:
            return manager.export_questions_text()
        except PollError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/admin/questions", status_code=201, dependencies=[Depends(require_admin)])
    def create_question(
        payload: AdminQuestionPayload,
        manager: PollManager = Depends(poll_manager_dep),
    ) -> dict[str, object]:
        question = _parse_admin_question(payload)
        try:
            created = manager.add_question(question)
        except PollError as exc:
            raise _to_http_error(exc) from exc
        return {"success": True, "id": created.id}

    @app.put("/admin/questions/{question_id}", dependencies=[Depends(require_admin)])
    def update_question(
        question_id: str,
        payload: AdminQuestionPayload,
        manager: PollManager = Depends(poll_manager_dep),
    ) -> dict[str, object]:
        question = _parse_admin_question(payload)
        try:
            manager.update_question(question_id, question)
        except PollError as exc:
            raise _to_http_error(exc) from exc
        return {"success": True}

    @app.delete("/admin/questions/{question_id}", dependencies=[Depends(require_admin)])
    def delete_question(question_id: str, manager: PollManager = Depends(poll_manager_dep)) -> dict[str, object]:
        try:
            removed = manager.delete_question(question_id)
        except PollError as exc:
            raise _to_http_error(exc) from exc
        return {"success": True, "deletedVotes": removed}

    return app


def run_api_server(app: FastAPI, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Serve the FastAPI app until interrupted."""
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
