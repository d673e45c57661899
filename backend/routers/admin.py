"""
Admin Router - statistics, analytics, user and content management, system settings
"""
from fastapi import APIRouter, HTTPException, Depends, Query, Response
from datetime import datetime, date, timedelta
import json
import logging

from database import get_db_cursor
from dependencies import NARRATION_KEY_SETTING, get_settings_store
from models.admin import SystemSettings, SystemSettingsUpdate
from models.lesson import LessonCreate, LessonUpdate, QuizQuestionCreate
from models.activity import ActivityEvent
from models.user import User, UserAdminUpdate
from services.admin_analytics import TIME_RANGES, build_report, report_to_csv, report_to_json
from services.stores import SettingsStore, StoreError
from utils.encryption import decrypt_secret, encrypt_secret, mask_secret
from utils.jwt_handler import get_admin_user
from utils.validators import validate_country, validate_language, sanitize_string

router = APIRouter()
logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() if value else None


# -- Statistics and analytics ------------------------------------------

@router.get("/stats")
async def get_admin_stats(current_user: dict = Depends(get_admin_user)):
    """Headline numbers for the admin dashboard"""
    try:
        with get_db_cursor() as cursor:
            cursor.execute("SELECT COUNT(*) as count FROM users")
            total_users = cursor.fetchone()["count"]

            cursor.execute(
                """SELECT COUNT(*) as count FROM users
                   WHERE last_active >= DATE_SUB(NOW(), INTERVAL 7 DAY)"""
            )
            active_users = cursor.fetchone()["count"]

            cursor.execute(
                """SELECT COUNT(*) as count FROM users
                   WHERE created_at >= DATE_SUB(NOW(), INTERVAL 7 DAY)"""
            )
            new_users = cursor.fetchone()["count"]

            cursor.execute("SELECT COUNT(*) as count FROM user_progress WHERE completed = TRUE")
            completions = cursor.fetchone()["count"]

            cursor.execute("SELECT AVG(score) as avg FROM user_progress")
            avg_score = cursor.fetchone()["avg"] or 0

            cursor.execute("SELECT COUNT(*) as count FROM lessons")
            lessons = cursor.fetchone()["count"]

            cursor.execute("SELECT COUNT(*) as count FROM quiz_questions")
            questions = cursor.fetchone()["count"]

            daily_activity = []
            for i in range(7):
                day_date = date.today() - timedelta(days=6 - i)
                cursor.execute(
                    """SELECT COUNT(*) as events, COUNT(DISTINCT user_id) as users
                       FROM user_activity_logs
                       WHERE DATE(timestamp) = %s""",
                    (day_date,)
                )
                day_stats = cursor.fetchone()
                daily_activity.append({
                    "date": day_date.isoformat(),
                    "events": day_stats["events"] or 0,
                    "users": day_stats["users"] or 0
                })

            return {
                "users": {
                    "total": total_users,
                    "active_7d": active_users,
                    "new_7d": new_users
                },
                "learning": {
                    "lessons_completed": completions,
                    "average_score": round(float(avg_score), 1)
                },
                "content": {
                    "lessons": lessons,
                    "questions": questions
                },
                "daily_activity": daily_activity,
                "generated_at": datetime.now().isoformat()
            }
    except Exception as e:
        logger.error(f"Get admin stats error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load statistics")


def _load_report(time_range: str) -> dict:
    if time_range not in TIME_RANGES:
        raise HTTPException(
            status_code=400,
            detail=f"range must be one of {', '.join(TIME_RANGES)}"
        )
    try:
        with get_db_cursor() as cursor:
            cursor.execute(
                "SELECT id, created_at, country, language, last_active FROM users"
            )
            users = cursor.fetchall()
            cursor.execute(
                "SELECT user_id, score, completed, completed_at FROM user_progress"
            )
            progress = cursor.fetchall()
            cursor.execute(
                """SELECT activity_type, timestamp, duration_seconds
                   FROM user_activity_logs WHERE activity_type = 'lesson_complete'"""
            )
            activity = cursor.fetchall()
            cursor.execute("SELECT COUNT(*) as count FROM lessons")
            total_lessons = cursor.fetchone()["count"]
    except Exception as e:
        logger.error(f"Analytics query error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load analytics")
    return build_report(users, progress, activity, total_lessons, time_range)


@router.get("/analytics")
async def get_analytics(
    time_range: str = Query(default="30d", alias="range"),
    current_user: dict = Depends(get_admin_user)
):
    """Growth, completions, demographics and engagement over a time window"""
    return _load_report(time_range)


@router.get("/analytics/export")
async def export_analytics(
    time_range: str = Query(default="30d", alias="range"),
    export_format: str = Query(default="csv", alias="format"),
    current_user: dict = Depends(get_admin_user)
):
    """Download the analytics report as CSV or JSON"""
    if export_format not in ("csv", "json"):
        raise HTTPException(status_code=400, detail="format must be csv or json")
    report = _load_report(time_range)
    stamp = datetime.now().strftime("%Y-%m-%d")
    if export_format == "csv":
        body, media_type = report_to_csv(report), "text/csv"
    else:
        body, media_type = report_to_json(report), "application/json"
    logger.info(f"Admin {current_user['user_id']} exported {time_range} analytics as {export_format}")
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="learn2go-analytics-{stamp}.{export_format}"'}
    )


# -- Users -------------------------------------------------------------

@router.get("/users")
async def get_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: str = "",
    current_user: dict = Depends(get_admin_user)
):
    """Paginated user list, newest first"""
    try:
        with get_db_cursor() as cursor:
            offset = (page - 1) * limit
            where, params = "", ()
            if search:
                where = "WHERE u.email LIKE %s OR u.username LIKE %s"
                params = (f"%{search}%", f"%{search}%")

            cursor.execute(f"SELECT COUNT(*) as total FROM users u {where}", params)
            total = cursor.fetchone()["total"]

            cursor.execute(
                f"""SELECT u.id, u.email, u.username, u.role, u.language, u.country,
                           u.is_active, u.created_at, u.last_active, u.last_lesson_completed,
                           (SELECT COUNT(*) FROM user_progress p
                            WHERE p.user_id = u.id AND p.completed = TRUE) as lessons_completed
                    FROM users u {where}
                    ORDER BY u.created_at DESC
                    LIMIT %s OFFSET %s""",
                params + (limit, offset)
            )
            users = cursor.fetchall()

            return {
                "users": [
                    {
                        **User.model_validate(u).model_dump(mode="json"),
                        "lessons_completed": u["lessons_completed"],
                        "last_lesson_completed": u["last_lesson_completed"]
                    }
                    for u in users
                ],
                "total": total,
                "page": page,
                "pages": (total + limit - 1) // limit
            }
    except Exception as e:
        logger.error(f"Get users error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load users")


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    update: UserAdminUpdate,
    current_user: dict = Depends(get_admin_user)
):
    """Change a user's role, status or locale"""
    if user_id == current_user["user_id"] and (update.role == "student" or update.is_active is False):
        raise HTTPException(status_code=400, detail="You cannot demote or disable your own account")
    if update.language is not None and not validate_language(update.language):
        raise HTTPException(status_code=400, detail="Unsupported language")
    if update.country is not None and not validate_country(update.country):
        raise HTTPException(status_code=400, detail="Invalid country code")

    fields = update.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="Nothing to update")
    if "role" in fields:
        fields["role"] = fields["role"].value
    if "language" in fields:
        fields["language"] = fields["language"].lower()
    if "country" in fields:
        fields["country"] = fields["country"].upper()

    try:
        with get_db_cursor() as cursor:
            cursor.execute("SELECT id FROM users WHERE id = %s", (user_id,))
            if not cursor.fetchone():
                raise HTTPException(status_code=404, detail="User not found")
            assignments = ", ".join(f"{column} = %s" for column in fields)
            cursor.execute(
                f"UPDATE users SET {assignments} WHERE id = %s",
                tuple(fields.values()) + (user_id,)
            )
            logger.info(f"Admin {current_user['user_id']} updated user {user_id}: {fields}")
            return {"success": True, "message": "User updated"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Update user error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update user")


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, current_user: dict = Depends(get_admin_user)):
    """Delete a user with their progress and activity"""
    if user_id == current_user["user_id"]:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    try:
        with get_db_cursor() as cursor:
            cursor.execute("DELETE FROM users WHERE id = %s", (user_id,))
            if cursor.rowcount == 0:
                raise HTTPException(status_code=404, detail="User not found")
            logger.info(f"Admin {current_user['user_id']} deleted user {user_id}")
            return {"success": True, "message": "User deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Delete user error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete user")


# -- Content -----------------------------------------------------------

def _insert_questions(cursor, lesson_id: int, questions, start: int = 0):
    for position, q in enumerate(questions, start=start):
        cursor.execute(
            """INSERT INTO quiz_questions
               (lesson_id, position, question, options, correct_answer, explanation)
               VALUES (%s, %s, %s, %s, %s, %s)""",
            (lesson_id, position, sanitize_string(q.question), json.dumps(q.options),
             q.correct_answer, q.explanation)
        )


@router.get("/content")
async def get_content(
    language: str = "",
    country: str = "",
    current_user: dict = Depends(get_admin_user)
):
    """Lessons with their question counts, optionally filtered by locale"""
    try:
        with get_db_cursor() as cursor:
            filters, params = [], []
            if language:
                filters.append("l.language = %s")
                params.append(language.lower())
            if country:
                filters.append("l.country = %s")
                params.append(country.upper())
            where = f"WHERE {' AND '.join(filters)}" if filters else ""
            cursor.execute(
                f"""SELECT l.id, l.title, l.description, l.level, l.language, l.country,
                           l.category, l.created_at, COUNT(q.id) as questions_count
                    FROM lessons l
                    LEFT JOIN quiz_questions q ON q.lesson_id = l.id
                    {where}
                    GROUP BY l.id
                    ORDER BY l.country, l.language, l.level, l.id""",
                tuple(params)
            )
            lessons = cursor.fetchall()
            return {"lessons": [{**l, "created_at": _iso(l["created_at"])} for l in lessons]}
    except Exception as e:
        logger.error(f"Get content error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load content")


@router.post("/content/lessons")
async def create_lesson(lesson: LessonCreate, current_user: dict = Depends(get_admin_user)):
    """Create a lesson together with its quiz questions"""
    if not validate_language(lesson.language) or not validate_country(lesson.country):
        raise HTTPException(status_code=400, detail="Invalid lesson locale")
    try:
        with get_db_cursor() as cursor:
            cursor.execute(
                """INSERT INTO lessons
                   (title, description, content, level, language, country, category, tags, created_at)
                   VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)""",
                (sanitize_string(lesson.title), lesson.description, lesson.content,
                 lesson.level, lesson.language.lower(), lesson.country.upper(),
                 lesson.category, json.dumps(lesson.tags), datetime.now())
            )
            lesson_id = cursor.lastrowid
            _insert_questions(cursor, lesson_id, lesson.quiz_questions)
            logger.info(f"Admin {current_user['user_id']} created lesson {lesson_id}")
            return {"success": True, "id": str(lesson_id)}
    except Exception as e:
        logger.error(f"Create lesson error: {e}")
        raise HTTPException(status_code=500, detail="Failed to create lesson")


@router.put("/content/lessons/{lesson_id}")
async def update_lesson(lesson_id: int, update: LessonUpdate,
                        current_user: dict = Depends(get_admin_user)):
    fields = update.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="Nothing to update")
    if "tags" in fields:
        fields["tags"] = json.dumps(fields["tags"])
    if "language" in fields:
        fields["language"] = fields["language"].lower()
    if "country" in fields:
        fields["country"] = fields["country"].upper()
    try:
        with get_db_cursor() as cursor:
            assignments = ", ".join(f"{column} = %s" for column in fields)
            cursor.execute(
                f"UPDATE lessons SET {assignments} WHERE id = %s",
                tuple(fields.values()) + (lesson_id,)
            )
            if cursor.rowcount == 0:
                cursor.execute("SELECT id FROM lessons WHERE id = %s", (lesson_id,))
                if not cursor.fetchone():
                    raise HTTPException(status_code=404, detail="Lesson not found")
            return {"success": True, "message": "Lesson updated"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Update lesson error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update lesson")


@router.delete("/content/lessons/{lesson_id}")
async def delete_lesson(lesson_id: int, current_user: dict = Depends(get_admin_user)):
    """Delete a lesson; its questions and progress rows cascade"""
    try:
        with get_db_cursor() as cursor:
            cursor.execute("DELETE FROM lessons WHERE id = %s", (lesson_id,))
            if cursor.rowcount == 0:
                raise HTTPException(status_code=404, detail="Lesson not found")
            logger.info(f"Admin {current_user['user_id']} deleted lesson {lesson_id}")
            return {"success": True, "message": "Lesson deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Delete lesson error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete lesson")


@router.post("/content/lessons/{lesson_id}/questions")
async def add_question(lesson_id: int, question: QuizQuestionCreate,
                       current_user: dict = Depends(get_admin_user)):
    """Append a question to the end of a lesson's quiz"""
    try:
        with get_db_cursor() as cursor:
            cursor.execute("SELECT id FROM lessons WHERE id = %s", (lesson_id,))
            if not cursor.fetchone():
                raise HTTPException(status_code=404, detail="Lesson not found")
            cursor.execute(
                "SELECT COALESCE(MAX(position) + 1, 0) as next FROM quiz_questions WHERE lesson_id = %s",
                (lesson_id,)
            )
            _insert_questions(cursor, lesson_id, [question], start=cursor.fetchone()["next"])
            return {"success": True, "id": str(cursor.lastrowid)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Add question error: {e}")
        raise HTTPException(status_code=500, detail="Failed to add question")


@router.put("/content/questions/{question_id}")
async def update_question(question_id: int, question: QuizQuestionCreate,
                          current_user: dict = Depends(get_admin_user)):
    try:
        with get_db_cursor() as cursor:
            cursor.execute(
                """UPDATE quiz_questions
                   SET question = %s, options = %s, correct_answer = %s, explanation = %s
                   WHERE id = %s""",
                (sanitize_string(question.question), json.dumps(question.options),
                 question.correct_answer, question.explanation, question_id)
            )
            if cursor.rowcount == 0:
                cursor.execute("SELECT id FROM quiz_questions WHERE id = %s", (question_id,))
                if not cursor.fetchone():
                    raise HTTPException(status_code=404, detail="Question not found")
            return {"success": True, "message": "Question updated"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Update question error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update question")


@router.delete("/content/questions/{question_id}")
async def delete_question(question_id: int, current_user: dict = Depends(get_admin_user)):
    try:
        with get_db_cursor() as cursor:
            cursor.execute("DELETE FROM quiz_questions WHERE id = %s", (question_id,))
            if cursor.rowcount == 0:
                raise HTTPException(status_code=404, detail="Question not found")
            return {"success": True, "message": "Question deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Delete question error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete question")


# -- Activity ----------------------------------------------------------

@router.get("/activity")
async def get_activity(
    limit: int = Query(default=50, ge=1, le=500),
    user_id: int = None,
    activity_type: str = None,
    current_user: dict = Depends(get_admin_user)
):
    """Most recent activity log entries"""
    try:
        with get_db_cursor() as cursor:
            filters, params = [], []
            if user_id is not None:
                filters.append("a.user_id = %s")
                params.append(user_id)
            if activity_type:
                filters.append("a.activity_type = %s")
                params.append(activity_type)
            where = f"WHERE {' AND '.join(filters)}" if filters else ""
            cursor.execute(
                f"""SELECT a.id, a.user_id, u.username, a.activity_type, a.activity_details,
                           a.timestamp, a.duration_seconds, a.score, a.page_url
                    FROM user_activity_logs a
                    LEFT JOIN users u ON u.id = a.user_id
                    {where}
                    ORDER BY a.timestamp DESC
                    LIMIT %s""",
                tuple(params) + (limit,)
            )
            rows = cursor.fetchall()

        activity = []
        for row in rows:
            details = row["activity_details"]
            if isinstance(details, (str, bytes)):
                details = json.loads(details)
            event = ActivityEvent(
                id=row["id"],
                user_id=row["user_id"],
                activity_type=row["activity_type"],
                details=details or {},
                timestamp=row["timestamp"],
                duration_seconds=row["duration_seconds"],
                score=row["score"],
                page_url=row["page_url"]
            )
            activity.append({**event.model_dump(mode="json"), "username": row["username"]})
        return {"activity": activity}
    except Exception as e:
        logger.error(f"Get activity error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load activity")


# -- System settings ---------------------------------------------------

def _settings_view(stored: dict) -> dict:
    values = SystemSettings(**{
        key: value for key, value in stored.items()
        if key in SystemSettings.model_fields and value is not None
    })
    key = decrypt_secret(stored.get(NARRATION_KEY_SETTING) or "")
    return {
        **values.model_dump(),
        "narration_configured": bool(key),
        "narration_key_masked": mask_secret(key) if key else None
    }


@router.get("/settings")
async def get_system_settings(
    current_user: dict = Depends(get_admin_user),
    settings_store: SettingsStore = Depends(get_settings_store)
):
    """Platform settings with defaults filled in; secrets are masked"""
    try:
        stored = await settings_store.get_settings()
    except StoreError as e:
        logger.error(f"Get settings error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load settings")
    return _settings_view(stored)


@router.put("/settings")
async def update_system_settings(
    update: SystemSettingsUpdate,
    current_user: dict = Depends(get_admin_user),
    settings_store: SettingsStore = Depends(get_settings_store)
):
    changes = update.model_dump(exclude_none=True)
    if "default_language" in changes and not validate_language(changes["default_language"]):
        raise HTTPException(status_code=400, detail="Unsupported language")
    if "default_country" in changes and not validate_country(changes["default_country"]):
        raise HTTPException(status_code=400, detail="Invalid country code")
    if NARRATION_KEY_SETTING in changes:
        changes[NARRATION_KEY_SETTING] = encrypt_secret(changes[NARRATION_KEY_SETTING])
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")

    try:
        await settings_store.put_settings(changes)
        stored = await settings_store.get_settings()
    except StoreError as e:
        logger.error(f"Update settings error: {e}")
        raise HTTPException(status_code=500, detail="Failed to save settings")
    logger.info(f"Admin {current_user['user_id']} updated settings: {sorted(changes)}")
    return _settings_view(stored)
