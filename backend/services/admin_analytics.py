"""
Admin Analytics - grouping and bucketing of rows fetched for the admin dashboard
"""
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
import csv
import io
import json

from services.quiz_evaluator import round_half_up

TIME_RANGES = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "all": None,
}

ALL_TIME_START = datetime(2000, 1, 1)


def range_start(time_range: str, now: Optional[datetime] = None) -> datetime:
    """Start of the reporting window; raises ValueError for unknown ranges."""
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range '{time_range}'")
    span = TIME_RANGES[time_range]
    if span is None:
        return ALL_TIME_START
    return (now or datetime.now()) - span


def group_by_day(timestamps: Iterable[Optional[datetime]]) -> List[Dict[str, Any]]:
    """Count timestamps per calendar day, oldest day first."""
    counts = Counter(ts.date().isoformat() for ts in timestamps if ts is not None)
    return [{"date": day, "count": counts[day]} for day in sorted(counts)]


def score_buckets(scores: Iterable[int]) -> List[Dict[str, int]]:
    """
    Bucket quiz scores into 0-9, 10-19 ... 90-99 and an exact-100 bucket.

    Empty buckets are dropped.
    """
    counts = Counter()
    for score in scores:
        if score is None:
            continue
        score = max(0, min(100, int(score)))
        counts[100 if score == 100 else (score // 10) * 10] += 1
    return [{"score": low, "count": counts[low]} for low in range(0, 101, 10) if counts[low]]


def count_by(values: Iterable[Optional[str]], label: str) -> List[Dict[str, Any]]:
    """Count values, most common first; missing values count as 'Unknown'."""
    counts = Counter(value or "Unknown" for value in values)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{label: value, "count": count} for value, count in ordered]


def active_user_counts(last_active: Iterable[Optional[datetime]],
                       now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.now()
    windows = {"daily": timedelta(days=1), "weekly": timedelta(days=7), "monthly": timedelta(days=30)}
    seen = [ts for ts in last_active if ts is not None]
    return {name: sum(1 for ts in seen if ts >= now - span) for name, span in windows.items()}


def average(values: Iterable[Optional[float]]) -> int:
    present = [v for v in values if v is not None]
    if not present:
        return 0
    return round_half_up(sum(present) / len(present))


def completion_rates(progress_rows: List[Dict[str, Any]], user_ids: Iterable[int],
                     total_lessons: int) -> List[int]:
    """Per-user share of the catalog completed, as percentages."""
    if not total_lessons:
        return []
    done = Counter(row["user_id"] for row in progress_rows if row.get("completed"))
    return [round_half_up(min(done[uid], total_lessons) / total_lessons * 100) for uid in user_ids]


def build_report(users: List[Dict[str, Any]], progress: List[Dict[str, Any]],
                 activity: List[Dict[str, Any]], total_lessons: int,
                 time_range: str = "30d", now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Aggregate raw rows into the admin analytics report.

    Args:
        users: rows with id, created_at, country, language, last_active
        progress: rows with user_id, score, completed, completed_at
        activity: rows with activity_type, timestamp, duration_seconds
        total_lessons: catalog size used for completion rates
    """
    now = now or datetime.now()
    start = range_start(time_range, now)

    new_users = [u for u in users if u.get("created_at") and u["created_at"] >= start]
    completions = [p for p in progress
                   if p.get("completed") and p.get("completed_at") and p["completed_at"] >= start]
    lesson_durations = [
        a.get("duration_seconds") for a in activity
        if a.get("activity_type") == "lesson_complete" and a.get("timestamp") and a["timestamp"] >= start
    ]

    return {
        "time_range": time_range,
        "generated_at": now.isoformat(),
        "user_growth": group_by_day(u["created_at"] for u in new_users),
        "lesson_completions": group_by_day(p["completed_at"] for p in completions),
        "users_by_country": count_by((u.get("country") for u in new_users), "country"),
        "users_by_language": count_by((u.get("language") for u in new_users), "language"),
        "quiz_scores": score_buckets(p.get("score") for p in completions),
        "active_users": active_user_counts((u.get("last_active") for u in users), now),
        "engagement": {
            "average_session_time": average(lesson_durations),
            "average_completion_rate": average(
                completion_rates(progress, [u["id"] for u in users], total_lessons)
            ),
            "average_quiz_score": average(p.get("score") for p in completions),
        },
    }


def report_to_csv(report: Dict[str, Any]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["# Learn2Go Analytics Export"])
    writer.writerow([f"# Generated: {report['generated_at']}"])
    writer.writerow([f"# Time Range: {report['time_range']}"])

    sections = [
        ("User Growth", ["Date", "New Users"], [(r["date"], r["count"]) for r in report["user_growth"]]),
        ("Lesson Completions", ["Date", "Completions"],
         [(r["date"], r["count"]) for r in report["lesson_completions"]]),
        ("Users by Country", ["Country", "Users"],
         [(r["country"], r["count"]) for r in report["users_by_country"]]),
        ("Users by Language", ["Language", "Users"],
         [(r["language"], r["count"]) for r in report["users_by_language"]]),
        ("Quiz Scores", ["Score Range", "Count"],
         [(f"{r['score']}-{min(r['score'] + 9, 100)}", r["count"]) for r in report["quiz_scores"]]),
    ]
    for title, header, rows in sections:
        writer.writerow([])
        writer.writerow([f"## {title}"])
        writer.writerow(header)
        writer.writerows(rows)

    writer.writerow([])
    writer.writerow(["## Active Users"])
    writer.writerow(["Window", "Users"])
    for window, count in report["active_users"].items():
        writer.writerow([window, count])
    return buffer.getvalue()


def report_to_json(report: Dict[str, Any]) -> str:
    return json.dumps(report, indent=2, default=str)
