from __future__ import annotations

"""Short-form AI text for the job tracker and daily logs.

Every helper has a deterministic fallback so the dashboard keeps working
without a configured provider or when the provider call fails.
"""

import json
import logging
import re
from collections import Counter
from typing import Iterable, List, Optional, Sequence

from ..domain.job_models import JobApplication, JobStatus
from ..domain.log_models import DailyLog
from ..observability.metrics import AI_REQUESTS
from .llm import LLMError, complete
from .model_router import NoProviderAvailable


logger = logging.getLogger("ganadash.insights_ai")

NO_JOBS_MESSAGE = (
    "No job applications found. Start by adding your first job application to get personalized insights!"
)

FALLBACK_CHALLENGES = [
    "Complete one important task before checking social media",
    "Take a 15-minute walk outside",
    "Learn something new for 30 minutes",
    "Connect with someone you care about",
    "Do one thing that scares you a little",
]

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _ask(feature: str, prompt: str) -> Optional[str]:
    """Return the model text or ``None`` when AI is unavailable or failed."""
    try:
        reply = complete("insight", [{"role": "user", "content": prompt}])
    except NoProviderAvailable:
        AI_REQUESTS.labels(feature=feature, outcome="unconfigured").inc()
        return None
    except LLMError:
        logger.exception("AI %s request failed; using fallback", feature)
        AI_REQUESTS.labels(feature=feature, outcome="error").inc()
        return None
    AI_REQUESTS.labels(feature=feature, outcome="ok").inc()
    return reply["text"].strip()


# ---------------------------------------------------------------------------
# Job tracker
# ---------------------------------------------------------------------------

def job_statistics(jobs: Sequence[JobApplication]) -> str:
    by_status = Counter(j.status.value for j in jobs)
    total = len(jobs)
    responded = sum(by_status[s] for s in ("screening", "interview", "offer"))
    rate = round(100 * responded / total) if total else 0
    lines = [f"You have tracked {total} application{'s' if total != 1 else ''}."]
    lines.append(", ".join(f"{count} {status}" for status, count in sorted(by_status.items())) + ".")
    lines.append(f"Response rate: {rate}% of applications moved past the applied stage.")
    if by_status["offer"]:
        lines.append(f"Congratulations on {by_status['offer']} offer(s)!")
    elif by_status["interview"]:
        lines.append("Prepare for your upcoming interviews and follow up within 48 hours afterwards.")
    else:
        lines.append("Follow up on applications older than a week and tailor your resume to each role.")
    return " ".join(lines)


def build_insights_prompt(jobs: Sequence[JobApplication]) -> str:
    rows = "\n".join(
        f"- {j.company} | {j.position} | status={j.status.value} | priority={j.priority.value} | applied={j.application_date.date().isoformat()}"
        for j in jobs
    )
    return (
        "Analyze these job applications and give concise, actionable insights about the search: "
        "response rates, patterns across companies or roles, and next steps.\n\n"
        f"Applications:\n{rows}\n\n"
        "Keep it under 200 words."
    )


def generate_job_insights(jobs: Sequence[JobApplication]) -> str:
    if not jobs:
        return NO_JOBS_MESSAGE
    return _ask("job_insights", build_insights_prompt(jobs)) or job_statistics(jobs)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def job_challenges(jobs: Sequence[JobApplication]) -> List[str]:
    """Daily challenges derived from the job applications logged on one day."""
    if not jobs:
        return [
            "Apply to 3 new job positions",
            "Update LinkedIn profile and network",
            "Practice coding/interview questions for 30 minutes",
        ]
    challenges = [f"Follow up on {_plural(len(jobs), 'job application')}"]
    interviews = sum(1 for j in jobs if j.status == JobStatus.INTERVIEW)
    if interviews:
        challenges.append(f"Prepare for {_plural(interviews, 'upcoming interview')}")
    challenges.append("Research one new company to apply to")
    challenges.append("Update resume or LinkedIn profile")
    return challenges


def fallback_application_suggestions(company: str, position: str) -> str:
    return "\n".join(
        [
            f"- Research {company}'s recent news, products and culture before any conversation.",
            f"- Tailor your resume to the {position} description and mirror its key terms.",
            "- Quantify two or three achievements that map directly to the role.",
            f"- Find someone at {company} on LinkedIn and ask for a short informational chat.",
            "- Follow up politely one week after applying if you have not heard back.",
        ]
    )


def suggest_application_improvements(company: str, position: str, notes: Optional[str] = None) -> str:
    prompt = (
        f"I am applying for the {position} role at {company}.\n"
        + (f"My notes so far: {notes}\n" if notes else "")
        + "Suggest 5 specific ways to strengthen this application and stand out. Use a bullet list."
    )
    return _ask("job_suggestions", prompt) or fallback_application_suggestions(company, position)


# ---------------------------------------------------------------------------
# Daily logs
# ---------------------------------------------------------------------------

def fallback_day_summary(log: DailyLog) -> str:
    done = sum(1 for c in log.challenges if c.completed)
    return (
        f"Reflecting on {log.date.strftime('%a %b %d %Y')}: You set {len(log.challenges)} challenges and "
        f"completed {done} of them. Every step forward counts, and your {len(log.entries)} entries "
        "throughout the day show your commitment to growth. Keep pushing forward!"
    )


def build_summary_prompt(log: DailyLog) -> str:
    challenges = "\n".join(
        f"- {c.text} {'(COMPLETED)' if c.completed else '(NOT COMPLETED)'}" for c in log.challenges
    )
    entries = "\n".join(
        f"[{e.timestamp.strftime('%H:%M')}] {e.type.upper()}: {e.content}" for e in log.entries
    )
    done = sum(1 for c in log.challenges if c.completed)
    return (
        f"You're helping someone reflect on their day. Here's what happened on {log.date.strftime('%a %b %d %Y')}:\n\n"
        f"CHALLENGES SET:\n{challenges}\n\n"
        f"DAILY ENTRIES:\n{entries}\n\n"
        f"STATS:\n- Completed: {done}/{len(log.challenges)} challenges\n- Total entries: {len(log.entries)}\n\n"
        "Create a thoughtful, encouraging daily reflection that celebrates what was accomplished, "
        "draws insights from the entries and offers gentle motivation for incomplete challenges. "
        "Keep it personal and around 150-200 words, written in second person."
    )


def generate_day_summary(log: DailyLog) -> str:
    return _ask("day_summary", build_summary_prompt(log)) or fallback_day_summary(log)


def parse_challenge_list(text: str) -> List[str]:
    cleaned = _FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return []
    if not isinstance(data, list):
        return []
    return [str(item).strip() for item in data if str(item).strip()]


def suggest_challenges(previous: Iterable[str] = ()) -> List[str]:
    previous = [p for p in previous if p][:20]
    avoid = ""
    if previous:
        avoid = "Previous challenges to avoid repeating:\n" + "\n".join(f"- {p}" for p in previous) + "\n\n"
    prompt = (
        "Suggest 5 daily challenges for personal growth and productivity.\n\n"
        f"{avoid}"
        "Make them specific, achievable in one day and spread across productivity, health, learning, "
        "creativity and relationships.\n\n"
        'Return only a JSON array of strings: ["challenge 1", "challenge 2", "challenge 3", "challenge 4", "challenge 5"]'
    )
    text = _ask("challenge_suggestions", prompt)
    suggestions = parse_challenge_list(text) if text else []
    return suggestions[:5] if suggestions else list(FALLBACK_CHALLENGES)
