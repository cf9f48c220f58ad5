import json
import logging
from datetime import date, timedelta

from pydantic import ValidationError

from shiftboard.config import Settings
from shiftboard.errors import VoiceParseError
from shiftboard.gateway import complete_chat
from shiftboard.models import VoiceShiftRecord

logger = logging.getLogger(__name__)

_WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

SYSTEM_PROMPT = """\
You are a shift entry and deletion assistant. Convert the user's spoken
instruction into JSON shift data.

Today is {today} ({weekday}).

Reply with exactly this JSON object and nothing else:
{{
  "action": "add" or "delete",
  "employeeName": "employee name as spoken",
  "dates": ["YYYY-MM-DD", ...],
  "startTime": "HH:MM",
  "endTime": "HH:MM",
  "isOff": false
}}

Rules:
1. action is "delete" when the user asks to delete, remove or cancel shifts,
   otherwise "add".
2. employeeName: keep exactly what was said ("中川" stays "中川",
   "中川太郎" stays "中川太郎").
3. dates: resolve relative dates against today. "every Monday this month"
   lists every Monday of this month; "tomorrow" is {tomorrow}; "everything"
   or "all" is an empty list (delete every shift of that employee).
4. times: "8 to 15" gives startTime "08:00", endTime "15:00".
5. a day off ("休み", "off", "day off") sets isOff true with empty times.

Examples:
input: "中川・今月の毎週月曜日から金曜日まで8時15時"
output: {{"action":"add","employeeName":"中川","dates":["2025-11-03","2025-11-04","..."],"startTime":"08:00","endTime":"15:00","isOff":false}}
input: "田中・明日休み"
output: {{"action":"add","employeeName":"田中","dates":["{tomorrow}"],"startTime":"","endTime":"","isOff":true}}
input: "田中・全部削除"
output: {{"action":"delete","employeeName":"田中","dates":[],"startTime":"","endTime":"","isOff":false}}
"""


def build_messages(text: str, today: date) -> list[dict[str, str]]:
    system = SYSTEM_PROMPT.format(
        today=today.isoformat(),
        weekday=_WEEKDAY_NAMES[today.weekday()],
        tomorrow=(today + timedelta(days=1)).isoformat(),
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": f"Convert this input to JSON: {text}"},
    ]


def strip_code_fence(content: str) -> str:
    """Remove a surrounding ``` fence (optionally tagged json) from content."""
    text = content.strip()
    if not text.startswith("```"):
        return text
    lines = text.split("\n")
    body = lines[1:-1] if lines[-1].strip().startswith("```") else lines[1:]
    text = "\n".join(body).strip()
    # a bare ``` line followed by "json" on the next one
    if text.startswith("json"):
        text = text[4:].strip()
    return text


def record_from_content(content: str) -> VoiceShiftRecord:
    payload = strip_code_fence(content)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.warning("gateway returned non-JSON content: %r", content[:200])
        raise VoiceParseError("could not read the parsed shift data") from exc

    if not isinstance(data, dict):
        raise VoiceParseError("invalid shift data format")
    # the model sends "" for absent times
    for key in ("startTime", "endTime"):
        if data.get(key) == "":
            data[key] = None
    try:
        return VoiceShiftRecord.model_validate(data)
    except ValidationError as exc:
        logger.warning("invalid shift data from gateway: %s", exc)
        raise VoiceParseError("invalid shift data format") from exc


async def parse_voice_shift(
    text: str, today: date, settings: Settings
) -> VoiceShiftRecord:
    """Turn a transcript into a VoiceShiftRecord via the chat gateway."""
    if not text or not text.strip():
        raise VoiceParseError("transcript is empty")

    content = await complete_chat(build_messages(text.strip(), today), settings)
    record = record_from_content(content)
    logger.info(
        "parsed voice shift: action=%s employee=%s dates=%d",
        record.action,
        record.employee_name,
        len(record.dates),
    )
    return record
