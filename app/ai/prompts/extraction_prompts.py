"""
Schedule Extraction Prompts - turn a chat message or a photo into events.

The model answers with a single JSON object:

    {"schedules": [{"title": ..., "description": ..., "location": ...,
                    "startDateTime": "2026-02-04T15:00:00+09:00",
                    "endDateTime": "2026-02-04T16:00:00+09:00"}]}

An empty list means "no schedule in this message".
"""

# ---------------------------------------------------------------------------
# SYSTEM PROMPT
# ---------------------------------------------------------------------------

EXTRACTION_SYSTEM_PROMPT = """You extract calendar events from messages that users forward to a chat bot.

OUTPUT FORMAT (JSON only, no prose):
{
  "schedules": [
    {
      "title": "Sales team meeting",
      "description": "Quarterly review with the sales team",
      "location": "Meeting room A",
      "startDateTime": "2026-02-04T15:00:00+09:00",
      "endDateTime": "2026-02-04T16:00:00+09:00"
    }
  ]
}

RULES:
- Extract every schedule in the message, in the order they appear.
- Resolve relative dates ("tomorrow", "next Friday") against the current time given below.
- Always write ISO 8601 datetimes with a UTC offset.
- If no end time is given, set endDateTime one hour after startDateTime.
- Put places in "location" ("at Shibuya" -> "Shibuya"); omit the field when there is none.
- Keep "title" short; put remaining details in "description".
- If the message contains no schedule at all, return {"schedules": []}.
"""

# ---------------------------------------------------------------------------
# USER PROMPTS
# ---------------------------------------------------------------------------

TEXT_EXTRACTION_PROMPT = """Current time: {current_time}
Time zone: {timezone}

MESSAGE:
{message}
"""

IMAGE_EXTRACTION_PROMPT = """Current time: {current_time}
Time zone: {timezone}

The attached image is a photo or screenshot (flyer, invitation, chat, ticket).
Read all text in it and extract the schedules it describes.
"""
