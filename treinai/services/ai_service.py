"""
treinai/services/ai_service.py

Purpose: LLM content generation (OpenAI chat completions)

- Onboarding summaries -> training goal hint
- Full weekly workout plans from a goal
- Single workouts / exercises from a name (strict JSON with success flag)
- Conversational personal-trainer replies
- Nutrition assistant replies carrying a meal plan
- Reports total_tokens for usage accounting
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from treinai.core.config import settings
from treinai.core.exceptions import ExternalServiceError
from treinai.core.logging import get_logger
from utils.json_utils import extract_json_object

logger = get_logger(__name__)


ONBOARDING_PROMPT = """You receive a user's answers to a fitness questionnaire.
If the user practices a sport, focus the summary on that sport.
Describe the person's goal clearly, in the user's language, and return ONE JSON object with:
- "summary": string (short summary),
- "objective_hint": string (one word: hipertrofia, emagrecimento, condicionamento, saude, forca, resistencia).
Return only the JSON."""

PLAN_PROMPT = """You are a coach who builds highly specific training plans for the client's goal,
always picking the exercises that best serve that goal.
Find how many days per week the client wants to train and build one workout per day.
Return **only valid JSON** with this shape:
{
  "workouts": [
    {
      "name": "string",
      "order": number,
      "description": "string",
      "exercises": [
        {"order": number, "muscle": "string", "name": "string", "instructions": "string",
         "sets": number, "reps": number, "rpe": number}
      ]
    }
  ]
}
rpe is the rate of perceived exertion from 1 (very light) to 10 (maximal effort)."""

WORKOUT_PROMPT = """You are a strict JSON generator. Always answer with ONLY one valid JSON object.
If you can build a valid workout for the given name:
{"success": true, "workout": {"name": "string", "description": "string",
  "exercises": [{"order": number, "muscle": "string", "name": "string", "instructions": "string",
                 "sets": number, "reps": number, "rpe": number}]}}
If you cannot (for any reason):
{"success": false, "reason": "short explanation, e.g. 'ambiguous name'"}
Use coherent types. No comments, no HTML, no extra text."""

EXERCISE_PROMPT = """You are a strict JSON generator. Always answer with ONLY one valid JSON object.
If you can find/build a valid exercise for the given name:
{"success": true, "exercise": {"muscle": "string", "name": "string", "instructions": "string",
  "sets": number, "reps": number, "rpe": number}}
If it does not exist or you cannot build it:
{"success": false, "reason": "short explanation"}
Return pure JSON with correct types."""

TRAINER_PROMPT = """You are a personal trainer talking to your client. You are formal and never say nonsense,
but you are human and can joke; if the client goes far off topic, bring them back to training.
Answer casually with emojis when fitting, and seriously when the subject is serious.
Never produce long content such as full workouts: another assistant does that. When asked to
generate something, explain that you can only talk and explain.
If the client asks about something said before, use the conversation history."""

NUTRITION_PROMPT = """You are a virtual nutritionist. The client sends a message plus their current nutrition plan.
ANSWER ONLY WITH ONE VALID JSON OBJECT:
{
  "success": true|false,
  "msg": "what you say to the client",
  "nutrition": {
    "restrictions": "what the client should avoid",
    "meal_plan": [{"time_of_day": "HH:MM", "content": "main meal | alternatives... (why)"}]
  }
}
Rules:
- Only change meal_plan when the client explicitly asks for changes; if it is empty, create one for the client.
- Answer the client's message; if it is not about nutrition, explain you only discuss nutrition.
- If you cannot produce a valid plan, return {"success": false, "msg": "short reason"}.
- Always offer meal alternatives or the purpose of the meal. Be friendly and use emojis.
- No extra properties, no text outside the JSON."""


@dataclass
class AICompletion:
    """Raw text returned by the model plus its token cost."""
    text: Optional[str]
    total_tokens: int = 0

    @property
    def parsed(self) -> Optional[Dict[str, Any]]:
        return extract_json_object(self.text)


class AIService:
    """Thin async wrapper over the OpenAI chat completions API."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        if client is None and settings.OPENAI_API_KEY:
            client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                http_client=httpx.AsyncClient(timeout=settings.OPENAI_TIMEOUT, follow_redirects=True),
            )
        self.client = client
        self.model = model or settings.OPENAI_MODEL

    def is_configured(self) -> bool:
        return self.client is not None

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ) -> AICompletion:
        """
        Runs one chat completion.

        Raises:
            ExternalServiceError: client missing or provider failure
        """
        if self.client is None:
            raise ExternalServiceError("AI provider is not configured", code="AI_UNAVAILABLE")

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise ExternalServiceError("AI provider request failed", code="AI_UNAVAILABLE") from e

        text = response.choices[0].message.content if response.choices else None
        tokens = int(getattr(response.usage, "total_tokens", 0) or 0) if response.usage else 0

        logger.debug("AI completion finished", extra={"total_tokens": tokens})
        return AICompletion(text=text, total_tokens=tokens)

    async def summarize_onboarding(self, answers: str) -> AICompletion:
        return await self.complete(
            [
                {"role": "system", "content": ONBOARDING_PROMPT},
                {"role": "user", "content": f"User answers: {answers}"},
            ],
            max_tokens=300,
        )

    async def generate_plan(self, goal: str) -> AICompletion:
        return await self.complete([
            {"role": "system", "content": PLAN_PROMPT},
            {"role": "user", "content": f"Goal >> {goal}"},
        ])

    async def generate_workout(self, name: str) -> AICompletion:
        return await self.complete([
            {"role": "system", "content": WORKOUT_PROMPT},
            {"role": "user", "content": f"Workout name: {name.strip()}"},
        ])

    async def generate_exercise(self, name: str) -> AICompletion:
        return await self.complete([
            {"role": "system", "content": EXERCISE_PROMPT},
            {"role": "user", "content": f"Exercise name: {name.strip()}"},
        ])

    async def trainer_reply(self, history: List[Dict[str, str]], message: str) -> AICompletion:
        """
        Continues a trainer conversation. History roles are `ia` (assistant) or `user`.
        """
        messages = [{"role": "system", "content": TRAINER_PROMPT}]
        for turn in history:
            role = "assistant" if turn.get("role") == "ia" else "user"
            messages.append({"role": role, "content": str(turn.get("content", ""))})
        messages.append({"role": "user", "content": message})
        return await self.complete(messages)

    async def nutrition_reply(self, message: str, nutrition: Dict[str, Any], client_info: Dict[str, Any]) -> AICompletion:
        content = (
            f"Client message: {message}\n"
            f"Client plan: {json.dumps(nutrition, default=str, ensure_ascii=False)}\n"
            f"Client info: {json.dumps(client_info, default=str, ensure_ascii=False)}"
        )
        return await self.complete([
            {"role": "system", "content": NUTRITION_PROMPT},
            {"role": "user", "content": content},
        ])


_ai_service: Optional[AIService] = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton (FastAPI dependency)."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service


async def close_ai_service():
    """Close the AI service's HTTP client."""
    global _ai_service
    if _ai_service and _ai_service.client is not None:
        await _ai_service.client.close()
    _ai_service = None
