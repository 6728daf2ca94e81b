"""
LLM API Client

The provider (Groq by default) exposes an OpenAI-compatible API, so we use the
openai library with a custom base_url.

AI is used ONLY for text generation around deterministic data:
- job description generation and skill extraction
- short match justifications for recruiters
- mock interview questions, answer feedback and summaries

Every caller has a deterministic fallback, so this client raises on failure
and never invents defaults itself.
"""
import json
import logging
from typing import List, Optional

from openai import OpenAI

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


class LLMUnavailableError(Exception):
    """Raised when no API key is configured."""


class LLMClient:
    """
    Wrapper for the chat completions API with task-specific methods.
    """

    def __init__(self):
        self.model = settings.llm_model
        self.client: Optional[OpenAI] = None
        if settings.llm_api_key:
            self.client = OpenAI(
                api_key=settings.llm_api_key,
                base_url=settings.llm_base_url,
                timeout=30.0
            )

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _call_api(
        self,
        system_prompt: str,
        user_content: str,
        max_tokens: int = 1000,
        temperature: float = 0.2,
        json_mode: bool = False
    ) -> str:
        """
        Internal method to call the chat completions API.
        Returns raw text response.
        """
        if self.client is None:
            raise LLMUnavailableError("LLM API key is not configured")

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs
        )
        return response.choices[0].message.content or ""

    def _extract_json(self, text: str) -> dict:
        """
        Extract JSON from API response.
        Handles cases where model wraps JSON in markdown code blocks.
        """
        text = text.strip()
        if text.startswith("```json"):
            text = text[7:]
        if text.startswith("```"):
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]

        return json.loads(text.strip())

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def parse_job_description(self, description: str) -> dict:
        """Extract required/preferred skills from free-text job description."""
        system_prompt = "You are a strict information extraction system. Respond only in JSON."
        prompt = f"""Extract skills from the job description and return a JSON object with keys "required_skills" and "preferred_skills".
Only include concrete technical skills, tools, frameworks, languages, or platforms.
Job Description:
{description}"""

        response = self._call_api(system_prompt, prompt, max_tokens=512, json_mode=True)
        return self._extract_json(response)

    def generate_job_description(
        self,
        title: str,
        company: str,
        location: str,
        experience: str,
        required_skills: List[str],
        preferred_skills: List[str]
    ) -> dict:
        """Generate description, responsibilities and qualifications for a posting."""
        system_prompt = (
            "You are an expert HR professional who writes compelling job descriptions. "
            "Always respond with valid JSON only."
        )
        preferred_line = f"- Preferred Skills: {', '.join(preferred_skills)}\n" if preferred_skills else ""
        prompt = f"""Generate a professional and engaging job description.

Job Details:
- Title: {title}
- Company: {company or 'A leading technology company'}
- Location: {location}
- Experience Required: {experience or '0-2 years'}
- Required Skills: {', '.join(required_skills)}
{preferred_line}
Output format:
{{
  "description": "2-3 paragraph job description highlighting the role, team, and impact",
  "responsibilities": ["5-7 specific responsibilities"],
  "qualifications": ["5-7 qualifications"]
}}"""

        response = self._call_api(system_prompt, prompt, max_tokens=2048, temperature=0.7, json_mode=True)
        return self._extract_json(response)

    def generate_match_reason(self, prompt: str) -> str:
        """Short recruiter-facing justification for a candidate match."""
        system_prompt = (
            "You are a recruitment expert who writes concise, data-driven candidate "
            "assessments. Be specific and professional."
        )
        return self._call_api(system_prompt, prompt, max_tokens=256, temperature=0.6).strip()

    # ------------------------------------------------------------------
    # Interviews
    # ------------------------------------------------------------------

    def generate_interview_question(
        self,
        target_role: str,
        difficulty: str,
        question_type: str,
        previous_questions: List[str],
        skills: List[str]
    ) -> dict:
        """Returns {"question": str, "category": str}."""
        system_prompt = "You are an experienced technical interviewer. Respond only in JSON."
        asked = "\n".join(f"- {q}" for q in previous_questions) or "None"
        prompt = f"""Ask ONE {question_type} interview question for a {difficulty} candidate applying for: {target_role or 'Software Engineer'}.
Candidate skills: {', '.join(skills) or 'Not specified'}
Do not repeat any of these questions:
{asked}

Output format: {{"question": "string", "category": "short topic label"}}"""

        response = self._call_api(system_prompt, prompt, max_tokens=300, temperature=0.8, json_mode=True)
        return self._extract_json(response)

    def evaluate_interview_answer(self, question: str, answer: str, target_role: str) -> dict:
        """Returns {"score": 0-10, "strengths": [...], "improvements": [...], "sample_answer": str}."""
        system_prompt = "You are a fair interview coach. Respond only in JSON."
        prompt = f"""Evaluate the candidate's answer for a {target_role or 'Software Engineer'} interview.

Question: {question}
Answer: {answer}

Output format:
{{
  "score": number from 0 to 10,
  "strengths": ["up to 3 items"],
  "improvements": ["up to 3 items"],
  "sample_answer": "a concise model answer"
}}"""

        response = self._call_api(system_prompt, prompt, max_tokens=600, json_mode=True)
        return self._extract_json(response)

    def test_connection(self) -> bool:
        """Test if the LLM API is reachable"""
        try:
            response = self._call_api(
                "You are a test assistant.",
                "Reply with exactly: OK",
                max_tokens=10
            )
            return "OK" in response.upper()
        except Exception as e:
            logger.error(f"LLM connection failed: {e}")
            return False


# Singleton instance
_llm_client: LLMClient = None


def get_llm_client() -> LLMClient:
    """Get or create LLM client (singleton pattern)"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
