"""
Grading service boundary.

Algorithm explanations and code submissions are judged by an external
service (serverless ``verifyAlgorithm`` / ``verifyCode`` functions). The
progression engine only consumes verdicts; tests inject a deterministic grader.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from levelup.config import get_settings
from levelup.db.models import Problem
from levelup.errors import GradingUnavailable

logger = structlog.get_logger()


@dataclass(frozen=True)
class AlgorithmVerdict:
    is_correct: bool
    feedback: str = ""
    suggestions: str = ""


@dataclass(frozen=True)
class CodeVerdict:
    all_tests_passed: bool
    test_results: list[dict[str, Any]] = field(default_factory=list)
    feedback: str = ""


class GradingService(ABC):
    """Judges algorithm explanations and code against a problem's test cases."""

    @abstractmethod
    async def verify_algorithm(self, problem: Problem, explanation: str) -> AlgorithmVerdict:
        ...

    @abstractmethod
    async def verify_code(self, problem: Problem, code: str, language: str) -> CodeVerdict:
        ...


class HttpGradingClient(GradingService):
    """Calls the hosted grading functions over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def _post(self, function: str, body: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/{function}", headers=headers, json=body)
                response.raise_for_status()
                data: dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("grading_request_failed", function=function, error=str(e))
            raise GradingUnavailable(f"Grading service call {function} failed") from e
        if "error" in data:
            logger.warning("grading_returned_error", function=function, error=data["error"])
            raise GradingUnavailable(f"Grading service error: {data['error']}")
        return data

    @staticmethod
    def _problem_payload(problem: Problem) -> dict[str, Any]:
        return {
            "problemId": problem.id,
            "title": problem.title,
            "description": problem.description,
            "testCases": problem.test_cases,
        }

    async def verify_algorithm(self, problem: Problem, explanation: str) -> AlgorithmVerdict:
        data = await self._post(
            "verifyAlgorithm",
            {**self._problem_payload(problem), "algorithmExplanation": explanation},
        )
        return AlgorithmVerdict(
            is_correct=bool(data.get("isCorrect")),
            feedback=data.get("feedback") or "",
            suggestions=data.get("suggestions") or "",
        )

    async def verify_code(self, problem: Problem, code: str, language: str) -> CodeVerdict:
        data = await self._post(
            "verifyCode",
            {**self._problem_payload(problem), "code": code, "language": language},
        )
        return CodeVerdict(
            all_tests_passed=bool(data.get("allTestsPassed")),
            test_results=list(data.get("testResults") or []),
            feedback=data.get("feedback") or "",
        )


class UnconfiguredGrader(GradingService):
    """Stand-in used when no grading URL is configured: every call is 503."""

    async def verify_algorithm(self, problem: Problem, explanation: str) -> AlgorithmVerdict:
        raise GradingUnavailable("Grading service is not configured")

    async def verify_code(self, problem: Problem, code: str, language: str) -> CodeVerdict:
        raise GradingUnavailable("Grading service is not configured")


def get_grader() -> GradingService:
    """Grader from settings (FastAPI dependency)."""
    settings = get_settings()
    if not settings.grading_base_url:
        return UnconfiguredGrader()
    return HttpGradingClient(
        settings.grading_base_url,
        api_key=settings.grading_api_key,
        timeout=settings.grading_timeout_seconds,
    )
