"""
Step sequencer for the content workflow.

idea + content type (+ transcript) -> follow-up questions -> answers ->
research -> final content -> (regenerate / save) -> start over

Transient state is held per client id in a TransientStore under the fixed
keys "contentState" and "questions", the same keys the browser used for its
session storage. Each step checks its upstream state on entry and raises
WorkflowStateMissing (redirect to step 1) when it is absent.

Every stage call is tagged with a token from RequestTokens. A result whose
token is no longer current (a newer request for the same stage, or a start
over) is discarded with StaleRequest instead of overwriting newer state.
"""

import asyncio
import copy
import itertools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from content_generation import prompts, sessions, stages
from content_generation.errors import StaleRequest, WorkflowStateMissing

logger = logging.getLogger(__name__)

CONTENT_STATE_KEY = "contentState"
QUESTIONS_KEY = "questions"
PROGRESS_KEY = "progress"

GENERATION_ATTEMPTS = 3
GENERATION_RETRY_DELAY = 1.0

# Runs untouched for this long are dropped when another run starts
IDLE_CLIENT_TTL = 6 * 60 * 60

Sleep = Callable[[float], Awaitable[None]]


class TransientStore:
    """Per-client key/value storage. Values are copied in and out so callers never share state."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._touched: Dict[str, float] = {}
        self._clock = clock

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._data

    def get(self, client_id: str, key: str) -> Any:
        return copy.deepcopy(self._data.get(client_id, {}).get(key))

    def set(self, client_id: str, key: str, value: Any):
        self._data.setdefault(client_id, {})[key] = copy.deepcopy(value)
        self._touched[client_id] = self._clock()

    def remove(self, client_id: str, key: str):
        self._data.get(client_id, {}).pop(key, None)

    def clear(self, client_id: str):
        self._data.pop(client_id, None)
        self._touched.pop(client_id, None)

    def idle_clients(self, max_age: float) -> List[str]:
        """Clients whose state was last written more than `max_age` seconds ago."""
        now = self._clock()
        return [client_id for client_id, touched in self._touched.items() if now - touched > max_age]


class RequestTokens:
    """
    Latest token per (client, stage). Tokens come from one process-wide
    counter, so a token issued after a client's entry was dropped can never
    equal one issued before.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._current: Dict[str, Dict[str, int]] = {}

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._current

    def issue(self, client_id: str, stage: str) -> int:
        token = next(self._counter)
        self._current.setdefault(client_id, {})[stage] = token
        return token

    def current(self, client_id: str, stage: str) -> int:
        return self._current.get(client_id, {}).get(stage, 0)

    def is_current(self, client_id: str, stage: str, token: int) -> bool:
        return self.current(client_id, stage) == token

    def invalidate(self, client_id: str):
        """Supersede every outstanding request of the client."""
        self._current.pop(client_id, None)


async def generate_with_retries(
    call: Callable[[], Awaitable[Dict[str, str]]],
    attempts: int = GENERATION_ATTEMPTS,
    delay: float = GENERATION_RETRY_DELAY,
    sleep: Sleep = asyncio.sleep,
) -> Dict[str, str]:
    """
    Await `call` up to `attempts` times with a fixed `delay` between attempts.
    An empty content string counts as a failure. The last error is raised
    once every attempt has failed.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            result = await call()
            if not result or not (result.get("content") or "").strip():
                raise ValueError("No content was generated")
            return result
        except Exception as e:
            logger.warning("[generate] Attempt %d failed: %s", attempt, e)
            last_error = e
            if attempt < attempts:
                await sleep(delay)
    raise last_error or RuntimeError("All attempts to generate content failed")


class ContentWorkflow:
    """
    Drives one client through the content steps. Stage functions are the
    synchronous ones from content_generation.stages and run in worker threads.
    """

    def __init__(
        self,
        store: Optional[TransientStore] = None,
        question_stage: Callable[..., List[Dict[str, str]]] = stages.generate_questions,
        research_stage: Callable[..., str] = stages.generate_research,
        content_stage: Callable[..., Dict[str, str]] = stages.generate_content,
        session_store=sessions,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store or TransientStore()
        self.tokens = RequestTokens()
        self.question_stage = question_stage
        self.research_stage = research_stage
        self.content_stage = content_stage
        self.session_store = session_store
        self.sleep = sleep
        self._prefetch: Dict[str, Dict[str, Any]] = {}

    # --- Guards ---

    def _require(self, client_id: str, step: str, *keys: str) -> List[Any]:
        values = []
        for key in keys:
            value = self.store.get(client_id, key)
            if not value:
                raise WorkflowStateMissing(step, key)
            values.append(value)
        return values

    def _progress(self, client_id: str) -> Dict[str, Any]:
        return self.store.get(client_id, PROGRESS_KEY) or {}

    def _update_progress(self, client_id: str, **changes):
        progress = self._progress(client_id)
        progress.update(changes)
        self.store.set(client_id, PROGRESS_KEY, progress)

    def _check_token(self, client_id: str, stage: str, token: int):
        if not self.tokens.is_current(client_id, stage, token):
            logger.info("[workflow] Discarding stale %s result for %s", stage, client_id)
            raise StaleRequest(f"The {stage} request was superseded by a newer one")

    def current_step(self, client_id: str) -> str:
        if not self.store.get(client_id, CONTENT_STATE_KEY):
            return "idea"
        if not self.store.get(client_id, QUESTIONS_KEY):
            return "questions"
        if not self._progress(client_id).get("generatedContent"):
            return "research"
        return "content"

    def snapshot(self, client_id: str) -> Dict[str, Any]:
        return {
            "step": self.current_step(client_id),
            CONTENT_STATE_KEY: self.store.get(client_id, CONTENT_STATE_KEY),
            QUESTIONS_KEY: self.store.get(client_id, QUESTIONS_KEY) or [],
            **self._progress(client_id),
        }

    # --- Steps ---

    def start(self, client_id: str, content_type: str, idea: str, transcript: str = "") -> Dict[str, Any]:
        """Step 1. Starting again discards everything from a previous run."""
        if not idea or not idea.strip():
            raise ValueError("Please enter your content idea")
        if not content_type or not content_type.strip():
            raise ValueError("Please select a content type")

        self.evict_idle()
        self.start_over(client_id)
        self.store.set(client_id, CONTENT_STATE_KEY, {
            "contentType": content_type,
            "idea": idea,
            "transcript": transcript or "",
        })
        return self.snapshot(client_id)

    async def load_questions(self, client_id: str) -> List[Dict[str, str]]:
        (state,) = self._require(client_id, "questions", CONTENT_STATE_KEY)
        token = self.tokens.issue(client_id, "questions")

        try:
            questions = await asyncio.to_thread(
                self.question_stage, state["idea"], state["contentType"], state.get("transcript") or None
            )
        except Exception as e:
            logger.warning("[workflow] Question generation failed, using generic questions: %s", e)
            questions = prompts.generic_questions()

        self._check_token(client_id, "questions", token)
        return questions

    def submit_answers(self, client_id: str, questions: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Store the answered questions and warm the research step in the
        background. The pre-fetch result is only used while its token is current.
        """
        (state,) = self._require(client_id, "answers", CONTENT_STATE_KEY)
        answered = [
            {"id": str(q.get("id", "")), "text": q.get("text", ""), "answer": q.get("answer") or ""}
            for q in questions
        ]
        self.store.set(client_id, QUESTIONS_KEY, answered)
        self.store.remove(client_id, PROGRESS_KEY)

        token = self.tokens.issue(client_id, "research")
        self._cancel_prefetch(client_id)
        try:
            task = asyncio.get_running_loop().create_task(self._run_research(state, answered))
        except RuntimeError:
            task = None
        if task is not None:
            task.add_done_callback(_ignore_result)
            self._prefetch[client_id] = {"token": token, "task": task}
        return self.snapshot(client_id)

    async def _run_research(self, state: Dict[str, Any], questions: List[Dict[str, Any]]) -> str:
        return await asyncio.to_thread(
            self.research_stage,
            state["idea"],
            state["contentType"],
            questions,
            state.get("transcript") or None,
        )

    def _cancel_prefetch(self, client_id: str):
        entry = self._prefetch.pop(client_id, None)
        if entry and not entry["task"].done():
            entry["task"].cancel()

    async def load_research(self, client_id: str) -> str:
        state, questions = self._require(client_id, "research", CONTENT_STATE_KEY, QUESTIONS_KEY)
        token = self.tokens.current(client_id, "research")
        entry = self._prefetch.pop(client_id, None)

        research = None
        if entry and entry["token"] == token and not entry["task"].cancelled():
            try:
                research = await entry["task"]
            except Exception as e:
                logger.info("[workflow] Research pre-fetch unusable, requesting again: %s", e)
        if research is None:
            token = self.tokens.issue(client_id, "research")
            try:
                research = await self._run_research(state, questions)
            except Exception as e:
                logger.warning("[workflow] Research failed, using demo research: %s", e)
                research = prompts.DEMO_RESEARCH

        self._check_token(client_id, "research", token)
        self._update_progress(client_id, research=research)
        return research

    async def generate_content(self, client_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Final content with up to GENERATION_ATTEMPTS tries. When every attempt
        fails the instructional fallback message is shown instead; the idea,
        answers and research stay in place for a later regeneration.
        """
        state, questions = self._require(client_id, "content", CONTENT_STATE_KEY, QUESTIONS_KEY)
        research = self._progress(client_id).get("research")
        if not research:
            research = await self.load_research(client_id)

        token = self.tokens.issue(client_id, "content")

        async def attempt():
            return await asyncio.to_thread(
                self.content_stage,
                state["idea"],
                state["contentType"],
                questions,
                research,
                state.get("transcript") or None,
            )

        succeeded = True
        try:
            result = await generate_with_retries(attempt, sleep=self.sleep)
        except Exception as e:
            logger.error("[workflow] Content generation failed after %d attempts: %s", GENERATION_ATTEMPTS, e)
            succeeded = False
            result = {
                "content": prompts.generation_failed_message(state["contentType"]),
                "source": "OpenAI",
            }

        self._check_token(client_id, "content", token)
        self._update_progress(
            client_id,
            generatedContent=result["content"],
            contentSource=result.get("source") or "Anthropic",
            generationFailed=not succeeded,
        )

        if succeeded and user_id and not self._progress(client_id).get("sessionId"):
            await self._save(client_id, user_id)
        return self.result(client_id)

    async def regenerate(self, client_id: str, feedback: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        One generation attempt with the user's feedback. On failure the error
        propagates and the previous content is kept. A saved session is
        updated in place; an unsaved one is saved.
        """
        state, questions = self._require(client_id, "regenerate", CONTENT_STATE_KEY, QUESTIONS_KEY)
        progress = self._progress(client_id)
        if not progress.get("research"):
            raise WorkflowStateMissing("regenerate", "research")

        token = self.tokens.issue(client_id, "content")
        result = await asyncio.to_thread(
            self.content_stage,
            state["idea"],
            state["contentType"],
            questions,
            progress["research"],
            state.get("transcript") or None,
            feedback,
        )
        if not (result.get("content") or "").strip():
            raise ValueError("No content was regenerated")

        self._check_token(client_id, "content", token)
        source = result.get("source") or progress.get("contentSource") or "Anthropic"
        self._update_progress(client_id, generatedContent=result["content"], contentSource=source, generationFailed=False)

        session_id = progress.get("sessionId")
        if user_id and session_id:
            try:
                updated = await asyncio.to_thread(
                    self.session_store.update_content_session,
                    session_id,
                    user_id,
                    {"generatedContent": result["content"], "contentSource": source},
                )
                self._update_progress(
                    client_id,
                    saveError=None if updated else "Your regenerated content was created but could not be saved to your account.",
                )
            except Exception as e:
                logger.error("[workflow] Error updating saved content %s: %s", session_id, e)
                self._update_progress(client_id, saveError="Your regenerated content was created but could not be saved to your account.")
        elif user_id:
            await self._save(client_id, user_id)
        return self.result(client_id)

    async def save(self, client_id: str, user_id: str) -> Dict[str, Any]:
        """Manual save. Saving an already saved run is a no-op."""
        self._require(client_id, "save", CONTENT_STATE_KEY, QUESTIONS_KEY)
        if not self._progress(client_id).get("generatedContent"):
            raise WorkflowStateMissing("save", "generatedContent")
        if not self._progress(client_id).get("sessionId"):
            await self._save(client_id, user_id)
        return self.result(client_id)

    async def _save(self, client_id: str, user_id: str):
        state = self.store.get(client_id, CONTENT_STATE_KEY)
        questions = self.store.get(client_id, QUESTIONS_KEY)
        progress = self._progress(client_id)
        try:
            saved = await asyncio.to_thread(self.session_store.save_content_session, user_id, {
                "title": prompts.make_title(state["idea"]),
                "contentType": state["contentType"],
                "idea": state["idea"],
                "questions": questions,
                "transcript": state.get("transcript") or None,
                "research": progress.get("research"),
                "generatedContent": progress.get("generatedContent"),
                "contentSource": progress.get("contentSource"),
            })
            self._update_progress(client_id, sessionId=saved["id"], saveError=None)
        except Exception as e:
            logger.error("[workflow] Error saving content for %s: %s", client_id, e)
            self._update_progress(client_id, saveError="Failed to save your content to your account.")

    def result(self, client_id: str) -> Dict[str, Any]:
        progress = self._progress(client_id)
        return {
            "content": progress.get("generatedContent", ""),
            "source": progress.get("contentSource"),
            "generationFailed": progress.get("generationFailed", False),
            "sessionId": progress.get("sessionId"),
            "saved": bool(progress.get("sessionId")),
            "saveError": progress.get("saveError"),
        }

    def start_over(self, client_id: str):
        """Drop the client's transient state and supersede its in-flight requests."""
        self._cancel_prefetch(client_id)
        self.tokens.invalidate(client_id)
        self.store.clear(client_id)

    def evict_idle(self, max_age: float = IDLE_CLIENT_TTL):
        """Start over every run that has not been written to for `max_age` seconds."""
        for client_id in self.store.idle_clients(max_age):
            logger.info("[workflow] Dropping idle run %s", client_id)
            self.start_over(client_id)


def _ignore_result(task: "asyncio.Task"):
    # Pre-fetch failures are irrelevant: load_research asks again.
    if not task.cancelled():
        task.exception()
