"""Turn-taking state machine between a call session and the assistant."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from agents.errors import AssistantError, InvalidTransitionError
from call.call_log import CallLog, CallLogEntry, CallLogEvent, ConversationHistory, Role
from call.protocol import (
    HANGUP_BANNER,
    INTERRUPTED_MESSAGE,
    READY_BANNER,
    CallHungUp,
    ControlReceived,
    ControlToken,
    SessionEvent,
    TranscriptionFailed,
    UnknownMessage,
    UtteranceReady,
    transcript_line,
)
from call.retry import RetryPolicy
from call.session import CallSession

if TYPE_CHECKING:  # pragma: no cover
    from agents.assistant import Assistant

LOGGER = logging.getLogger(__name__)

FAILURE_BANNER = "---- Assistant Unavailable ----"
RETRY_PROMPT = "--- Sorry, something went wrong. Please say that again. ---"

CompletionCallback = Callable[[list[CallLogEntry]], Any]
Job = Callable[[], Awaitable[None]]


class SessionState(str, Enum):
    INIT = "INIT"
    READY = "READY"
    LISTENING = "LISTENING"
    RESPONDING = "RESPONDING"
    ENDED = "ENDED"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.INIT: frozenset({SessionState.READY, SessionState.ENDED}),
    SessionState.READY: frozenset({SessionState.RESPONDING, SessionState.ENDED}),
    SessionState.LISTENING: frozenset({SessionState.RESPONDING, SessionState.ENDED}),
    SessionState.RESPONDING: frozenset({SessionState.LISTENING, SessionState.ENDED}),
    SessionState.ENDED: frozenset(),
}


class ConversationOrchestrator:
    """Owns history, call log and turn-taking for one call.

    Session events arrive on `session.events` and are dispatched through a
    handler table. Utterances are queued to a single listener task so turns
    never overlap, while interrupts and hangups are handled as soon as they
    arrive. An interrupt does not cancel a response that is already being
    generated or synthesized; that response still completes and is spoken.
    """

    def __init__(
        self,
        assistant: Assistant,
        session: CallSession,
        *,
        on_end: CompletionCallback | None = None,
        retry: RetryPolicy | None = None,
        on_external_failure: Literal["end_call", "continue"] = "end_call",
    ) -> None:
        self.assistant = assistant
        self.session = session
        self.history = ConversationHistory()
        self.call_log = CallLog()
        self.state = SessionState.INIT

        self._on_end = on_end
        self._retry = retry or RetryPolicy(max_retries=0)
        self._on_external_failure = on_external_failure
        self._jobs: asyncio.Queue[Job] | None = None
        self._listener: asyncio.Task | None = None
        self._completed = asyncio.Event()
        self._handlers: dict[type, Callable[[Any], Awaitable[None]]] = {
            UtteranceReady: self._on_utterance,
            ControlReceived: self._on_control,
            UnknownMessage: self._on_unknown,
            TranscriptionFailed: self._on_transcription_failed,
            CallHungUp: self._on_hangup,
        }
        self._control_handlers: dict[ControlToken, Callable[[], Awaitable[None]]] = {
            ControlToken.INTERRUPT: self._on_interrupt,
        }

        self.call_log.append(
            CallLogEvent.INIT,
            {"assistant": assistant.describe(), "session_id": session.session_id},
        )

    @property
    def listening(self) -> bool:
        return self._jobs is not None

    @property
    def completed(self) -> bool:
        return self._completed.is_set()

    # --- lifecycle -----------------------------------------------------

    async def serve(self, delay: float = 0.0, play_greeting_tone: bool = True) -> list[CallLogEntry]:
        """Run a whole call: frame intake, greeting and event dispatch."""

        self.session.start()
        session_task = asyncio.create_task(self.session.run())
        begin_task = asyncio.create_task(self.begin(delay, play_greeting_tone))
        try:
            await self.run()
        finally:
            if not begin_task.done():
                begin_task.cancel()
            (outcome,) = await asyncio.gather(begin_task, return_exceptions=True)
            if isinstance(outcome, Exception):
                LOGGER.exception("[%s] Call setup failed", self.session.session_id, exc_info=outcome)
            if not session_task.done():
                await self.session.close()
            await session_task
        return list(self.call_log.entries)

    async def begin(self, delay: float = 0.0, play_greeting_tone: bool = True) -> None:
        if play_greeting_tone:
            await self.session.send_audio(self.session.tones.greeting())
        if delay > 0:
            await asyncio.sleep(delay)
        if self.state is not SessionState.INIT:
            LOGGER.info("[%s] Call ended before it became ready", self.session.session_id)
            return

        self._register_listener()
        self._transition(SessionState.READY)
        self.call_log.append(CallLogEvent.READY)
        await self.session.send_meta(READY_BANNER)
        await self.session.send_meta(ControlToken.READY.value)

        if self.assistant.speak_first:
            self._submit(self._speak_opening)

    async def run(self) -> None:
        """Dispatch session events until the call has completed."""

        while not self._completed.is_set():
            event: SessionEvent = await self.session.events.get()
            handler = self._handlers.get(type(event))
            if handler is None:
                LOGGER.warning("[%s] No handler for event %r", self.session.session_id, event)
                continue
            await handler(event)

    # --- event handlers ------------------------------------------------

    async def _on_utterance(self, event: UtteranceReady) -> None:
        if self.state is SessionState.ENDED or not self.listening:
            LOGGER.info("[%s] Dropping utterance in state %s", self.session.session_id, self.state.value)
            return
        self._submit(lambda: self._respond(event.transcript))

    async def _on_control(self, event: ControlReceived) -> None:
        handler = self._control_handlers.get(event.token)
        if handler is None:
            LOGGER.info("[%s] Ignoring control token %s from client", self.session.session_id, event.token.value)
            return
        await handler()

    async def _on_unknown(self, event: UnknownMessage) -> None:
        LOGGER.debug("[%s] Informational message: %s", self.session.session_id, event.text)

    async def _on_interrupt(self) -> None:
        if self.state is SessionState.ENDED:
            return
        await self._note("user", INTERRUPTED_MESSAGE)

    async def _on_transcription_failed(self, event: TranscriptionFailed) -> None:
        if self.state is SessionState.ENDED or not self.listening:
            return
        self._submit(lambda: self._handle_external_failure(event.error))

    async def _on_hangup(self, event: CallHungUp) -> None:
        if self._completed.is_set():
            return

        listener = self._listener
        if listener is not None and not listener.done() and listener is not asyncio.current_task():
            if self.state is SessionState.ENDED:
                # The listener is finishing its own hangup; let it close cleanly.
                await asyncio.gather(listener, return_exceptions=True)
            else:
                listener.cancel()
                await asyncio.gather(listener, return_exceptions=True)
        self._deregister_listener()

        self.call_log.append(CallLogEvent.CALL_ENDED)
        if self.state is not SessionState.ENDED:
            self._transition(SessionState.ENDED)
        self._completed.set()
        LOGGER.info(
            "[%s] Call ended after %d log entries and %d turns",
            self.session.session_id,
            len(self.call_log),
            len(self.history),
        )
        await self._notify_completion()

    # --- turns ---------------------------------------------------------

    async def _respond(self, transcript: str) -> None:
        if self.state is SessionState.ENDED:
            return

        self._transition(SessionState.RESPONDING)
        await self.session.send_meta(ControlToken.CLEAR_BUFFER.value)
        await self._note("user", transcript)

        try:
            reply = await self.session.profile(
                "responseGeneration",
                lambda: self._retry.run(
                    "responseGeneration",
                    lambda: self.assistant.create_response(self.history.turns),
                ),
            )
            if reply.content:
                await self._note("assistant", reply.content)
                audio = await self.session.profile(
                    "speechGeneration",
                    lambda: self._retry.run(
                        "speechGeneration",
                        lambda: self.assistant.text_to_speech(reply.content),
                    ),
                )
                await self.session.send_audio(audio)
        except AssistantError as exc:
            await self._handle_external_failure(exc)
            return

        tool = reply.selected_tool
        if tool:
            self.call_log.append(CallLogEvent.TOOL_SELECTED, {"tool": tool})

        if tool == self.assistant.hangup_tool:
            await self._hang_up(HANGUP_BANNER)
            return
        if tool:
            LOGGER.warning("[%s] Unsupported tool selected: %s", self.session.session_id, tool)

        self._transition(SessionState.LISTENING)

    async def _speak_opening(self) -> None:
        line = self.assistant.opening_message
        try:
            if not line:
                reply = await self._retry.run(
                    "responseGeneration",
                    lambda: self.assistant.create_response(self.history.turns),
                )
                line = reply.content
            if not line:
                LOGGER.warning("[%s] Assistant produced no opening line", self.session.session_id)
                return

            await self._note("assistant", line)
            audio = await self._retry.run("speechGeneration", lambda: self.assistant.text_to_speech(line))
        except AssistantError as exc:
            await self._handle_external_failure(exc)
            return
        await self.session.send_audio(audio)

    async def _handle_external_failure(self, exc: AssistantError) -> None:
        LOGGER.error("[%s] %s (%s)", self.session.session_id, exc.detail, type(exc).__name__)
        if self.state is SessionState.ENDED:
            return
        if self._on_external_failure == "end_call":
            await self._hang_up(FAILURE_BANNER)
            return

        await self.session.send_meta(RETRY_PROMPT)
        if self.state is SessionState.RESPONDING:
            self._transition(SessionState.LISTENING)

    async def _hang_up(self, banner: str) -> None:
        # ENDED first so events racing the close are rejected.
        self._transition(SessionState.ENDED)
        await self.session.send_meta(banner)
        await self.session.end_call()
        self._deregister_listener()

    # --- helpers -------------------------------------------------------

    async def _note(self, speaker: Role, message: str) -> None:
        self.call_log.append(CallLogEvent.TRANSCRIPT, {"speaker": speaker, "message": message})
        self.history.append(speaker, message)
        await self.session.send_meta(transcript_line(speaker, message))

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Cannot move from {self.state.value} to {target.value}.")
        LOGGER.debug("[%s] %s -> %s", self.session.session_id, self.state.value, target.value)
        self.state = target

    def _register_listener(self) -> None:
        if self.listening:
            return
        self._jobs = asyncio.Queue()
        self._listener = asyncio.create_task(self._listen(self._jobs))

    def _deregister_listener(self) -> None:
        self._jobs = None

    def _submit(self, job: Job) -> None:
        if self._jobs is not None:
            self._jobs.put_nowait(job)

    async def _listen(self, jobs: asyncio.Queue[Job]) -> None:
        while self._jobs is jobs:
            job = await jobs.get()
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception:
                LOGGER.exception("[%s] Turn failed", self.session.session_id)
                if self.state is SessionState.RESPONDING:
                    self._transition(SessionState.LISTENING)

    async def _notify_completion(self) -> None:
        if self._on_end is None:
            return
        entries = list(self.call_log.entries)
        try:
            result = self._on_end(entries)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception("[%s] Completion callback failed", self.session.session_id)
