"""Swipe session state machine.

The controller is the single writer of ``SwipeState``. The presentation layer
reads the state (polling ``controller.state`` or via ``subscribe``) and
dispatches intents: ``swipe_left``, ``swipe_right``, ``generate_more_images``,
``retry`` and ``clear_session``.

Generation runs as asyncio tasks so swiping stays responsive, but provider calls
for one session are strictly sequential: every call holds the session's
generation lock. Results that resolve after their session was replaced or
cleared are dropped.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable

from ..agents import StylePromptAgent
from ..config import SwipeConfig
from ..models import (
    GenerationProgress,
    SessionStatus,
    SwipeImage,
    SwipeSession,
    SwipeState,
    VariationKind,
)
from ..services import (
    GeminiClient,
    ImageStore,
    ImageSynthesizer,
    RetryPolicy,
    SessionStore,
)


logger = logging.getLogger(__name__)

StateListener = Callable[[SwipeState], None]


class SwipeController:
    """Drives analysis, look-ahead synthesis and swipe decisions for one session.

    Flow:
    1. ``start_session`` creates the session
    2. ``initialize_generation`` analyzes the photo once and fills a small buffer
    3. Each swipe advances the cursor and tops the buffer up in the background
    4. Once everything is swiped, ``generate_more_images`` or ``clear_session``
    """

    def __init__(
        self,
        config: SwipeConfig,
        prompt_agent: StylePromptAgent | None = None,
        synthesizer: ImageSynthesizer | None = None,
        session_store: SessionStore | None = None,
        state: SwipeState | None = None,
    ):
        self.config = config
        self.state = state or SwipeState()

        # Initialize services
        self.gemini = GeminiClient(config.gemini, config.gemini_api_key)
        self.image_store = ImageStore(config.storage)

        self.prompt_agent = prompt_agent or StylePromptAgent(
            client=self.gemini,
            image_store=self.image_store,
            retry_policy=RetryPolicy.from_config(config.retry, backoff_after_final=True),
        )
        self.synthesizer = synthesizer or ImageSynthesizer(
            client=self.gemini,
            image_store=self.image_store,
            config=config.generation,
            retry_policy=RetryPolicy.from_config(config.retry),
        )
        self.session_store = session_store or SessionStore(config.storage.sessions_file)

        self._listeners: list[StateListener] = []
        self._generation_lock = asyncio.Lock()
        self._lookahead_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Observation

    @property
    def session(self) -> SwipeSession | None:
        return self.state.current_session

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with the state after every mutation. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception:
                logger.exception("State listener failed")

    def _is_current(self, session: SwipeSession) -> bool:
        return self.state.current_session is session

    def _progress_sink(self, session: SwipeSession) -> Callable[[GenerationProgress], None]:
        def sink(progress: GenerationProgress) -> None:
            if self._is_current(session):
                session.progress = progress
                self._notify()
        return sink

    # ------------------------------------------------------------------
    # Derived conditions

    def is_complete(self, session: SwipeSession | None = None) -> bool:
        """True once every image is swiped and no more are coming.

        More are not coming when the configured maximum was reached, or when
        every prompt has been consumed and nothing is in flight.
        """
        session = session or self.session
        if session is None or not session.prompts:
            return False
        if session.cursor < len(session.images):
            return False
        if len(session.images) >= self.config.generation.max_images:
            return True
        return not session.has_pending_prompts and not session.is_generating

    def _refresh_status(self, session: SwipeSession) -> None:
        if session.status in (SessionStatus.ERROR, SessionStatus.INITIALIZING):
            return
        if session.is_generating:
            session.status = SessionStatus.GENERATING
        elif self.is_complete(session):
            session.status = SessionStatus.COMPLETED
        else:
            session.status = SessionStatus.READY

    @asynccontextmanager
    async def _provider_turn(self, session: SwipeSession):
        """Serialize provider calls and flag the session as generating meanwhile."""
        async with self._generation_lock:
            session.is_generating = True
            self._refresh_status(session)
            if self._is_current(session):
                self._notify()
            try:
                yield
            finally:
                session.is_generating = False
                self._refresh_status(session)
                if self._is_current(session):
                    self._notify()

    # ------------------------------------------------------------------
    # Lifecycle

    def start_session(
        self,
        image_ref: str,
        variation_kind: VariationKind,
        uploaded_ref: str | None = None,
        user_id: str | None = None,
    ) -> SwipeSession:
        """Create a new session, replacing any current one."""
        if self.session is not None:
            logger.info("Replacing session %s", self.session.id)

        session = SwipeSession(
            original_image_ref=image_ref,
            uploaded_image_ref=uploaded_ref,
            variation_kind=VariationKind(variation_kind),
            user_id=user_id,
            status=SessionStatus.INITIALIZING,
        )
        self.state.current_session = session
        # Calls still running for the previous session keep the old lock
        self._generation_lock = asyncio.Lock()
        self._lookahead_task = None

        logger.info("🧑 Started %s session %s", session.variation_kind.value, session.id)
        self._notify()
        return session

    def clear_session(self) -> None:
        """Drop the current session without persisting it."""
        if self.session is None:
            return
        logger.info("Cleared session %s", self.session.id)
        self.state.current_session = None
        self._lookahead_task = None
        self._notify()

    async def initialize_generation(
        self,
        image_ref: str | None = None,
        variation_kind: VariationKind | None = None,
    ) -> None:
        """Analyze the photo once, store the prompts and build the first buffer.

        Any failure moves the session to ERROR with the message attached.
        """
        session = self.session
        if session is None or session.is_generating:
            return
        if session.prompts:
            logger.debug("Session %s is already initialized", session.id)
            return

        image_ref = image_ref or session.original_image_ref
        variation_kind = VariationKind(variation_kind or session.variation_kind)
        generation = self.config.generation
        sink = self._progress_sink(session)

        session.status = SessionStatus.INITIALIZING
        session.error = None

        try:
            async with self._provider_turn(session):
                plan = await self.prompt_agent.analyze_and_generate_prompts(
                    image_ref,
                    variation_kind,
                    count=generation.prompt_count,
                    on_progress=sink,
                )
                if not self._is_current(session):
                    logger.info("Dropping analysis for abandoned session %s", session.id)
                    return

                session.set_prompts(plan.analysis, plan.prompts)
                logger.info("📋 Session %s has %d prompts", session.id, len(session.prompts))

                buffer_size = max(generation.lookahead, 1)
                while len(session.images) < buffer_size and session.has_pending_prompts:
                    index, prompt = session.claim_next_prompt()
                    sink(GenerationProgress(
                        stage="generating",
                        percent=round(len(session.images) / buffer_size * 100),
                        message=f"Generating image {len(session.images) + 1} of {buffer_size}...",
                    ))

                    image = await self.synthesizer.try_synthesize(image_ref, prompt)
                    if not self._is_current(session):
                        return
                    if image is None:
                        logger.warning("Initial prompt %d produced no image", index + 1)
                        continue
                    session.add_image(image)

            if not session.images:
                raise RuntimeError("No images could be generated for this photo")

            session.status = SessionStatus.READY
            session.progress = None
            self._refresh_status(session)
            logger.info("✅ Session %s ready with %d images", session.id, len(session.images))

        except Exception as exc:
            logger.exception("❌ Session %s failed to initialize", session.id)
            if self._is_current(session):
                # Nothing to swipe yet, so retry starts over from analysis
                if not session.images:
                    session.reset_prompts()
                session.status = SessionStatus.ERROR
                session.error = str(exc) or type(exc).__name__
                session.progress = None

        if self._is_current(session):
            self._notify()

    async def generate_next_image(self) -> SwipeImage | None:
        """Synthesize the next unconsumed prompt and append the result.

        A no-op once every prompt is consumed. Failures are logged and
        swallowed; the session stays healthy without that image.
        """
        session = self.session
        if session is None or not session.prompts or not session.has_pending_prompts:
            return None
        image = await self._generate_next(session)
        if image is not None:
            self._check_lookahead(session)
        return image

    async def _generate_next(self, session: SwipeSession) -> SwipeImage | None:
        image = None
        async with self._provider_turn(session):
            if not self._is_current(session):
                return None
            claimed = session.claim_next_prompt()
            if claimed is None:
                return None
            index, prompt = claimed

            logger.info("🎯 Look-ahead image for prompt %d/%d", index + 1, len(session.prompts))
            try:
                image = await self.synthesizer.try_synthesize(session.original_image_ref, prompt)
            except Exception:
                logger.exception("Look-ahead generation failed for prompt %d", index + 1)
                image = None

            if image is None or not self._is_current(session):
                return None
            session.add_image(image)
        return image

    async def generate_more_images(self) -> list[SwipeImage]:
        """Append another batch of variations once the user has liked something.

        The original photo is analyzed again for a fresh set of prompts; the
        liked images are only the trigger, not an input.
        """
        session = self.session
        if session is None or not session.liked_images:
            return []

        count = self.config.generation.more_count
        sink = self._progress_sink(session)
        added: list[SwipeImage] = []

        async with self._provider_turn(session):
            if not self._is_current(session):
                return []
            try:
                plan = await self.prompt_agent.analyze_and_generate_prompts(
                    session.original_image_ref,
                    session.variation_kind,
                    count=count,
                    on_progress=sink,
                )
                if not self._is_current(session):
                    return []

                session.extend_prompts(plan.prompts)
                prompts = [session.claim_next_prompt()[1] for _ in plan.prompts]

                images = await self.synthesizer.synthesize_batch(
                    session.original_image_ref,
                    prompts,
                    on_progress=sink,
                )
                if not self._is_current(session):
                    return []
                for image in images:
                    added.append(session.add_image(image))
            except Exception:
                logger.exception("Generating more images failed for session %s", session.id)
            finally:
                session.progress = None

        logger.info("➕ Added %d images to session %s", len(added), session.id)
        self._check_lookahead(session)
        return added

    # ------------------------------------------------------------------
    # Swiping

    def swipe_left(self) -> SwipeImage | None:
        """Dislike the image at the cursor."""
        return self._swipe(liked=False)

    def swipe_right(self) -> SwipeImage | None:
        """Like the image at the cursor."""
        return self._swipe(liked=True)

    def _swipe(self, liked: bool) -> SwipeImage | None:
        session = self.session
        if session is None:
            return None

        image = session.record_swipe(liked)
        if image is None:
            logger.debug("Ignoring swipe: no image at cursor %d", session.cursor)
            return None

        self._refresh_status(session)
        self._notify()
        self._check_lookahead(session)
        return image

    # ------------------------------------------------------------------
    # Look-ahead

    @property
    def lookahead_pending(self) -> bool:
        return self._lookahead_task is not None and not self._lookahead_task.done()

    def _should_prefetch(self, session: SwipeSession) -> bool:
        buffered = len(session.images) - session.cursor
        return (
            buffered <= self.config.generation.lookahead
            and session.cursor < len(session.prompts) - 1
            and session.has_pending_prompts
        )

    def _check_lookahead(self, session: SwipeSession) -> None:
        """Schedule one background synthesis when the buffer runs low."""
        if not self._is_current(session) or session.status is SessionStatus.ERROR:
            return
        if self.lookahead_pending or not self._should_prefetch(session):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; look-ahead deferred")
            return

        self._lookahead_task = loop.create_task(self._run_lookahead(session))

    async def _run_lookahead(self, session: SwipeSession) -> None:
        try:
            await self._generate_next(session)
        finally:
            if self._lookahead_task is asyncio.current_task():
                self._lookahead_task = None
        self._check_lookahead(session)

    async def wait_for_lookahead(self) -> None:
        """Wait until the look-ahead chain has nothing left to do."""
        while self.lookahead_pending:
            await self._lookahead_task

    # ------------------------------------------------------------------
    # Errors

    def dismiss_error(self) -> None:
        """Leave ERROR, keeping every image generated so far."""
        session = self.session
        if session is None or session.status is not SessionStatus.ERROR:
            return
        session.error = None
        session.status = SessionStatus.READY if session.prompts else SessionStatus.INITIALIZING
        self._refresh_status(session)
        self._notify()

    async def retry(self) -> None:
        """Dismiss the error and resume: re-initialize, or refill the buffer."""
        session = self.session
        if session is None or session.status is not SessionStatus.ERROR:
            return
        self.dismiss_error()
        if not session.prompts:
            await self.initialize_generation()
        else:
            self._check_lookahead(session)

    # ------------------------------------------------------------------
    # Background helpers for adapters

    def run_in_background(self, coro) -> asyncio.Task:
        """Start ``coro`` as a task and keep a reference until it finishes."""
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # ------------------------------------------------------------------
    # Persistence

    async def save_session(self) -> bool:
        """Append a snapshot of the current session to the history."""
        session = self.session
        if session is None:
            return False

        snapshot = session.model_copy(deep=True)
        saved = await asyncio.to_thread(self.session_store.save, snapshot)
        if saved:
            self.state.sessions.append(snapshot)
            self._notify()
        return saved

    async def load_sessions(self, user_id: str | None = None) -> list[SwipeSession]:
        """Replace the in-memory history with what the store holds."""
        sessions = await asyncio.to_thread(self.session_store.load_all, user_id)
        self.state.sessions = sessions
        self._notify()
        return sessions

    async def close(self):
        """Release HTTP resources."""
        await self.image_store.close()
