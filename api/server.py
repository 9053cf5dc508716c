"""FastAPI server for SelfSwipe.

Thin adapter over ``SwipeController``. The client uploads a photo, then polls
the session while it swipes:
- POST /api/session: photo (base64 data URL) or image_ref, plus variation_kind
- GET /api/session: current status, image at the cursor, progress
- POST /api/session/swipe: {"direction": "left" | "right"}
"""

from typing import Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from selfswipe import __version__
from selfswipe.config import load_config
from selfswipe.exceptions import SelfSwipeError
from selfswipe.models import SwipeSession, VariationKind
from selfswipe.pipeline import SwipeController


app = FastAPI(
    title="SelfSwipe API",
    description="Swipe through AI-generated hairstyle and outfit variations of your photo",
    version=__version__,
)

# Enable CORS for the web client
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class StartSessionRequest(BaseModel):
    """Request body for starting a session."""
    photo: str | None = None  # Base64 data URL
    image_ref: str | None = None  # Path or URL the server can read
    variation_kind: VariationKind = VariationKind.HAIRSTYLE
    user_id: str | None = None


class SwipeRequest(BaseModel):
    direction: Literal["left", "right"]


class SessionResponse(BaseModel):
    """Session snapshot returned by every session endpoint."""
    success: bool
    status: str = "idle"
    session: dict | None = None
    current_image: dict | None = None
    is_complete: bool = False
    error: str | None = None


# Initialize controller (will be done on first request)
_controller: SwipeController | None = None


def get_controller() -> SwipeController:
    """Get or create the controller instance."""
    global _controller
    if _controller is None:
        config = load_config()  # Loads from .env automatically via pydantic-settings
        _controller = SwipeController(config)
    return _controller


def session_response(controller: SwipeController, success: bool = True, error: str | None = None) -> SessionResponse:
    session: SwipeSession | None = controller.state.current_session
    if session is None:
        return SessionResponse(success=success, error=error)

    current = session.current_image
    return SessionResponse(
        success=success,
        status=session.status.value,
        session=session.model_dump(mode="json"),
        current_image=current.model_dump(mode="json") if current else None,
        is_complete=controller.is_complete(),
        error=error or session.error,
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "SelfSwipe API", "version": __version__}


@app.get("/health")
async def health():
    """Detailed health check."""
    controller = get_controller()
    gemini_ok = controller.gemini.is_configured

    return {
        "status": "ok" if gemini_ok else "degraded",
        "gemini": "configured" if gemini_ok else "missing api key",
    }


@app.post("/api/session", response_model=SessionResponse)
async def start_session(request: StartSessionRequest):
    """Start a session and kick off analysis in the background.

    Poll GET /api/session for progress; the first images arrive once the
    status turns "ready".
    """
    if not request.photo and not request.image_ref:
        raise HTTPException(status_code=422, detail="Provide either photo or image_ref")

    controller = get_controller()
    try:
        uploaded_ref = None
        image_ref = request.image_ref
        if request.photo:
            image_ref = str(controller.image_store.save_upload(request.photo))
            uploaded_ref = image_ref

        controller.start_session(
            image_ref,
            request.variation_kind,
            uploaded_ref=uploaded_ref,
            user_id=request.user_id,
        )
        controller.run_in_background(controller.initialize_generation())
        return session_response(controller)

    except SelfSwipeError as e:
        return SessionResponse(success=False, error=str(e))


@app.get("/api/session", response_model=SessionResponse)
async def get_session():
    """Current session snapshot."""
    return session_response(get_controller())


@app.post("/api/session/swipe", response_model=SessionResponse)
async def swipe(request: SwipeRequest):
    """Like (right) or dislike (left) the image at the cursor."""
    controller = get_controller()
    if controller.state.current_session is None:
        raise HTTPException(status_code=404, detail="No active session")

    if request.direction == "right":
        image = controller.swipe_right()
    else:
        image = controller.swipe_left()

    if image is None:
        return session_response(controller, success=False, error="No image to swipe yet")
    return session_response(controller)


@app.post("/api/session/more", response_model=SessionResponse)
async def generate_more():
    """Append another batch of variations. Requires at least one like."""
    controller = get_controller()
    session = controller.state.current_session
    if session is None:
        raise HTTPException(status_code=404, detail="No active session")
    if not session.liked_images:
        return session_response(controller, success=False, error="Like at least one image first")

    controller.run_in_background(controller.generate_more_images())
    return session_response(controller)


@app.post("/api/session/retry", response_model=SessionResponse)
async def retry():
    """Dismiss the error and resume generation."""
    controller = get_controller()
    if controller.state.current_session is None:
        raise HTTPException(status_code=404, detail="No active session")

    controller.run_in_background(controller.retry())
    return session_response(controller)


@app.post("/api/session/save")
async def save_session():
    """Append the current session to the saved history."""
    controller = get_controller()
    if controller.state.current_session is None:
        raise HTTPException(status_code=404, detail="No active session")

    saved = await controller.save_session()
    return {"success": saved}


@app.delete("/api/session", response_model=SessionResponse)
async def clear_session():
    """Abandon the current session without saving it."""
    controller = get_controller()
    controller.clear_session()
    return session_response(controller)


@app.get("/api/sessions")
async def list_sessions(user_id: str | None = None):
    """Saved sessions, optionally filtered to one user."""
    sessions = await get_controller().load_sessions(user_id)
    return {"sessions": [s.model_dump(mode="json") for s in sessions]}


if __name__ == "__main__":
    import uvicorn

    from selfswipe.utils import configure_logging

    configure_logging(load_config().log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000)
