from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import Optional
import json
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .ai.answer_evaluator import AnswerEvaluator
from .config import GameSettings
from .models.payloads import (
    BuzzPayload, CaptureErrorPayload, FinalAnswersPayload, FinalDraftPayload, FinalWagersPayload,
    NewGamePayload, ResponseDurationPayload, SelectCluePayload, TranscriptPayload, WagerPayload
)
from .routes import board_routes
from .services.display import BroadcastDisplay
from .services.game_service import GameService
from .services.speech import RemoteSpeechCapture
from .utils.file_loader import QuestionBank
from .websockets.connection_manager import ConnectionManager, topic

NEW_GAME_TOPIC = topic("new_game")
SELECT_CLUE_TOPIC = topic("select_clue")
BUZZ_TOPIC = topic("buzz")
SUBMIT_WAGER_TOPIC = topic("submit_wager")
SUBMIT_FINAL_WAGERS_TOPIC = topic("submit_final_wagers")
FINAL_ANSWER_DRAFT_TOPIC = topic("final_answer_draft")
SUBMIT_FINAL_ANSWERS_TOPIC = topic("submit_final_answers")
SKIP_CLUE_TOPIC = topic("skip_clue")
TOGGLE_CONTROL_TOPIC = topic("toggle_control")
SET_RESPONSE_DURATION_TOPIC = topic("set_response_duration")
TRANSCRIPT_TOPIC = topic("transcript")
CAPTURE_ERROR_TOPIC = topic("capture_error")
GAME_STATE_TOPIC = topic("game_state")
ERROR_TOPIC = topic("error")


async def handle_message(game_service: GameService, capture: RemoteSpeechCapture,
                         message_topic: str, payload: dict) -> None:
    """Route one inbound WebSocket message to the game. Raises ValidationError on bad payloads."""
    if message_topic == NEW_GAME_TOPIC:
        data = NewGamePayload.model_validate(payload)
        await game_service.new_game(data.custom_categories())

    elif message_topic == SELECT_CLUE_TOPIC:
        data = SelectCluePayload.model_validate(payload)
        await game_service.select_clue(data.category_index, data.value_index, data.round)

    elif message_topic == BUZZ_TOPIC:
        data = BuzzPayload.model_validate(payload)
        await game_service.buzz(data.player)

    elif message_topic == SUBMIT_WAGER_TOPIC:
        data = WagerPayload.model_validate(payload)
        await game_service.submit_wager(data.amount)

    elif message_topic == SUBMIT_FINAL_WAGERS_TOPIC:
        data = FinalWagersPayload.model_validate(payload)
        await game_service.submit_final_wagers(data.wager1, data.wager2)

    elif message_topic == FINAL_ANSWER_DRAFT_TOPIC:
        data = FinalDraftPayload.model_validate(payload)
        game_service.update_final_draft(data.player, data.text)

    elif message_topic == SUBMIT_FINAL_ANSWERS_TOPIC:
        data = FinalAnswersPayload.model_validate(payload)
        await game_service.submit_final_answers(data.answer1, data.answer2)

    elif message_topic == SKIP_CLUE_TOPIC:
        await game_service.skip_clue()

    elif message_topic == TOGGLE_CONTROL_TOPIC:
        await game_service.toggle_control()

    elif message_topic == SET_RESPONSE_DURATION_TOPIC:
        data = ResponseDurationPayload.model_validate(payload)
        game_service.set_response_duration(data.seconds)

    elif message_topic == TRANSCRIPT_TOPIC:
        data = TranscriptPayload.model_validate(payload)
        capture.deliver_transcript(data.capture_id, data.text)

    elif message_topic == CAPTURE_ERROR_TOPIC:
        data = CaptureErrorPayload.model_validate(payload)
        capture.deliver_error(data.capture_id, data.message)

    else:
        logger.warning(f"Unknown topic: {message_topic}")


def create_app(settings: Optional[GameSettings] = None, question_bank: Optional[QuestionBank] = None,
               judge=None) -> FastAPI:
    settings = settings or GameSettings.from_env()
    app = FastAPI(title="Jeopardy Duel")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    connection_manager = ConnectionManager()
    display = BroadcastDisplay(connection_manager)
    capture = RemoteSpeechCapture(connection_manager)
    question_bank = question_bank or QuestionBank.from_settings(settings)
    game_service = GameService(
        display, capture, judge or AnswerEvaluator(), provider=question_bank, settings=settings
    )

    # Store in app state for access in routes
    app.state.settings = settings
    app.state.connection_manager = connection_manager
    app.state.capture = capture
    app.state.question_bank = question_bank
    app.state.game_service = game_service

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        client_id = await connection_manager.connect(websocket)
        try:
            await connection_manager.send_personal_message(
                websocket, GAME_STATE_TOPIC, game_service.get_game_state()
            )
            while True:
                message = await websocket.receive_text()
                try:
                    data = json.loads(message)
                except json.JSONDecodeError as e:
                    logger.error(f"Failed to decode WebSocket message: {e}")
                    continue
                if not isinstance(data, dict):
                    logger.error(f"Ignoring non-object WebSocket message from {client_id}")
                    continue

                message_topic = data.get("topic")
                payload = data.get("payload") or {}
                logger.debug(f"Received WebSocket message from {client_id}: {message_topic}")
                try:
                    await handle_message(game_service, capture, message_topic, payload)
                except (ValidationError, ValueError) as e:
                    logger.warning(f"Rejected {message_topic} from {client_id}: {e}")
                    await connection_manager.send_personal_message(
                        websocket, ERROR_TOPIC, {"topic": message_topic, "message": str(e)}
                    )
        except WebSocketDisconnect:
            logger.info(f"Client {client_id} disconnected")
        except Exception as e:
            logger.error(f"Error in WebSocket connection {client_id}: {e}", exc_info=True)
        finally:
            await connection_manager.disconnect(websocket)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Starting application...")
        question_bank.initialize()
        logger.info("Application startup completed")

    @app.on_event("shutdown")
    async def shutdown_event():
        await game_service.shutdown()

    app.include_router(board_routes.router)
    return app


app = create_app()

# Run with: uvicorn jeopardy_duel.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("jeopardy_duel.main:app", host="0.0.0.0", port=8000, reload=True)
