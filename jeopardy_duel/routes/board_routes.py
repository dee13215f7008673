from fastapi import APIRouter, HTTPException, Request
from typing import Any, Dict
import logging

from ..errors import PersistenceFailure
from ..models.board import CATEGORY_COUNT
from ..services.game_components.question_manager import judge_safely

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["game"],
)


@router.get("/categories/random")
async def random_categories(request: Request, count: int = CATEGORY_COUNT):
    """Random eligible categories for the staging screen."""
    if count <= 0:
        raise HTTPException(status_code=400, detail="count must be positive")
    question_bank = request.app.state.question_bank
    return {"categories": question_bank.get_random_categories(count)}


@router.post("/categories/swap")
async def swap_category(request: Request, data: Dict[str, Any]):
    old_category = data.get("oldCategory")
    current_categories = data.get("currentCategories") or []
    if not isinstance(current_categories, list):
        raise HTTPException(status_code=400, detail="currentCategories must be an array")

    question_bank = request.app.state.question_bank
    new_category = question_bank.swap_category(old_category, current_categories)
    if not new_category:
        raise HTTPException(status_code=404, detail="No available categories to swap")
    logger.info(f"Swapped category {old_category!r} for {new_category!r}")
    return {"newCategory": new_category}


@router.post("/game/new")
async def new_game(request: Request):
    """Generate a random board and start playing it."""
    game_service = request.app.state.game_service
    try:
        session = await game_service.new_game()
    except ValueError as e:
        logger.error(f"Error generating game board: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate game board")
    return session.board.model_dump()


@router.post("/game/custom")
async def custom_game(request: Request, data: Dict[str, Any]):
    standard_categories = data.get("standardCategories")
    double_categories = data.get("doubleCategories")
    if not isinstance(standard_categories, list) or not isinstance(double_categories, list):
        raise HTTPException(status_code=400, detail="standardCategories and doubleCategories are required")

    game_service = request.app.state.game_service
    try:
        session = await game_service.new_game({"standard": standard_categories, "double": double_categories})
    except ValueError as e:
        logger.error(f"Error generating custom game board: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return session.board.model_dump()


@router.post("/validate")
async def validate_answer(request: Request, data: Dict[str, Any]):
    """Run the answer judge on a single response."""
    clue = data.get("clue")
    correct_answer = data.get("correctAnswer")
    user_answer = data.get("userAnswer")
    if not clue or not correct_answer or not user_answer:
        raise HTTPException(status_code=400, detail="Missing required fields")

    game_service = request.app.state.game_service
    judgment = await judge_safely(game_service.judge, clue, correct_answer, user_answer)
    return judgment.model_dump()


@router.post("/game/complete")
async def complete_game(request: Request, data: Dict[str, Any]):
    question_ids = data.get("questionIds")
    if not isinstance(question_ids, list) or not all(isinstance(i, str) for i in question_ids):
        raise HTTPException(status_code=400, detail="questionIds must be an array of strings")

    question_bank = request.app.state.question_bank
    try:
        question_bank.mark_questions_used(question_ids)
    except PersistenceFailure as e:
        logger.error(f"Error marking questions as used: {e}")
        raise HTTPException(status_code=500, detail="Failed to mark questions as used")
    return {"success": True, "message": f"Marked {len(question_ids)} questions as used"}


@router.get("/health")
async def health(request: Request):
    question_bank = request.app.state.question_bank
    return {
        "status": "ok",
        "questionsLoaded": len(question_bank.questions),
        "usedQuestions": len(question_bank.used_ids),
        "connections": request.app.state.connection_manager.connection_count,
    }
