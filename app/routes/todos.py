"""
Todo Routes

Todos created from extracted action items
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from app.middleware.auth import require_auth
from app.db.queries.todos import get_todos_for_user, set_todo_completed
from app.services.logger import logger

router = APIRouter()


class TodoUpdate(BaseModel):
    completed: Optional[bool] = None


@router.get('')
async def list_todos(user: dict = Depends(require_auth)):
    """
    List the current user's todos
    """
    todos = await get_todos_for_user(user['id'])
    return {'todos': todos}


@router.patch('/{todo_id}')
async def update_todo(
    todo_id: str,
    body: TodoUpdate,
    user: dict = Depends(require_auth)
):
    """
    Toggle a todo's completed state
    """
    if body.completed is None:
        raise HTTPException(status_code=400, detail={'error': 'completed must be a boolean'})

    todo = await set_todo_completed(user['id'], todo_id, body.completed)
    if not todo:
        raise HTTPException(status_code=404, detail={'error': 'Todo not found'})

    logger.info('Todo updated', todo_id=todo_id, completed=body.completed)
    return {'todo': todo}
