from fastapi import FastAPI

from dorm_chat.api import chat_room, health, websocket


def include_routers(app: FastAPI):
    for module in (health, chat_room, websocket):
        app.include_router(module.router)
