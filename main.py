import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from engine.config import CORS_ORIGINS

# Routers
from routers.attempts import router as attempts_router
from routers.health import router as health_router
from routers.marking import router as marking_router
from routers.questions import router as questions_router
from routers.sessions import router as sessions_router

logger = logging.getLogger("quiz-sessions")
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Quiz Session Engine API")

# Allow calls from the quiz front-end
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def health_root():
    return {"ok": True}


app.include_router(questions_router)  # /quizzes/..., /progress
app.include_router(marking_router)  # /evaluate, /mark
app.include_router(sessions_router)  # /sessions/..., /preferences/...
app.include_router(attempts_router)  # /attempts/...
app.include_router(health_router)  # /health/...
