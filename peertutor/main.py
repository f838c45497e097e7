# peertutor/main.py
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from peertutor.api import admin, auth, availability, chat, notification, report, review, session, tutors, users
from peertutor.config import settings
from peertutor.database import Base, engine

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(title="PeerTutor API", debug=settings.DEBUG)

UPLOAD_DIR = Path(settings.UPLOAD_DIR)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://0.0.0.0:8000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routers
app.include_router(auth.router)          # /auth/*
app.include_router(users.router)         # /users/*
app.include_router(tutors.router)        # /subjects, /tutors/*
app.include_router(availability.router)  # /availability/*
app.include_router(session.router)       # /sessions/*
app.include_router(review.router)        # /reviews/*
app.include_router(chat.router)          # /chats/*
app.include_router(notification.router)  # /notifications/*
app.include_router(report.router)        # /issues/*
app.include_router(admin.router)         # /admin/*


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "message": "PeerTutor API is running",
        "version": "1.0.0",
    }
