from fastapi import Request

from app.database import Database


def get_db():
    db = Database()
    try:
        yield db
    finally:
        close = getattr(db, "close", None)
        if callable(close):
            close()


def get_scheduler(request: Request):
    return getattr(request.app.state, "scheduler", None)
