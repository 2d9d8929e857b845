"""FastAPI app entrypoint."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from settleup.config import ALLOWED_ORIGINS
from settleup.database import engine, Base
from settleup.logging_config import RequestLoggingMiddleware, setup_logging
from settleup.routers import auth, groups, expenses, settlements

logger = setup_logging()

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="SettleUp API",
    description="Track shared expenses in a group, see who owes whom and how to settle up.",
    version="1.0.0",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(auth.router, prefix="/api")
app.include_router(groups.router, prefix="/api")
app.include_router(expenses.router, prefix="/api")
app.include_router(settlements.router, prefix="/api")


@app.get("/")
def root():
    return {"message": "SettleUp API", "docs": "/docs"}


@app.get("/health")
def health():
    return {"status": "ok"}
