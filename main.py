from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, SessionLocal, settings
from api import raffle, oracle, accounts
from core.raffle_manager import RaffleManager

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表，並取得（或建立）唯一的 Raffle
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        raffle_obj = RaffleManager.get_or_create_raffle(db, settings)
        app.state.raffle_id = raffle_obj.id
        logger.info(f"Serving raffle {raffle_obj.id} (state={raffle_obj.state.value})")
    finally:
        db.close()

    yield


app = FastAPI(
    title="Prize Pool Raffle API",
    description="Automated prize-pool raffle driven by an external randomness oracle",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(raffle.router)
app.include_router(oracle.router)
app.include_router(accounts.router)


@app.get("/")
def root():
    return {"message": "Prize Pool Raffle API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
