from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.db import engine, Base

from app.models.wallet import Wallet
from app.models.wallet_transaction import WalletTransaction
from app.models.wallet_settings import WalletSettings
from app.models.voucher import Voucher

from app.routes.wallet import router as wallet_router
from app.routes.wallet_events import router as wallet_events_router
from app.routes.admin_wallet import router as admin_wallet_router
from app.services.errors import WalletError

app = FastAPI(title="Coin Wallet Ledger")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "https://localhost:3000",
        "http://127.0.0.1:3000",
        "https://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WalletError)
def wallet_error_handler(request: Request, exc: WalletError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


app.include_router(wallet_router)
app.include_router(wallet_events_router)
app.include_router(admin_wallet_router)


@app.get("/")
def read_root():
    return {"message": "Coin Wallet Ledger is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001, reload=True)
