import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from planotto.api.routers import billing, webhooks

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Planotto Billing API",
    description="Stripe checkout / portal / status and subscription webhook reconciliation",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhooks.router)
app.include_router(billing.router)


@app.get("/api/health")
def api_health():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("planotto.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
