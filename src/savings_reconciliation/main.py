import logging

from fastapi import FastAPI

from savings_reconciliation.config import settings
from savings_reconciliation.routes import router

logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Savings Reconciliation", version="0.1.0")
app.include_router(router)


def run() -> None:
    import uvicorn

    uvicorn.run(
        "savings_reconciliation.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.portal_env == "development",
    )


if __name__ == "__main__":
    run()
