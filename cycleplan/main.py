"""FastAPI application entry point."""
from fastapi import FastAPI

from cycleplan.logging_config import configure_logging
from cycleplan.routers import plans


configure_logging()

app = FastAPI(title="Cycling Plan Scheduler API")


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Simple health probe for liveness checks."""
    return {"status": "ok"}


# Include routers
app.include_router(plans.router)
