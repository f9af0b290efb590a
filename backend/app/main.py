"""
Remittance Compliance Engine - FastAPI Application

Main entry point for the remittance compliance backend.

Architecture:
- ObligationSource → overdue obligations with days_overdue
- EscalationPolicy → target lawyer status per obligation
- ReminderCadenceController → milestone reminders
- RemittanceComplianceScheduler → daily batch run + run report
- OutstandingFeesAggregator → display totals for every lawyer
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI

from .routers import scheduler_router
from .database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Remittance Compliance Engine",
    description="""
    Remittance Compliance Engine - Platform Fee Escalation

    Conveyancing lawyers collect the platform's success fee at transaction
    close and must remit it within the grace period. This service runs the
    daily compliance pass over every overdue remittance.

    ## Pipeline
    1. **Obligation Source**: unremitted fees past their due date
    2. **Escalation Policy**: current → warning (15d) → overdue (45d) → suspended (60d)
    3. **Reminder Cadence**: reminders at 1, 10, 20, 28, 35, 45, 55, 60 days
    4. **Aggregate Refresh**: outstanding-fee totals for all lawyers

    ## Key Principles
    - Lawyer status never moves backwards under the engine
    - Suspension is applied once and removes the lawyer from matching
    - One failing obligation never stops the batch
    - Each reminder milestone is claimed before it is sent
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers
app.include_router(scheduler_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Remittance Compliance Engine",
        "version": "1.0.0",
        "description": "Platform fee remittance escalation",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
