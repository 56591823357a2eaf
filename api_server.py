"""FastAPI REST API server for the Reminder Scheduler service.

Hosts the CRUD surface for users, tasks, events and goals (each with
embedded reminders) and owns the reminder scheduler: it is started once the
entity store answers and stopped on shutdown.

Authentication is handled upstream; ownership is checked through the
owner_id parameter.
"""

from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

import crud
import database
import schemas
from config import settings
from entity_kinds import EVENT, GOAL, TASK, EntityKind
from logger_config import setup_logger
from scheduler import build_scheduler

logger = setup_logger(__name__, 'api.log')


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reminder scheduler after the store connects, stop it on shutdown."""
    scheduler = build_scheduler(settings)
    app.state.scheduler = scheduler

    if settings.SCHEDULER_ENABLED:
        with database.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        scheduler.start()
    else:
        logger.info("Reminder scheduler disabled in configuration")

    try:
        yield
    finally:
        scheduler.stop()
        await scheduler.wait_for_idle()


# Create FastAPI application
app = FastAPI(
    title="Reminder Scheduler API",
    description="Tasks, events and goals with scheduled email/SMS/in-app reminders",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    """Root endpoint - service information"""
    return {
        "service": "Reminder Scheduler API",
        "version": "1.0.0",
        "status": "healthy",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "users": "/users",
            "tasks": "/tasks",
            "events": "/events",
            "goals": "/goals",
        }
    }


@app.get("/health")
def health_check(request: Request):
    """Health check endpoint for monitoring"""
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "healthy",
        "service": "reminder_scheduler",
        "database": settings.DATABASE_URL.split("://")[0],
        "scheduler": scheduler.state.value if scheduler else "stopped",
    }


# -------------------------------------------------------------------- users

@app.post("/users", response_model=schemas.UserResponse, status_code=201)
def create_user(user: schemas.UserCreate, db: Session = Depends(database.get_db)):
    try:
        return crud.create_user(db, user.model_dump())
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Error creating user: {str(e)}")


@app.get("/users/{user_id}", response_model=schemas.UserResponse)
def get_user(user_id: str, db: Session = Depends(database.get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ----------------------------------------------------------------- entities

def entity_router(kind: EntityKind, create_schema, update_schema, response_schema) -> APIRouter:
    """Build the CRUD routes of one entity kind under /<kind.slug>."""
    router = APIRouter(prefix=f"/{kind.slug}", tags=[kind.slug])
    not_found = f"{kind.name} not found"

    @router.post("", response_model=response_schema, status_code=201)
    def create_entity(payload: create_schema, db: Session = Depends(database.get_db)):
        """Create an entity with optional reminders (each starts unsent)."""
        try:
            return crud.create_entity(db, kind, payload.model_dump())
        except crud.UnknownOwnerError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.get("", response_model=List[response_schema])
    def list_entities(
        owner_id: str = Query(..., description="ID of the owning user"),
        limit: int = Query(50, ge=1, le=1000, description="Maximum number of results"),
        db: Session = Depends(database.get_db)
    ):
        return crud.get_entities_by_owner(db, kind, owner_id, limit)

    @router.get("/{entity_id}", response_model=response_schema)
    def get_entity(
        entity_id: str,
        owner_id: str = Query(..., description="ID of the owning user"),
        db: Session = Depends(database.get_db)
    ):
        entity = crud.get_entity(db, kind, entity_id, owner_id)
        if not entity:
            raise HTTPException(status_code=404, detail=not_found)
        return entity

    @router.put("/{entity_id}", response_model=response_schema)
    def update_entity(
        entity_id: str,
        updates: update_schema,
        owner_id: str = Query(..., description="ID of the owning user"),
        db: Session = Depends(database.get_db)
    ):
        """Update entity fields.

        Only provided fields are updated. Reminders keep their sent-state
        unless a reminders list is supplied, which replaces them.
        """
        try:
            entity = crud.update_entity(db, kind, entity_id, owner_id, updates.model_dump(exclude_unset=True))
        except ValueError as e:
            db.rollback()
            raise HTTPException(status_code=400, detail=str(e))
        if not entity:
            raise HTTPException(status_code=404, detail=not_found)
        return entity

    @router.put("/{entity_id}/reminders", response_model=response_schema)
    def replace_reminders(
        entity_id: str,
        payload: schemas.RemindersReplace,
        owner_id: str = Query(..., description="ID of the owning user"),
        db: Session = Depends(database.get_db)
    ):
        """Replace the reminder list. Existing reminders are discarded."""
        reminders = [reminder.model_dump() for reminder in payload.reminders]
        entity = crud.replace_reminders(db, kind, entity_id, owner_id, reminders)
        if not entity:
            raise HTTPException(status_code=404, detail=not_found)
        return entity

    @router.delete("/{entity_id}", status_code=200)
    def delete_entity(
        entity_id: str,
        owner_id: str = Query(..., description="ID of the owning user"),
        db: Session = Depends(database.get_db)
    ):
        if not crud.delete_entity(db, kind, entity_id, owner_id):
            raise HTTPException(status_code=404, detail=not_found)
        return {"message": f"{kind.name} deleted successfully", "id": entity_id}

    return router


app.include_router(entity_router(TASK, schemas.TaskCreate, schemas.TaskUpdate, schemas.TaskResponse))
app.include_router(entity_router(EVENT, schemas.EventCreate, schemas.EventUpdate, schemas.EventResponse))
app.include_router(entity_router(GOAL, schemas.GoalCreate, schemas.GoalUpdate, schemas.GoalResponse))


# ---------------------------------------------------------------- scheduler

@app.post("/scheduler/scan", response_model=schemas.ScanSummaryResponse)
async def run_scan(request: Request):
    """Run one reminder scan cycle now and return its outcome."""
    scheduler = request.app.state.scheduler
    if scheduler.cycle_in_flight:
        raise HTTPException(status_code=409, detail="A reminder scan is already running")

    summary = await scheduler.run_once()
    if summary is None:
        raise HTTPException(status_code=500, detail="Reminder scan failed; see scheduler log")
    return summary


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info"
    )
