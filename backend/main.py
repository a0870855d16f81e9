from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
import os
import logging
from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).parent / ".env", override=True)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="BizOps API")

# --- Register routers ---
from bizops.routers.projects import router as projects_router
from bizops.routers.project_files import router as project_files_router
from bizops.routers.tasks import router as tasks_router
from bizops.routers.work_papers import router as work_papers_router
from bizops.routers.employees import router as employees_router
from bizops.routers.timesheets import router as timesheets_router
from bizops.routers.bonuses import router as bonuses_router
from bizops.routers.analytics import router as analytics_router
from bizops.routers.notifications import router as notifications_router
from bizops.routers.users import router as users_router

app.include_router(projects_router)
app.include_router(project_files_router)
app.include_router(tasks_router)
app.include_router(work_papers_router)
app.include_router(employees_router)
app.include_router(timesheets_router)
app.include_router(bonuses_router)
app.include_router(analytics_router)
app.include_router(notifications_router)
app.include_router(users_router)


CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"ok": True, "auth_mode": os.getenv("AUTH_MODE", "demo")}


logger.info("BizOps API ready (%d routes)", len(app.routes))
