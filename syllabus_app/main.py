from contextlib import asynccontextmanager
import logging
from pathlib import Path

from fastapi import FastAPI
from sqlalchemy import text

from syllabus_app.config import settings
from syllabus_app.db import Base, engine
from syllabus_app.route_logging import EndpointNameRoute
from syllabus_app.routers import courses, files, syllabus, syllabus_ui

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    Path(settings.file_storage_dir).mkdir(parents=True, exist_ok=True)
    logger.info('app_started env=%s storage_dir=%s', settings.app_env, settings.file_storage_dir)
    yield
    engine.dispose()


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute


@app.get('/healthz')
def healthz():
    with engine.connect() as conn:
        conn.execute(text('SELECT 1'))
    return {'ok': True, 'env': settings.app_env}


app.include_router(courses.router)
app.include_router(syllabus.router)
app.include_router(files.router)
app.include_router(syllabus_ui.router)
