import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from vetcare.core import config
from vetcare.database import Base, engine, ensure_schema
from vetcare import models  # noqa: F401  registers every table on Base.metadata
from vetcare.routes import (
    appointment_routes,
    auth_routes,
    doctor_routes,
    homepage_routes,
    notification_routes,
    payment_routes,
    pet_routes,
    realtime_routes,
    schedule_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title='VetCare API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'VetCare API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(doctor_routes.router)
app.include_router(pet_routes.router)
app.include_router(appointment_routes.router)
app.include_router(payment_routes.router)
app.include_router(schedule_routes.router, prefix='/veterinarian')
app.include_router(homepage_routes.router)
app.include_router(notification_routes.router)
app.include_router(realtime_routes.router)
