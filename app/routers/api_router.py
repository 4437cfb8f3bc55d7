from fastapi import APIRouter
from app.routers import auth, communication, employees, leave, notifications, recruitment

# Centralized API router hub
# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(employees.router, tags=["Employees"])
api_router.include_router(leave.router, tags=["Leave"])
api_router.include_router(recruitment.router, tags=["Recruitment"])
api_router.include_router(communication.router, tags=["Communication"])
api_router.include_router(notifications.router, tags=["Notifications"])
