"""
FastAPI Application Entry Point
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from mediation_intake.core.config import settings
from mediation_intake.api.v1.router import api_router
from mediation_intake.database.connection import DatabasePool
from mediation_intake.database.session import init_db, init_session_factory
from mediation_intake.utils.logging import get_logger, app_logger

logger = get_logger(__name__)


def integration_status() -> dict:
    """Which third-party integrations have credentials configured"""
    return {
        "insightly": settings.insightly.is_configured,
        "monday": settings.monday.is_configured,
        "calendly": bool(settings.calendly.client_id and settings.calendly.client_secret),
        "email": settings.email.is_configured,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: database pool, session factory and (SQLite only) table creation.
    Shutdown: close the pool.
    """
    app_logger.info("🚀 [bold green]Starting mediation intake service...[/bold green]")
    try:
        app_logger.info("📊 [cyan]Initializing database connection pool...[/cyan]")
        DatabasePool.initialize()
        init_session_factory()
        if settings.database.is_sqlite:
            init_db()

        for name, configured in integration_status().items():
            if not configured:
                app_logger.warning(f"[yellow]⚠️  {name} is not configured[/yellow]")
        app_logger.info("✅ [bold green]Service ready[/bold green]")
    except Exception as e:
        app_logger.error(f"❌ [bold red]Startup failed:[/bold red] {e}")
        raise

    yield

    app_logger.info("🛑 [yellow]Shutting down...[/yellow]")
    try:
        DatabasePool.close()
        app_logger.info("✅ [bold green]Database pool closed[/bold green]")
    except Exception as e:
        app_logger.error(f"❌ [bold red]Error during shutdown:[/bold red] {e}")


app = FastAPI(
    title=settings.project_name,
    version=settings.version,
    description=settings.description,
    openapi_url=f"{settings.api_v1_str}/openapi.json",
    lifespan=lifespan,
)

# The dashboard sends the session cookie cross-origin
if settings.backend_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.backend_cors_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.api_v1_str)


@app.get("/")
async def root():
    return {"service": settings.project_name, "version": settings.version}


@app.get("/health")
async def health_check():
    """Database reachability plus integration configuration flags"""
    try:
        with DatabasePool.get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
        pool_status = DatabasePool.get_pool_status()
        return {
            "status": "healthy",
            "database": {
                "pool_initialized": pool_status["initialized"],
                "pool_size": pool_status["size"],
                "connections_checked_out": pool_status["checked_out"],
            },
            "integrations": integration_status(),
        }
    except Exception as e:
        logger.error(f"[red]Health check failed:[/red] {e}")
        return {"status": "unhealthy", "error": "Health check failed"}
