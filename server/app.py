"""FastAPI application for editing and running conversation graphs."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from convograph.config import configure_logging, get_settings
from server.graph_routes import router as graph_router
from server.project_routes import router as project_router
from server.workspace import get_workspace

# reads .env on first call
settings = get_settings()
configure_logging(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bring up project storage on startup."""
    get_workspace()
    yield


app = FastAPI(
    title="Convograph API",
    description="API server for branching LLM conversation graphs",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# include routes
app.include_router(project_router, prefix="/api")
app.include_router(graph_router, prefix="/api")


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "0.1.0",
        "storage": settings.storage_backend,
        "endpoints": {
            "projects": "/api/projects",
            "nodes": "/api/projects/{project_id}/nodes",
            "edges": "/api/projects/{project_id}/edges",
            "run": "/api/projects/{project_id}/nodes/{node_id}/run",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
