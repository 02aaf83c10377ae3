"""FastAPI application."""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stage_proxy.db import Base, engine
from stage_proxy.endpoints import proxy_router, router
from stage_proxy.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the options/transients tables on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(
    title="Stage File Proxy",
    description="Serve missing uploads from a production origin. Never run this in production.",
    version="1.0.0",
    lifespan=lifespan,
)

# Rewritten content is consumed by front-end tooling on other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Stage File Proxy",
        "version": "1.0.0",
        "endpoints": {
            "uploads": f"GET {settings.UPLOADS_PATH}/{{path}}",
            "settings": f"GET|PUT {settings.API_V1_PREFIX}/settings",
            "rewrite": f"POST {settings.API_V1_PREFIX}/rewrite",
            "rewrite_url": f"POST {settings.API_V1_PREFIX}/rewrite/url",
            "rewrite_srcset": f"POST {settings.API_V1_PREFIX}/rewrite/srcset",
            "metadata": f"POST {settings.API_V1_PREFIX}/metadata",
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Catch-all uploads route goes last
app.include_router(proxy_router)
