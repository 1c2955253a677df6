from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes.analysis import router as analysis_router

app = FastAPI(
    title="Document Analysis API",
    description="LLM-powered task extraction, categorization and summarization",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_origin_regex=r"https://.*\.vercel\.app|http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analysis_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
