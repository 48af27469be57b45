from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from breakdown.api.routes.explanations import router as explanations_router
from breakdown.api.routes.transcripts import router as transcripts_router

app = FastAPI(
    title="Breakdown API",
    description="Transcripts and time-synced explanations for video playback",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["https://www.youtube.com"],
    allow_origin_regex=r"chrome-extension://.*|http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(transcripts_router)
app.include_router(explanations_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
