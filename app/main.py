from dotenv import load_dotenv
load_dotenv()

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .routers import technical



app = FastAPI(title="Technical Analysis Scraper API", version="1.0.0", description="Scrapes and parses technical-analysis pages")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# register routers
app.include_router(technical.router)

@app.get("/health")
def health():
    return {"ok": True}
