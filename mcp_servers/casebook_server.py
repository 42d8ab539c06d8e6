import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException, Request
from matching.common import MatcherSettings
from matching.errors import InvalidOutcomeError
from matching.matcher import CaseMatcher
from matching.store import CaseStore
from mcp_servers.common import CreateCaseRequest, FindSimilarRequest, FindSimilarResponse, PruneRequest, RelatedCase

logger = logging.getLogger(__name__)

def create_app(settings: Optional[MatcherSettings] = None) -> FastAPI:
    settings = settings or MatcherSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # One store per app instance, owned for the process lifetime
        store = CaseStore(max_size=settings.max_size, max_age=settings.max_age_seconds)
        app.state.settings = settings
        app.state.store = store
        app.state.matcher = CaseMatcher(store)
        logger.info("casebook ready threshold=%.2f max_size=%s", settings.threshold, settings.max_size)
        yield

    app = FastAPI(title="CASEBOOK-MCP", lifespan=lifespan)

    @app.post("/tools/create_case")
    def create_case(req: CreateCaseRequest, request: Request):
        try:
            cid = request.app.state.store.insert(req.incident, req.outcome)
        except InvalidOutcomeError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return {"ok": True, "id": cid}

    @app.get("/tools/case/{case_id}")
    def get_case(case_id: str, request: Request):
        rec = request.app.state.store.get(case_id)
        if rec is None:
            raise HTTPException(status_code=404, detail="case not found")
        return rec.model_dump(mode="json")

    @app.post("/tools/find_similar", response_model=FindSimilarResponse)
    def find_similar(req: FindSimilarRequest, request: Request):
        threshold = req.threshold if req.threshold is not None else request.app.state.settings.threshold
        matches = request.app.state.matcher.find_similar(req.incident, threshold=threshold, limit=req.limit)
        return FindSimilarResponse(matches=[RelatedCase.from_match(m) for m in matches])

    @app.post("/tools/prune")
    def prune(req: PruneRequest, request: Request):
        store = request.app.state.store
        removed = store.prune(max_size=req.max_size, max_age=req.max_age_seconds)
        return {"ok": True, "removed": len(removed), "remaining": len(store)}

    @app.get("/tools/stats")
    def stats(request: Request):
        return request.app.state.store.stats()

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=7003)
