import json, logging, os
from fastapi import FastAPI
from mcp_servers.common import ReputationRequest
from matching.extractor import classify_indicator

logger = logging.getLogger(__name__)

app = FastAPI(title="TI-MCP")

# Resolve data path relative to repo root so it works no matter where you run from
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TI_PATH = os.path.join(BASE_DIR, "data", "ti_reputation.json")

# indicator kind -> section of the TI file
SECTIONS = {"ip": "ips", "hash": "hashes", "domain": "domains", "url": "urls"}

def load_ti(path: str):
    try:
        logger.info("loading TI db: %s", path)
        if not os.path.exists(path):
            raise FileNotFoundError(f"No such file: {path}")
        with open(path, "rb") as fb:
            raw = fb.read()
        text = raw.decode("utf-8-sig").strip()  # handle UTF-8 w/ BOM if present
        if not text:
            raise ValueError("TI file is empty")
        return json.loads(text)
    except (OSError, ValueError) as e:
        logger.warning("%s. Using fallback empty TI DB.", e)
        return {section: {} for section in SECTIONS.values()}

TI = load_ti(TI_PATH)

def lookup(ioc: str) -> dict:
    kind = classify_indicator(ioc)
    key = ioc.strip()
    if kind in ("domain", "hash"):
        key = key.lower()
    info = TI.get(SECTIONS.get(kind, ""), {}).get(key)
    if info:
        return {
            "type": kind, "ioc": ioc,
            "verdict": info.get("verdict", "unknown"),
            "sources": info.get("sources", [])
        }
    return {"type": kind, "ioc": ioc, "verdict": "unknown", "sources": []}

@app.post("/tools/reputation")
def reputation(req: ReputationRequest):
    return lookup(req.ioc)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=7002)
