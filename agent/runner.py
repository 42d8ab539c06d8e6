import argparse, json, logging, os
from pydantic import ValidationError
from rich import print
from rich.logging import RichHandler
from agent.playbooks.incident_companion import IncidentCompanion
from matching.common import MatcherSettings
from matching.errors import InvalidIncidentError

logger = logging.getLogger("runner")

def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--incidents", required=True, help="Path to incidents.jsonl")
    ap.add_argument("--case_dir", default="cases", help="Directory to save case JSONs")
    ap.add_argument("--threshold", type=float, default=0.7, help="Minimum similarity for a related case")
    ap.add_argument("--max_size", type=int, default=500, help="Cases kept in memory")
    ap.add_argument("--max_age", type=float, default=None, help="Seconds before a case is pruned")
    ap.add_argument("--ti_url", default=None, help="TI service, e.g. http://localhost:7002")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    try:
        settings = MatcherSettings(threshold=args.threshold, max_size=args.max_size, max_age_seconds=args.max_age)
    except ValidationError as e:
        bad = ", ".join(f"{err['loc'][0]}: {err['msg']}" for err in e.errors())
        ap.error(f"invalid matcher settings ({bad})")

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(message)s", handlers=[RichHandler(rich_tracebacks=True)])

    os.makedirs(args.case_dir, exist_ok=True)
    companion = IncidentCompanion(settings=settings, ti_url=args.ti_url)

    written = 0
    with open(args.incidents) as f:
        for n, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                resp = companion.run(json.loads(line))
            except (ValueError, InvalidIncidentError) as e:
                logger.warning("line %d skipped: %s", n, e)
                continue
            cid = resp["case_id"]
            with open(os.path.join(args.case_dir, f"{cid}.json"), "w") as out:
                json.dump(resp, out, indent=2)
            written += 1
            print(f"[bold green]Created[/] {cid} severity={resp['severity']} related={len(resp['related_cases'])}")
    return written

if __name__ == "__main__":
    main()
