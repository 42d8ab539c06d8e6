import argparse, json, random
from datetime import datetime, timedelta
from dateutil.tz import tzutc

SOURCES = ["clipboard","siem","manual","email_gateway"]
DOMAINS = ["login-micros0ft.com","secure-paypa1.net","dropbox-share.info","cdn-update.org"]

# Labelled incident schema per line (JSONL):
# { description, indicators, metadata: {severity, source, reported_ts}, family }

def rand_ip():
    return ".".join(str(random.randint(1, 254)) for _ in range(4))

def rand_hash():
    return "%064x" % random.getrandbits(256)

def gen_family(kind):
    if kind == "phishing":
        return {
            "description": random.choice([
                "phishing email with malicious link",
                "user reported spoofed email asking for password",
                "phishing campaign detected with credential lure",
            ]),
            "indicators": [random.choice(DOMAINS), f"https://{random.choice(DOMAINS)}/login"],
            "metadata": {"severity": random.choice(["medium","high"])},
        }
    if kind == "ransomware":
        return {
            "description": random.choice([
                "ransomware encrypted file shares after malicious payload",
                "ransom note found, files encrypted on finance server",
            ]),
            "indicators": [rand_hash(), rand_ip()],
            "metadata": {"severity": "critical"},
        }
    if kind == "port_scan":
        return {
            "description": random.choice([
                "port scan from external host",
                "scanning and probe activity against ssh",
            ]),
            "indicators": [rand_ip()],
            "metadata": {"severity": "low"},
        }
    # exfiltration
    return {
        "description": random.choice([
            "large upload to unknown host, possible exfiltration",
            "data leak via upload to cloud storage",
        ]),
        "indicators": [rand_ip(), random.choice(DOMAINS)],
        "metadata": {"severity": "high"},
    }

def gen_noise():
    return {
        "description": random.choice(["user locked out","odd process seen","printer misbehaving", ""]),
        "indicators": random.choice([[], [rand_ip()]]),
        "metadata": {"severity": random.choice(["low","medium"])},
    }

if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", required=True)
    ap.add_argument("--count", type=int, default=200)
    ap.add_argument("--noise", type=float, default=0.2, help="Share of unlabelled noise incidents")
    ap.add_argument("--seed", type=int, default=None)
    args = ap.parse_args()

    random.seed(args.seed)
    t0 = datetime.now(tzutc()) - timedelta(days=1)
    data = []
    for i in range(args.count):
        if random.random() < args.noise:
            rec, family = gen_noise(), "noise"
        else:
            family = random.choice(["phishing","ransomware","port_scan","exfiltration"])
            rec = gen_family(family)
        rec["metadata"]["source"] = random.choice(SOURCES)
        rec["metadata"]["reported_ts"] = (t0 + timedelta(seconds=i * 30)).isoformat()
        rec["family"] = family
        data.append(rec)

    with open(args.out, "w") as f:
        for rec in data:
            f.write(json.dumps(rec) + "\n")
    print(f"wrote {len(data)} incidents → {args.out}")
