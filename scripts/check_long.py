from pathlib import Path

MAX_LEN = 100

root = Path(__file__).resolve().parents[1]
files = sorted((root / "recipebook").glob("*.py")) + sorted((root / "scripts").glob("*.py"))
for f in files:
    with f.open("r", encoding="utf-8") as fh:
        for i, l in enumerate(fh, start=1):
            line = l.rstrip("\n")
            if len(line) > MAX_LEN:
                print(f"{f.relative_to(root)}:{i}:{len(line)}: {line}")
