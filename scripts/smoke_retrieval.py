import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from docsearch.core.config import get_settings
from docsearch.core.logging_ import configure_logging
from docsearch.core.types import QueryAnalysis
from docsearch.wiring import build_pipeline

load_dotenv()
settings = get_settings()
configure_logging(settings.log_level)

pipeline = build_pipeline(settings)

analysis = QueryAnalysis(
    keywords=("meetings",),
    titles=("weekly sync",),
    contents=("what was decided in the weekly meeting",),
    date_keywords=("2508",),
)
args = [a for a in sys.argv[1:] if not a.startswith("--")]
user_id = int(args[0]) if args else None
deep = "--deep" in sys.argv

outcome = pipeline.run(analysis, user_id=user_id, rerank=deep, message="what was decided in the weekly meeting in August?")

print("COUNTS:", {t.value: n for t, n in outcome.counts_by_type.items()}, "fused=", outcome.fused_count)
print("FUSED TOP:")
for i, r in enumerate(outcome.results[:10], start=1):
    print(i, r.id, "score=", round(r.score, 6), "|", r.title, "|", r.path, "|", r.content[:80].replace("\n", " "))
